"""Immutable template and invoice item editing.

Every function returns a new value and leaves its input untouched, so an
editor can keep previous states for undo and compare them cheaply.
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from stages.s1_row_computation import compute_row_detailed

from .enums import AggregateFunction, ChainOperator, ComputeMode
from .models import (
    Aggregation, Column, Filled, SummaryField, TemplateField, TemplateSchema, Unfilled,
)

logger = logging.getLogger(__name__)

SECTION_PREFIXES = {
    "header": "header_",
    "meta": "meta_",
    "billing": "bill_to_",
    "shipping": "ship_to_",
    "footer": "footer_",
}


def new_key(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex[:12]}"


def _replace(model, **changes):
    """Validated copy of a model with some fields changed"""
    return type(model).model_validate({**model.model_dump(), **changes})


def _index_of(items: Sequence[Any], key: str) -> int:
    for index, item in enumerate(items):
        if item.key == key:
            return index
    raise KeyError(key)


# ─────────────────────────────────────────────────────────────
# Columns
# ─────────────────────────────────────────────────────────────

def _with_columns(schema: TemplateSchema, columns: Iterable[Column]) -> TemplateSchema:
    table = schema.table.model_copy(update={"columns": tuple(columns)})
    return schema.model_copy(update={"table": table})


def add_column(schema: TemplateSchema, label: str = "New Column", width: str = "10%", **fields) -> TemplateSchema:
    column = Column(key=fields.pop("key", None) or new_key("item_"), label=label, width=width, **fields)
    return _with_columns(schema, schema.columns + (column,))


def update_column(schema: TemplateSchema, key: str, **changes) -> TemplateSchema:
    columns = list(schema.columns)
    index = _index_of(columns, key)
    columns[index] = _replace(columns[index], **changes)
    return _with_columns(schema, columns)


def remove_column(schema: TemplateSchema, key: str) -> TemplateSchema:
    return _with_columns(schema, (col for col in schema.columns if col.key != key))


def move_column(schema: TemplateSchema, key: str, new_index: int) -> TemplateSchema:
    columns = list(schema.columns)
    column = columns.pop(_index_of(columns, key))
    new_index = min(max(new_index, 0), len(columns))
    columns.insert(new_index, column)
    return _with_columns(schema, columns)


# ─────────────────────────────────────────────────────────────
# Section fields
# ─────────────────────────────────────────────────────────────

def section_fields(schema: TemplateSchema, section: str) -> Tuple[TemplateField, ...]:
    if section == "header":
        return schema.header.fields
    if section == "meta":
        return schema.meta.fields
    if section == "billing":
        return schema.customer.billing.fields
    if section == "shipping":
        return schema.customer.shipping.fields
    if section == "footer":
        return schema.footer.fields
    raise KeyError(section)


def _with_section_fields(schema: TemplateSchema, section: str, fields: Iterable[TemplateField]) -> TemplateSchema:
    fields = tuple(fields)
    if section in ("billing", "shipping"):
        block = getattr(schema.customer, section).model_copy(update={"fields": fields})
        customer = schema.customer.model_copy(update={section: block})
        return schema.model_copy(update={"customer": customer})
    section_model = getattr(schema, section)
    return schema.model_copy(update={section: section_model.model_copy(update={"fields": fields})})


def add_section_field(schema: TemplateSchema, section: str, label: str = "New Field", **fields) -> TemplateSchema:
    prefix = SECTION_PREFIXES.get(section, "custom_")
    field = TemplateField(key=fields.pop("key", None) or new_key(prefix), label=label, **fields)
    return _with_section_fields(schema, section, section_fields(schema, section) + (field,))


def update_section_field(schema: TemplateSchema, section: str, key: str, **changes) -> TemplateSchema:
    fields = list(section_fields(schema, section))
    index = _index_of(fields, key)
    fields[index] = _replace(fields[index], **changes)
    return _with_section_fields(schema, section, fields)


def remove_section_field(schema: TemplateSchema, section: str, key: str) -> TemplateSchema:
    fields = (field for field in section_fields(schema, section) if field.key != key)
    return _with_section_fields(schema, section, fields)


# ─────────────────────────────────────────────────────────────
# Summary fields and aggregations
# ─────────────────────────────────────────────────────────────

def _with_summary_fields(schema: TemplateSchema, fields: Iterable[SummaryField]) -> TemplateSchema:
    summary = schema.summary.model_copy(update={"fields": tuple(fields)})
    return schema.model_copy(update={"summary": summary})


def add_summary_field(schema: TemplateSchema, label: str = "New Total", **fields) -> TemplateSchema:
    """New summary line with one empty sum aggregation"""
    fields.setdefault("aggregations", (Aggregation(),))
    field = SummaryField(key=fields.pop("key", None) or new_key("total_"), label=label, **fields)
    return _with_summary_fields(schema, schema.summary.fields + (field,))


def update_summary_field(schema: TemplateSchema, key: str, **changes) -> TemplateSchema:
    fields = list(schema.summary.fields)
    index = _index_of(fields, key)
    fields[index] = _replace(fields[index], **changes)
    return _with_summary_fields(schema, fields)


def remove_summary_field(schema: TemplateSchema, key: str) -> TemplateSchema:
    return _with_summary_fields(schema, (f for f in schema.summary.fields if f.key != key))


def as_chain(field: SummaryField) -> Tuple[Aggregation, ...]:
    """Aggregations of a field, converting the legacy single-column form"""
    if field.aggregations:
        return field.aggregations
    if field.source_column:
        return (Aggregation(function=field.function or AggregateFunction.SUM, source_column=field.source_column),)
    return (Aggregation(),)


def _with_chain(schema: TemplateSchema, key: str, chain: Iterable[Aggregation]) -> TemplateSchema:
    # Once a chain exists the legacy source column no longer applies
    return update_summary_field(schema, key, aggregations=tuple(chain), source_column=None, function=None)


def add_aggregation(
    schema: TemplateSchema,
    key: str,
    source_column: str = "",
    function: AggregateFunction = AggregateFunction.SUM,
    operator: ChainOperator = ChainOperator.ADD,
) -> TemplateSchema:
    field = schema.summary.fields[_index_of(schema.summary.fields, key)]
    link = Aggregation(function=function, source_column=source_column, operator=operator)
    return _with_chain(schema, key, as_chain(field) + (link,))


def update_aggregation(schema: TemplateSchema, key: str, index: int, **changes) -> TemplateSchema:
    field = schema.summary.fields[_index_of(schema.summary.fields, key)]
    chain = list(as_chain(field))
    chain[index] = _replace(chain[index], **changes)
    return _with_chain(schema, key, chain)


def remove_aggregation(schema: TemplateSchema, key: str, index: int) -> TemplateSchema:
    """Drop one link of a chain; the last remaining link is kept"""
    field = schema.summary.fields[_index_of(schema.summary.fields, key)]
    chain = list(as_chain(field))
    if len(chain) <= 1:
        logger.debug(f"Summary field {key!r} keeps its only aggregation")
        return schema
    del chain[index]
    return _with_chain(schema, key, chain)


# ─────────────────────────────────────────────────────────────
# Styling
# ─────────────────────────────────────────────────────────────

def set_accent_color(schema: TemplateSchema, color: Optional[str]) -> TemplateSchema:
    """None or "" clears the accent colour"""
    accent = Filled(value=color) if color else Unfilled()
    header = schema.header.model_copy(update={"accent_color": accent})
    return schema.model_copy(update={"header": header})


# ─────────────────────────────────────────────────────────────
# Invoice items
# ─────────────────────────────────────────────────────────────

def add_item(items: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [dict(item) for item in items] + [{"id": uuid.uuid4().hex}]


def remove_item(items: Sequence[Dict[str, Any]], index: int) -> List[Dict[str, Any]]:
    """Remove one row; an invoice always keeps at least one"""
    if len(items) <= 1:
        return [dict(item) for item in items]
    return [dict(item) for i, item in enumerate(items) if i != index]


def edit_item(
    items: Sequence[Dict[str, Any]],
    index: int,
    key: str,
    value: Any,
    columns: Iterable[Column],
) -> List[Dict[str, Any]]:
    """
    Set one cell and recompute the row's formulas as the user types.

    The edited cell keeps exactly what was typed; formula columns other than
    the edited one are refreshed, and a formula that cannot be evaluated
    leaves its cell untouched.
    """
    updated = [dict(item) for item in items]
    row = {**updated[index], key: value}

    computed = compute_row_detailed(row, columns, index, editing_key=key, mode=ComputeMode.INTERACTIVE)
    for column_key in computed.evaluated:
        row[column_key] = computed.values[column_key]

    updated[index] = row
    return updated
