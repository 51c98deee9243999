"""Stage 4: Document - assemble a render-ready invoice"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from config import settings
from core.enums import AnalyticsColumn
from core.interfaces import Stage
from core.models import (
    Column, InvoiceDocument, PageLayout, RenderedRow, RowComputation, SummaryField,
    SummaryLine, TemplateField, TemplateSchema,
)
from stages.s0_normalization import flatten_fields, normalize_items
from stages.s1_row_computation import compute_row_detailed
from stages.s2_aggregation import aggregate_column, analytics_totals, resolve_summary
from stages.s3_layout import compute_layout, resolve_style
from utils.numbers import format_amount, format_fixed, format_plain, round_half_up
from utils.words import amount_in_words

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Section values
# ─────────────────────────────────────────────────────────────

def section_data(invoice: Mapping[str, Any], *path: str) -> Dict[str, Any]:
    """Flat key -> value view of one invoice section.

    Sections are stored either as ``{fields: [{key, value}]}`` or as plain
    mappings; both shapes are merged, the ``fields`` list winning.
    """
    node: Any = invoice
    for name in path:
        node = node.get(name) if isinstance(node, Mapping) else None
    if not isinstance(node, Mapping):
        return {}
    flat = {k: v for k, v in node.items() if k != "fields"}
    flat.update(flatten_fields(node.get("fields")))
    return flat


def is_date_field(field: TemplateField) -> bool:
    return field.type == "date" or "date" in field.label.lower()


def format_date(value: Any) -> Any:
    """ISO dates become "12 Oct 2026"; anything else passes through"""
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime(settings.DATE_DISPLAY_FORMAT)
    try:
        return date.fromisoformat(str(value)[:10]).strftime(settings.DATE_DISPLAY_FORMAT)
    except ValueError:
        return value


def field_value(
    field: TemplateField,
    values: Mapping[str, Any],
    root: Optional[Mapping[str, Any]] = None,
) -> Any:
    """Section value, then invoice root value, then the template's static value, then "--"."""
    for source in (values, root or {}):
        value = source.get(field.key)
        if value is not None and value != "":
            return format_date(value) if is_date_field(field) else value
    if field.value not in (None, ""):
        return field.value
    return settings.EMPTY_VALUE


def section_values(
    fields: Iterable[TemplateField],
    values: Mapping[str, Any],
    root: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    return {field.key: field_value(field, values, root) for field in fields if field.visible}


# ─────────────────────────────────────────────────────────────
# Rows and summary
# ─────────────────────────────────────────────────────────────

def cell_display(column: Column, value: Any) -> str:
    if value is None or value == "":
        return ""
    if column.is_numeric and isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_fixed(value)
    return str(value)


def render_rows(computations: Sequence[RowComputation], columns: Sequence[Column]) -> List[RenderedRow]:
    rows = []
    for position, computed in enumerate(computations):
        display = {col.key: cell_display(col, computed.values.get(col.key)) for col in columns if col.visible}
        rows.append(RenderedRow(
            position=position,
            values=computed.values,
            display=display,
            circular_columns=computed.circular_columns,
        ))
    return rows


def currency(value: float) -> str:
    return f"{settings.CURRENCY_SYMBOL} {format_amount(value)}"


def is_quantity_field(field: SummaryField) -> bool:
    if field.analytics_column == AnalyticsColumn.QUANTITY:
        return True
    sources = [agg.source_column for agg in field.aggregations] or [field.source_column]
    return all(source == settings.QUANTITY_COLUMN for source in sources)


def compute_grand_total(schema: TemplateSchema, rows: Sequence[Mapping[str, Any]], summary_values: Mapping[str, float]) -> float:
    """The grand total summary line when it aggregates something, else the sum of the total column"""
    for field in schema.summary.fields:
        if field.key == settings.GRAND_TOTAL_KEY and not field.is_manual:
            return summary_values.get(field.key, 0.0)
    return aggregate_column(settings.GRAND_TOTAL_COLUMN, "sum", rows)


def summary_lines(
    fields: Iterable[SummaryField],
    summary_values: Mapping[str, float],
    manual_values: Mapping[str, Any],
    grand_total: float,
) -> List[SummaryLine]:
    """Visible summary lines, grand total last"""
    visible = [field for field in fields if field.visible]
    ordered = [f for f in visible if f.key != settings.GRAND_TOTAL_KEY]
    ordered += [f for f in visible if f.key == settings.GRAND_TOTAL_KEY]

    lines = []
    for field in ordered:
        value = summary_values.get(field.key, 0.0)
        if field.key == settings.GRAND_TOTAL_KEY:
            value = grand_total
            display = currency(value)
        elif field.is_manual and manual_values.get(field.key) in (None, ""):
            display = settings.EMPTY_VALUE
        elif is_quantity_field(field):
            display = format_plain(round_half_up(value, settings.RESULT_DECIMALS))
        else:
            display = currency(value)
        lines.append(SummaryLine(key=field.key, label=field.label, value=value, display=display, bold=field.bold))
    return lines


# ─────────────────────────────────────────────────────────────
# Assembly
# ─────────────────────────────────────────────────────────────

def assemble_document(
    schema: TemplateSchema,
    invoice: Optional[Mapping[str, Any]] = None,
    computations: Optional[Sequence[RowComputation]] = None,
    summary_values: Optional[Mapping[str, float]] = None,
    layout: Optional[PageLayout] = None,
) -> InvoiceDocument:
    """
    Build everything a renderer needs for one invoice.

    Stages that already ran can hand in their results; anything missing is
    computed here.

    Args:
        schema: Normalized template
        invoice: Stored invoice (sections, items and optional manual summary values)
        computations: Pre-computed rows from the row computation stage
        summary_values: Pre-resolved summary values keyed by field key
        layout: Pre-computed page layout
    """
    invoice = invoice if isinstance(invoice, Mapping) else {}
    columns = list(schema.columns)

    if computations is None:
        items = normalize_items(invoice.get("items"))
        computations = [compute_row_detailed(row, columns, position) for position, row in enumerate(items)]
    rows = [computed.values for computed in computations]

    manual_values = section_data(invoice, "summary")
    if summary_values is None:
        summary_values = resolve_summary(schema.summary.fields, rows, manual_values)
    grand_total = compute_grand_total(schema, rows, summary_values)

    header = section_data(invoice, "header")
    meta = section_data(invoice, "invoice_meta") or section_data(invoice, "meta")
    root = {**header, **meta}

    document = InvoiceDocument(
        header=section_values(schema.header.fields, header, root),
        meta=section_values(schema.meta.fields, meta, root),
        bill_to=section_values(schema.customer.billing.fields, section_data(invoice, "customer_details", "bill_to")),
        ship_to=section_values(schema.customer.shipping.fields, section_data(invoice, "customer_details", "ship_to")),
        footer=section_values(schema.footer.fields, section_data(invoice, "footer")),
        rows=render_rows(computations, columns),
        summary=summary_lines(schema.summary.fields, summary_values, manual_values, grand_total),
        summary_values=dict(summary_values),
        grand_total=grand_total,
        amount_in_words=amount_in_words(grand_total),
        totals=analytics_totals(schema.summary.fields, rows, manual_values),
        layout=layout or compute_layout(columns),
        style=resolve_style(schema),
    )
    logger.debug(f"Assembled invoice with {len(document.rows)} rows, grand total {grand_total}")
    return document


# ─────────────────────────────────────────────────────────────
# Save payload
# ─────────────────────────────────────────────────────────────

def _payload_fields(fields: Iterable[TemplateField], values: Mapping[str, Any]) -> Dict[str, Any]:
    return {"fields": [
        {"key": field.key, "label": field.label, "value": values.get(field.key) or ""}
        for field in fields
    ]}


def build_save_payload(
    schema: TemplateSchema,
    invoice: Optional[Mapping[str, Any]] = None,
    template_id: Optional[str] = None,
    customer_id: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Body of an invoice save request.

    Every section is written as ``{fields: [{key, label, value}]}``; item
    rows carry their computed formula values. ``total``, ``tax`` and
    ``quantity`` appear only when a summary field feeds them.
    """
    invoice = invoice if isinstance(invoice, Mapping) else {}
    columns = list(schema.columns)
    raw_rows = normalize_items(invoice.get("items"))
    items = [
        {**row, **compute_row_detailed(row, columns, position).values}
        for position, row in enumerate(raw_rows)
    ]
    manual_values = section_data(invoice, "summary")
    summary_values = resolve_summary(schema.summary.fields, items, manual_values)

    payload: Dict[str, Any] = {
        "template_id": template_id if template_id is not None else schema.template_id,
        "customer_id": customer_id if customer_id is not None else invoice.get("customer_id"),
        "header": _payload_fields(schema.header.fields, section_data(invoice, "header")),
        "invoice_meta": _payload_fields(
            schema.meta.fields, section_data(invoice, "invoice_meta") or section_data(invoice, "meta")
        ),
        "customer_details": {
            "bill_to": _payload_fields(
                schema.customer.billing.fields, section_data(invoice, "customer_details", "bill_to")
            ),
            "ship_to": _payload_fields(
                schema.customer.shipping.fields, section_data(invoice, "customer_details", "ship_to")
            ),
        },
        "footer": _payload_fields(schema.footer.fields, section_data(invoice, "footer")),
        "items": {"fields": items},
        "summary": {"fields": [
            {"key": field.key, "label": field.label, "value": summary_values[field.key]}
            for field in schema.summary.fields
        ]},
    }

    totals = analytics_totals(schema.summary.fields, items, manual_values)
    for name, value in totals.model_dump().items():
        if value is not None:
            payload[name] = value
    return payload


class DocumentAssembler(Stage[Dict[str, Any], InvoiceDocument]):
    """Stage 4: Document"""

    @property
    def name(self) -> str:
        return "Document Assembly"

    @property
    def stage_number(self) -> int:
        return 4

    def validate_input(self, input_data: Dict[str, Any]) -> bool:
        return isinstance(input_data, dict) and isinstance(input_data.get("schema"), TemplateSchema)

    def execute(self, input_data: Dict[str, Any]) -> InvoiceDocument:
        return assemble_document(
            input_data["schema"],
            input_data.get("invoice"),
            computations=input_data.get("rows"),
            summary_values=input_data.get("summary_values"),
            layout=input_data.get("layout"),
        )
