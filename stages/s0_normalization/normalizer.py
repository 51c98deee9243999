"""Stage 0: Normalization - turn stored template JSON into a TemplateSchema"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from config import settings
from core.enums import (
    AggregateFunction, Align, AnalyticsColumn, ChainOperator, ColumnType, DisplayLayout,
)
from core.interfaces import Stage
from core.models import (
    AccentColor, Aggregation, Column, CustomerBlock, CustomerSection, DisplayStyle,
    Filled, FooterSection, HeaderSection, MetaSection, SummaryField, SummarySection,
    TableSection, TemplateField, TemplateSchema, Unfilled,
)
from utils.numbers import parse_float

logger = logging.getLogger(__name__)

_MISSING = object()


def _mapping(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _first(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First key present with a non-None value"""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _opacity(value: Any, default: float, percent: bool = True) -> float:
    """Stored opacities are percentages (0-100); model values are fractions.

    With ``percent=False`` only values above 1 are treated as percentages.
    """
    number = parse_float(value)
    if number is None:
        return default
    if percent or number > 1:
        number = number / 100
    return min(max(number, 0.0), 1.0)


def _entries(items: Any, section: str) -> List[Dict[str, Any]]:
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning(f"{section}: expected a list, got {type(items).__name__}; ignoring")
        return []
    entries = []
    for index, item in enumerate(items):
        if isinstance(item, Mapping):
            entries.append(dict(item))
        else:
            logger.warning(f"{section}: skipping malformed entry #{index}: {item!r}")
    return entries


def _choice(enum_cls, value: Any, default):
    try:
        return enum_cls(value) if value not in (None, "") else default
    except (ValueError, TypeError):
        fallback = default.value if default is not None else None
        logger.warning(f"Unknown {enum_cls.__name__} {value!r}; using {fallback!r}")
        return default


# ─────────────────────────────────────────────────────────────
# Field-level normalizers
# ─────────────────────────────────────────────────────────────

def normalize_field(data: Mapping[str, Any], section: str) -> Optional[TemplateField]:
    key = data.get("key")
    if not key:
        logger.warning(f"{section}: skipping field without a key: {dict(data)!r}")
        return None
    try:
        return TemplateField(
            key=str(key),
            label=str(data.get("label") or ""),
            type=str(data.get("type") or "text"),
            visible=data.get("visible") is not False,
            bold=bool(data.get("bold", False)),
            value=data.get("value"),
        )
    except ValidationError as e:
        logger.warning(f"{section}: skipping invalid field {key!r}: {e}")
        return None


def normalize_fields(items: Any, section: str) -> Tuple[TemplateField, ...]:
    fields = (normalize_field(entry, section) for entry in _entries(items, section))
    return tuple(field for field in fields if field is not None)


def normalize_column(data: Mapping[str, Any]) -> Optional[Column]:
    key = data.get("key")
    if not key:
        logger.warning(f"items.columns: skipping column without a key: {dict(data)!r}")
        return None
    width = data.get("width")
    return Column(
        key=str(key),
        label=str(data.get("label") or ""),
        type=_choice(ColumnType, data.get("type"), ColumnType.TEXT),
        formula=str(data.get("formula") or ""),
        width="" if width is None else str(width),
        align=_choice(Align, data.get("align"), Align.LEFT),
        group=str(data["group"]) if data.get("group") else None,
        visible=data.get("visible") is not False,
    )


def normalize_aggregation(data: Mapping[str, Any]) -> Aggregation:
    return Aggregation(
        function=_choice(AggregateFunction, data.get("function"), AggregateFunction.SUM),
        source_column=str(_first(data, "source_column", "sourceColumn", default="")),
        operator=_choice(ChainOperator, data.get("operator"), ChainOperator.ADD),
    )


def normalize_summary_field(data: Mapping[str, Any]) -> Optional[SummaryField]:
    key = data.get("key")
    if not key:
        logger.warning(f"summary: skipping field without a key: {dict(data)!r}")
        return None

    aggregations = tuple(
        normalize_aggregation(agg) for agg in _entries(data.get("aggregations"), f"summary.{key}.aggregations")
    )
    function = data.get("function")
    source = _first(data, "source_column", "sourceColumn")
    analytics = data.get("analytics_column") or data.get("analyticsColumn")
    return SummaryField(
        key=str(key),
        label=str(data.get("label") or ""),
        visible=data.get("visible") is not False,
        bold=bool(data.get("bold", False)),
        source_column=str(source) if source else None,
        function=_choice(AggregateFunction, function, AggregateFunction.SUM) if function else None,
        aggregations=aggregations,
        analytics_column=_choice(AnalyticsColumn, analytics, None) if analytics else None,
    )


def normalize_display_style(data: Any) -> DisplayStyle:
    ds = _mapping(data)
    return DisplayStyle(
        layout=_choice(DisplayLayout, ds.get("layout"), DisplayLayout.COLUMN),
        label_bold=bool(_first(ds, "label_bold", "labelBold", default=True)),
        show_label=bool(_first(ds, "show_label", "showLabel", default=True)),
    )


def normalize_accent(external: Mapping[str, Any]) -> AccentColor:
    """Absent -> default colour, null or empty -> unfilled, anything else -> filled"""
    raw = external.get("accent_color", _MISSING)
    if raw is _MISSING:
        return Filled(value=settings.DEFAULT_ACCENT_COLOR)
    if not raw:
        return Unfilled()
    return Filled(value=str(raw))


# ─────────────────────────────────────────────────────────────
# Section normalizers
# ─────────────────────────────────────────────────────────────

def normalize_header(external: Mapping[str, Any], accent: AccentColor) -> HeaderSection:
    header = _mapping(external.get("header"))
    values: Dict[str, Any] = {"accent_color": accent}

    if external.get("font_family"):
        values["font_family"] = str(external["font_family"])
    if "font_size" in external:
        values["body_font_size"] = int(parse_float(external["font_size"]) or settings.DEFAULT_BODY_FONT_SIZE)

    if header.get("logo_url"):
        values["logo_url"] = str(header["logo_url"])
    if isinstance(header.get("logo"), bool):
        values["show_logo"] = header["logo"]
    if header.get("title"):
        values["title"] = str(header["title"])
    title_size = parse_float(header.get("font_size")) or parse_float(header.get("title_font_size"))
    if title_size:
        values["title_font_size"] = int(title_size)
    opacity = _first(header, "text_opacity", "title_opacity")
    if opacity is not None:
        values["title_opacity"] = _opacity(opacity, settings.DEFAULT_HEADER_OPACITY)
    values["fields"] = normalize_fields(header.get("fields"), "header")
    return HeaderSection(**values)


def normalize_meta(external: Mapping[str, Any]) -> MetaSection:
    meta = _mapping(external.get("invoice_meta"))
    count = parse_float(_first(meta, "column_layout", "column_count"))
    return MetaSection(
        column_count=max(int(count), 1) if count else 1,
        display_style=normalize_display_style(meta.get("display_style")),
        fields=normalize_fields(meta.get("fields"), "invoice_meta"),
    )


def normalize_customer(external: Mapping[str, Any]) -> CustomerSection:
    customer = _mapping(external.get("customer_details"))

    def block(name: str, default_title: str) -> CustomerBlock:
        data = _mapping(customer.get(name))
        return CustomerBlock(
            title=str(data.get("title") or default_title),
            fields=normalize_fields(data.get("fields"), f"customer_details.{name}"),
        )

    return CustomerSection(
        display_style=normalize_display_style(customer.get("display_style")),
        billing=block("bill_to", "Bill To"),
        shipping=block("ship_to", "Ship To"),
    )


def normalize_table(external: Mapping[str, Any], accent: AccentColor) -> TableSection:
    items = _mapping(external.get("items"))
    columns = []
    for entry in _entries(items.get("columns"), "items.columns"):
        try:
            column = normalize_column(entry)
        except ValidationError as e:
            logger.warning(f"items.columns: skipping invalid column {entry.get('key')!r}: {e}")
            continue
        if column is not None:
            columns.append(column)

    if "header_text_color" in items:
        header_text_color = items["header_text_color"] or settings.UNFILLED_ACCENT_COLOR
    else:
        header_text_color = settings.FILLED_HEADER_TEXT_COLOR if accent.is_filled else settings.UNFILLED_ACCENT_COLOR

    values: Dict[str, Any] = {"columns": tuple(columns), "header_text_color": str(header_text_color)}
    for wire_key in ("header_padding", "row_padding"):
        number = parse_float(items.get(wire_key))
        if number is not None:
            values[wire_key] = int(number)
    border_width = parse_float(items.get("border_width"))
    if border_width is not None:
        values["border_width"] = border_width
    if items.get("border_opacity") is not None:
        values["border_opacity"] = _opacity(items["border_opacity"], 1.0, percent=False)
    return TableSection(**values)


def _summary_fields(items: Any, section: str) -> Tuple[SummaryField, ...]:
    fields = []
    for entry in _entries(items, section):
        try:
            field = normalize_summary_field(entry)
        except ValidationError as e:
            logger.warning(f"{section}: skipping invalid field {entry.get('key')!r}: {e}")
            continue
        if field is not None:
            fields.append(field)
    return tuple(fields)


def normalize_summary(external: Mapping[str, Any]) -> SummarySection:
    summary = _mapping(external.get("summary"))
    fields = _summary_fields(summary.get("fields"), "summary")
    if not fields:
        # Older templates keep their totals under "total"
        fields = _summary_fields(_mapping(external.get("total")).get("fields"), "total")
    return SummarySection(title=str(summary.get("title") or "Summary"), fields=fields)


def normalize_footer(external: Mapping[str, Any]) -> FooterSection:
    footer = _mapping(external.get("footer"))
    return FooterSection(
        title=str(footer.get("title") or "Bank Details"),
        signature_label=str(_first(footer, "signature_label", "signatureLabel", default="Authorized Signatory")),
        show_bank_details=footer.get("show_bank_details") is not False,
        fields=normalize_fields(footer.get("fields"), "footer"),
    )


def normalize(external: Any) -> TemplateSchema:
    """
    Convert a stored template into a fully-populated TemplateSchema.

    Accepts partial, empty or non-mapping input and fills defaults. Malformed
    entries are skipped and logged rather than raised.
    """
    if external is not None and not isinstance(external, Mapping):
        logger.warning(f"Template is a {type(external).__name__}, not a mapping; using defaults")
    data = _mapping(external)
    data = _mapping(data.get("data")) or data  # API envelope

    accent = normalize_accent(data)
    template_id = _first(data, "template_id", "id")
    name = _first(data, "name", "template_name")
    return TemplateSchema(
        template_id=str(template_id) if template_id is not None else None,
        name=str(name) if name is not None else None,
        header=normalize_header(data, accent),
        meta=normalize_meta(data),
        customer=normalize_customer(data),
        table=normalize_table(data, accent),
        summary=normalize_summary(data),
        footer=normalize_footer(data),
    )


# ─────────────────────────────────────────────────────────────
# Invoice items
# ─────────────────────────────────────────────────────────────

def flatten_fields(entries: Any) -> Dict[str, Any]:
    """[{key, value}, ...] -> {key: value}"""
    flat: Dict[str, Any] = {}
    if not isinstance(entries, list):
        return flat
    for entry in entries:
        if isinstance(entry, Mapping) and entry.get("key") is not None:
            flat[str(entry["key"])] = entry.get("value")
    return flat


def normalize_items(items: Any) -> List[Dict[str, Any]]:
    """
    Item rows as flat dicts.

    Stored invoices keep their rows as a bare list, under ``fields`` or under
    ``rows``; a row may itself carry a ``fields`` list of key/value pairs.
    """
    if isinstance(items, Mapping):
        items = _first(items, "fields", "rows", default=[])
    if not isinstance(items, list):
        if items is not None:
            logger.warning(f"Invoice items are a {type(items).__name__}, not a list; ignoring")
        return []

    rows = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            logger.warning(f"items: skipping malformed row #{index}: {item!r}")
            continue
        row = {k: v for k, v in item.items() if k != "fields"}
        row.update(flatten_fields(item.get("fields")))
        rows.append(row)
    return rows


def default_template() -> TemplateSchema:
    """Starter template offered when a user creates a new one"""
    return normalize({
        "name": "Standard Invoice",
        "header": {
            "title": "INVOICE",
            "fields": [
                {"key": "name", "label": "Company Name", "bold": True},
                {"key": "address", "label": "Address"},
                {"key": "gstin", "label": "GSTIN"},
            ],
        },
        "invoice_meta": {
            "fields": [
                {"key": "invoice_no", "label": "Invoice #"},
                {"key": "date", "label": "Date", "type": "date"},
            ],
        },
        "customer_details": {
            "bill_to": {"title": "Bill To", "fields": [
                {"key": "name", "label": "Name"},
                {"key": "address", "label": "Address"},
                {"key": "gstin", "label": "GSTIN"},
                {"key": "state", "label": "State"},
            ]},
            "ship_to": {"title": "Ship To", "fields": [
                {"key": "name", "label": "Name"},
                {"key": "address", "label": "Address"},
            ]},
        },
        "items": {
            "columns": [
                {"key": "sno", "label": "#", "width": "10%", "align": "center"},
                {"key": "description", "label": "Item & Description", "width": "40%"},
                {"key": "qty", "label": "Qty", "type": "number", "width": "15%", "align": "right"},
                {"key": "rate", "label": "Rate", "type": "number", "width": "15%", "align": "right"},
                {"key": "total", "label": "Amount", "type": "formula", "formula": "[Qty] * [Rate]",
                 "width": "20%", "align": "right"},
            ],
        },
        "summary": {
            "fields": [
                {"key": "subtotal", "label": "Sub Total", "source_column": "total", "function": "sum"},
                {"key": "grand_total", "label": "Total (INR)", "bold": True, "analytics_column": "Total",
                 "aggregations": [{"function": "sum", "source_column": "total", "operator": "+"}]},
            ],
        },
        "footer": {
            "signature_label": "Authorized Signatory",
            "fields": [
                {"key": "bank_name", "label": "Bank Name"},
                {"key": "account_no", "label": "Account No."},
                {"key": "ifsc", "label": "IFSC"},
            ],
        },
    })


class TemplateNormalizer(Stage[Any, TemplateSchema]):
    """Stage 0: Normalization - accept any stored template shape"""

    @property
    def name(self) -> str:
        return "Normalization"

    @property
    def stage_number(self) -> int:
        return 0

    def validate_input(self, input_data: Any) -> bool:
        # Anything is acceptable; defaults cover the rest
        return True

    def execute(self, input_data: Any) -> TemplateSchema:
        if isinstance(input_data, TemplateSchema):
            return input_data
        return normalize(input_data)
