"""Core data models for Billsmith"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from config import settings
from utils.numbers import parse_float
from .enums import (
    AggregateFunction, Align, AnalyticsColumn, ChainOperator, ColumnType,
    DisplayLayout,
)


class SchemaModel(BaseModel):
    """Immutable template building block"""
    model_config = ConfigDict(frozen=True)


# ─────────────────────────────────────────────────────────────
# Styling
# ─────────────────────────────────────────────────────────────

class Unfilled(SchemaModel):
    """Accent colour explicitly cleared by the user"""
    kind: Literal["unfilled"] = "unfilled"

    @property
    def is_filled(self) -> bool:
        return False

    def resolve(self, fallback: Optional[str] = None) -> str:
        return fallback or settings.UNFILLED_ACCENT_COLOR


class Filled(SchemaModel):
    """Accent colour set to a real colour value"""
    kind: Literal["filled"] = "filled"
    value: str

    @property
    def is_filled(self) -> bool:
        return True

    def resolve(self, fallback: Optional[str] = None) -> str:
        return self.value


AccentColor = Annotated[Union[Filled, Unfilled], Field(discriminator="kind")]


def _default_accent() -> Filled:
    return Filled(value=settings.DEFAULT_ACCENT_COLOR)


class DisplayStyle(SchemaModel):
    """Label/value presentation of a field block"""
    layout: DisplayLayout = DisplayLayout.COLUMN
    label_bold: bool = True
    show_label: bool = True


# ─────────────────────────────────────────────────────────────
# Template sections
# ─────────────────────────────────────────────────────────────

class TemplateField(SchemaModel):
    """Single labelled field in a header, meta, customer or footer section"""
    key: str
    label: str = ""
    type: str = "text"
    visible: bool = True
    bold: bool = False
    value: Optional[Any] = None  # static value, e.g. bank details


class Column(SchemaModel):
    """Item table column"""
    key: str
    label: str = ""
    type: ColumnType = ColumnType.TEXT
    formula: str = ""
    width: str = ""
    align: Align = Align.LEFT
    group: Optional[str] = None
    visible: bool = True

    @property
    def is_formula(self) -> bool:
        return self.type == ColumnType.FORMULA and bool(self.formula.strip())

    @property
    def is_numeric(self) -> bool:
        return self.type in (ColumnType.NUMBER, ColumnType.FORMULA)

    @property
    def width_percent(self) -> float:
        return parse_float(self.width) or 0.0


class Aggregation(SchemaModel):
    """One link of a chained summary aggregation"""
    function: AggregateFunction = AggregateFunction.SUM
    source_column: str = ""
    operator: ChainOperator = ChainOperator.ADD


class SummaryField(SchemaModel):
    """One line of the totals panel"""
    key: str
    label: str = ""
    visible: bool = True
    bold: bool = False
    source_column: Optional[str] = None
    function: Optional[AggregateFunction] = None
    aggregations: Tuple[Aggregation, ...] = ()
    analytics_column: Optional[AnalyticsColumn] = None

    @property
    def is_manual(self) -> bool:
        return not self.aggregations and not self.source_column


class HeaderSection(SchemaModel):
    """Company details block and global style knobs"""
    show_logo: bool = True
    logo_url: Optional[str] = None
    title: str = "INVOICE"
    title_font_size: int = Field(default_factory=lambda: settings.DEFAULT_HEADER_FONT_SIZE)
    title_opacity: float = Field(default_factory=lambda: settings.DEFAULT_HEADER_OPACITY)
    accent_color: AccentColor = Field(default_factory=_default_accent)
    font_family: str = Field(default_factory=lambda: settings.DEFAULT_FONT_FAMILY)
    body_font_size: int = Field(default_factory=lambda: settings.DEFAULT_BODY_FONT_SIZE)
    fields: Tuple[TemplateField, ...] = ()


class MetaSection(SchemaModel):
    """Invoice number, dates and other metadata"""
    column_count: int = 1
    display_style: DisplayStyle = DisplayStyle()
    fields: Tuple[TemplateField, ...] = ()


class CustomerBlock(SchemaModel):
    title: str
    fields: Tuple[TemplateField, ...] = ()


class CustomerSection(SchemaModel):
    display_style: DisplayStyle = DisplayStyle()
    billing: CustomerBlock = CustomerBlock(title="Bill To")
    shipping: CustomerBlock = CustomerBlock(title="Ship To")


class TableSection(SchemaModel):
    """Item table columns and table styling"""
    columns: Tuple[Column, ...] = ()
    header_text_color: Optional[str] = None
    header_padding: int = Field(default_factory=lambda: settings.DEFAULT_HEADER_PADDING)
    row_padding: int = Field(default_factory=lambda: settings.DEFAULT_ROW_PADDING)
    border_width: float = Field(default_factory=lambda: settings.DEFAULT_BORDER_WIDTH)
    border_opacity: float = 1.0


class SummarySection(SchemaModel):
    title: str = "Summary"
    fields: Tuple[SummaryField, ...] = ()


class FooterSection(SchemaModel):
    title: str = "Bank Details"
    signature_label: str = "Authorized Signatory"
    show_bank_details: bool = True
    fields: Tuple[TemplateField, ...] = ()


class TemplateSchema(SchemaModel):
    """Aggregate root of a normalized invoice template"""
    template_id: Optional[str] = None
    name: Optional[str] = None
    header: HeaderSection = Field(default_factory=HeaderSection)
    meta: MetaSection = MetaSection()
    customer: CustomerSection = CustomerSection()
    table: TableSection = Field(default_factory=TableSection)
    summary: SummarySection = SummarySection()
    footer: FooterSection = FooterSection()

    @property
    def columns(self) -> Tuple[Column, ...]:
        return self.table.columns

    @property
    def visible_columns(self) -> List[Column]:
        return [col for col in self.table.columns if col.visible]


# ─────────────────────────────────────────────────────────────
# Stage 1: Row computation
# ─────────────────────────────────────────────────────────────

class FormulaCheck(BaseModel):
    """Editor feedback for a single formula"""
    tags: List[str] = []
    unknown_labels: List[str] = []
    valid: bool = True


class RowComputation(BaseModel):
    """Resolved values of one row plus evaluation diagnostics"""
    values: Dict[str, Any] = {}
    passes: int = 0
    converged: bool = True
    circular_columns: List[str] = []
    evaluated: List[str] = []  # formula columns whose last evaluation gave a number


# ─────────────────────────────────────────────────────────────
# Stage 3: Layout
# ─────────────────────────────────────────────────────────────

class ColumnBand(BaseModel):
    """Run of adjacent columns rendered under one header band"""
    name: Optional[str] = None
    column_keys: List[str] = []
    width_mm: float = 0.0

    @property
    def grouped(self) -> bool:
        return bool(self.name)


class PageLayout(BaseModel):
    """Physical geometry of the item table and page"""
    total_percent: float = 0.0
    scale: float = 1.0
    content_width_mm: float = 0.0
    page_width_mm: float = 0.0
    page_height_mm: float = 0.0
    column_widths: Dict[str, float] = {}
    bands: List[ColumnBand] = []

    def width_of(self, column: Union[Column, str]) -> float:
        """Physical width in mm; hidden or unknown columns are 0"""
        key = column if isinstance(column, str) else column.key
        return self.column_widths.get(key, 0.0)


class DocumentStyle(BaseModel):
    """Resolved colours and spacing for a renderer"""
    accent_filled: bool = True
    accent_color: str = ""
    border_color: str = ""
    header_background: str = "transparent"
    header_text_color: str = ""
    title_color: str = ""
    table_border: str = ""
    font_family: str = ""
    body_font_size: int = 0
    title_font_size: int = 0
    header_padding: int = 0
    row_padding: int = 0


# ─────────────────────────────────────────────────────────────
# Stage 4: Document
# ─────────────────────────────────────────────────────────────

class SummaryLine(BaseModel):
    key: str
    label: str
    value: float = 0.0
    display: str = ""
    bold: bool = False


class AnalyticsTotals(BaseModel):
    """Invoice-level figures stored alongside the invoice"""
    total: Optional[float] = None
    tax: Optional[float] = None
    quantity: Optional[float] = None


class RenderedRow(BaseModel):
    position: int
    values: Dict[str, Any] = {}
    display: Dict[str, str] = {}
    circular_columns: List[str] = []


class InvoiceDocument(BaseModel):
    """Everything a presentation layer needs to paint one invoice"""
    header: Dict[str, Any] = {}
    meta: Dict[str, Any] = {}
    bill_to: Dict[str, Any] = {}
    ship_to: Dict[str, Any] = {}
    footer: Dict[str, Any] = {}
    rows: List[RenderedRow] = []
    summary: List[SummaryLine] = []
    summary_values: Dict[str, float] = {}
    grand_total: float = 0.0
    amount_in_words: str = ""
    totals: AnalyticsTotals = AnalyticsTotals()
    layout: PageLayout = PageLayout()
    style: DocumentStyle = DocumentStyle()
