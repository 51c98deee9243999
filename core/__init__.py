"""Core abstractions for Billsmith"""

from .models import *
from .enums import *
from .exceptions import *
from .interfaces import *

__all__ = [
    # Models
    "Unfilled",
    "Filled",
    "DisplayStyle",
    "TemplateField",
    "Column",
    "Aggregation",
    "SummaryField",
    "HeaderSection",
    "MetaSection",
    "CustomerBlock",
    "CustomerSection",
    "TableSection",
    "SummarySection",
    "FooterSection",
    "TemplateSchema",
    "FormulaCheck",
    "RowComputation",
    "ColumnBand",
    "PageLayout",
    "DocumentStyle",
    "SummaryLine",
    "AnalyticsTotals",
    "RenderedRow",
    "InvoiceDocument",
    # Enums
    "ColumnType",
    "Align",
    "AggregateFunction",
    "ChainOperator",
    "ComputeMode",
    "CircularFallback",
    "AnalyticsColumn",
    "DisplayLayout",
    # Exceptions
    "BillsmithError",
    "PipelineError",
    "StageError",
    "FormulaSyntaxError",
    "TemplateFileError",
    # Interfaces
    "Stage",
]
