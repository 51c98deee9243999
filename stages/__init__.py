"""Pipeline stages"""

from .s0_normalization import TemplateNormalizer
from .s1_row_computation import RowComputer
from .s2_aggregation import SummaryAggregator
from .s3_layout import LayoutEngine
from .s4_document import DocumentAssembler

__all__ = [
    "TemplateNormalizer",
    "RowComputer",
    "SummaryAggregator",
    "LayoutEngine",
    "DocumentAssembler",
]
