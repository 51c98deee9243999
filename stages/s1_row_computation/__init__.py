"""Stage 1: Row Computation"""

from .engine import RowComputer, compute_row, compute_row_detailed, compute_rows
from .expression import evaluate, check_formula, extract_tags, build_label_map
from .dependencies import FormulaGraph

__all__ = [
    "RowComputer",
    "compute_row",
    "compute_row_detailed",
    "compute_rows",
    "evaluate",
    "check_formula",
    "extract_tags",
    "build_label_map",
    "FormulaGraph",
]
