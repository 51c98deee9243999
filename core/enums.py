"""Core enumerations for Billsmith"""

from enum import Enum


class ColumnType(str, Enum):
    """Item table column type"""
    TEXT = "text"
    NUMBER = "number"
    FORMULA = "formula"
    DATE = "date"


class Align(str, Enum):
    """Horizontal cell alignment"""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class AggregateFunction(str, Enum):
    """Column aggregate used by summary fields"""
    SUM = "sum"
    SUB = "sub"  # negated sum, for deduction lines
    MUL = "mul"
    AVG = "avg"
    MAX = "max"
    MIN = "min"


class ChainOperator(str, Enum):
    """Operator joining an aggregate to the running summary result"""
    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
    DIVIDE = "/"


class ComputeMode(str, Enum):
    """Context a row is computed in"""
    RENDER = "render"
    INTERACTIVE = "interactive"


class CircularFallback(str, Enum):
    """How cells on a formula cycle resolve"""
    BLANK = "blank"
    LAST_PASS = "last_pass"


class AnalyticsColumn(str, Enum):
    """Invoice-level figures a summary field can feed"""
    TOTAL = "Total"
    TAX = "Tax"
    QUANTITY = "Quantity"


class DisplayLayout(str, Enum):
    """Label/value arrangement of a field block"""
    COLUMN = "col"
    ROW = "row"
