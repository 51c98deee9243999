"""Stage 2: Aggregation - resolve summary fields over computed rows."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from core.enums import AggregateFunction, AnalyticsColumn, ChainOperator
from core.interfaces import Stage
from core.models import Aggregation, AnalyticsTotals, SummaryField
from utils.numbers import to_number

logger = logging.getLogger(__name__)

Rows = Sequence[Mapping[str, Any]]


def _function(value: Union[AggregateFunction, str, None]) -> AggregateFunction:
    try:
        return AggregateFunction(value or AggregateFunction.SUM)
    except ValueError:
        logger.warning(f"Unknown aggregate function {value!r}; using sum")
        return AggregateFunction.SUM


def _operator(value: Union[ChainOperator, str, None]) -> ChainOperator:
    try:
        return ChainOperator(value or ChainOperator.ADD)
    except ValueError:
        logger.warning(f"Unknown chain operator {value!r}; using +")
        return ChainOperator.ADD


def column_values(column_key: str, rows: Rows) -> List[float]:
    """Numeric values of one column; anything non-numeric counts as 0"""
    return [to_number(row.get(column_key)) or 0.0 for row in rows]


def _finite_or_zero(value: float, what: str) -> float:
    if math.isfinite(value):
        return value
    logger.warning(f"{what} overflowed to {value}; using 0")
    return 0.0


def _reduce(function: AggregateFunction, values: List[float]) -> float:
    if function == AggregateFunction.SUB:
        return -sum(values)
    if function == AggregateFunction.MUL:
        product = 1.0
        for value in values:
            product *= value
        return product
    if function == AggregateFunction.AVG:
        return sum(values) / len(values)
    if function == AggregateFunction.MAX:
        return max(values)
    if function == AggregateFunction.MIN:
        return min(values)
    return float(sum(values))


def aggregate_column(column_key: str, function: Union[AggregateFunction, str, None], rows: Rows) -> float:
    """
    Aggregate one column across all rows.

    ``sub`` is the negated sum and represents a deduction line. An empty row
    set yields 0 for every function, and so does a result that overflows.
    """
    values = column_values(column_key, rows)
    if not values:
        return 0.0

    function = _function(function)
    return _finite_or_zero(_reduce(function, values), f"{function.value} of column {column_key!r}")


def combine(running: float, operator: Union[ChainOperator, str, None], value: float) -> float:
    operator = _operator(operator)
    if operator == ChainOperator.SUBTRACT:
        result = running - value
    elif operator == ChainOperator.MULTIPLY:
        result = running * value
    elif operator == ChainOperator.DIVIDE:
        # Division by a zero aggregate leaves the running result untouched
        result = running / value if value != 0 else running
    else:
        result = running + value
    return _finite_or_zero(result, f"Chain step {operator.value}")


def aggregate_chain(aggregations: Iterable[Aggregation], rows: Rows) -> float:
    """
    Combine several column aggregates left to right.

    The first aggregate seeds the result; each later one is folded in with
    its own operator, e.g. Subtotal - Discount + Tax.
    """
    result = 0.0
    for index, agg in enumerate(aggregations):
        value = aggregate_column(agg.source_column, agg.function, rows)
        result = value if index == 0 else combine(result, agg.operator, value)
    return result


def resolve_summary_field(field: SummaryField, rows: Rows, manual_value: Any = None) -> float:
    if field.aggregations:
        return aggregate_chain(field.aggregations, rows)
    if field.source_column:
        return aggregate_column(field.source_column, field.function or AggregateFunction.SUM, rows)
    return to_number(manual_value) or 0.0


def resolve_summary(
    fields: Iterable[SummaryField],
    rows: Rows,
    manual_values: Optional[Mapping[str, Any]] = None,
) -> Dict[str, float]:
    """Resolved value of every summary field keyed by field key"""
    manual_values = manual_values or {}
    return {
        field.key: resolve_summary_field(field, rows, manual_values.get(field.key))
        for field in fields
    }


def analytics_totals(
    fields: Iterable[SummaryField],
    rows: Rows,
    manual_values: Optional[Mapping[str, Any]] = None,
) -> AnalyticsTotals:
    """Invoice-level total, tax and quantity from fields tagged with an analytics column"""
    manual_values = manual_values or {}
    totals: Dict[str, float] = {}
    for field in fields:
        if field.analytics_column is None:
            continue
        value = resolve_summary_field(field, rows, manual_values.get(field.key))
        if field.analytics_column == AnalyticsColumn.TOTAL:
            totals["total"] = value
        elif field.analytics_column == AnalyticsColumn.TAX:
            totals["tax"] = value
        elif field.analytics_column == AnalyticsColumn.QUANTITY:
            totals["quantity"] = value
    return AnalyticsTotals(**totals)


class SummaryAggregator(Stage[Dict[str, Any], Dict[str, float]]):
    """Resolve the totals panel of an invoice."""

    @property
    def name(self) -> str:
        return "Aggregation"

    @property
    def stage_number(self) -> int:
        return 2

    def validate_input(self, input_data: Dict[str, Any]) -> bool:
        return isinstance(input_data, dict) and "fields" in input_data and "rows" in input_data

    def execute(self, input_data: Dict[str, Any]) -> Dict[str, float]:
        return resolve_summary(
            input_data["fields"],
            input_data["rows"],
            input_data.get("manual_values"),
        )
