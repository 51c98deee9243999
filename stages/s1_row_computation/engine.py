"""Stage 1: Row Computation - resolve formula columns of every item row."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config import settings
from core.enums import CircularFallback, ComputeMode
from core.interfaces import Stage
from core.models import Column, RowComputation
from utils.numbers import parse_float
from .dependencies import FormulaGraph
from .expression import NO_VALUE, build_label_map, evaluate

logger = logging.getLogger(__name__)

SERIAL_LABELS = {"s.no", "s. no", "#"}
SERIAL_KEYS = {"sno"}
DESCRIPTION_LABEL = "item & description"
DESCRIPTION_KEYS = ("description", "item_description")


def is_serial_column(column: Column) -> bool:
    return column.key in SERIAL_KEYS or column.label.strip().lower() in SERIAL_LABELS


def _field_value(row: Mapping[str, Any], keys: Iterable[str]) -> Optional[Any]:
    fields = row.get("fields")
    if not isinstance(fields, list):
        return None
    wanted = set(keys)
    for entry in fields:
        if isinstance(entry, Mapping) and entry.get("key") in wanted:
            return entry.get("value")
    return None


def raw_value(row: Mapping[str, Any], column: Column) -> Optional[Any]:
    """Look a column up in a flat row or in its ``fields`` list"""
    if column.label.strip().lower() == DESCRIPTION_LABEL:
        for candidate in (row.get("description"), row.get(column.label)):
            if candidate:
                return candidate
        described = _field_value(row, DESCRIPTION_KEYS)
        if described is not None:
            return described
    if column.key in row:
        return row[column.key]
    return _field_value(row, [column.key])


def initial_values(row: Mapping[str, Any], columns: Iterable[Column], position: int = 0) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for column in columns:
        if is_serial_column(column):
            values[column.key] = position + 1
            continue
        raw = raw_value(row, column)
        if column.is_numeric:
            values[column.key] = parse_float(raw) or 0.0
        else:
            values[column.key] = raw if raw is not None else ""
    return values


def circular_policy(fallback: Optional[CircularFallback] = None) -> CircularFallback:
    try:
        return CircularFallback(fallback or settings.CIRCULAR_FORMULA_FALLBACK)
    except ValueError:
        logger.warning(f"Unknown circular fallback {settings.CIRCULAR_FORMULA_FALLBACK!r}; using blank")
        return CircularFallback.BLANK


def pass_limit(mode: ComputeMode, graph: FormulaGraph) -> int:
    """Configured bound, raised to one pass per formula level plus a confirming pass"""
    base = settings.INTERACTIVE_PASSES if mode == ComputeMode.INTERACTIVE else settings.RENDER_MAX_PASSES
    return max(base, graph.max_depth + 2)


def compute_row_detailed(
    row: Mapping[str, Any],
    columns: Iterable[Column],
    position: int = 0,
    editing_key: Optional[str] = None,
    mode: ComputeMode = ComputeMode.RENDER,
    fallback: Optional[CircularFallback] = None,
) -> RowComputation:
    """
    Resolve every formula column of one row by bounded fixpoint iteration.

    All formula columns are re-evaluated each pass until nothing changes or
    the pass limit is hit. Columns on a formula cycle are reported in
    ``circular_columns``; with the ``blank`` fallback they resolve to "" and
    are not evaluated.

    Args:
        row: Raw row, flat or with a ``fields`` list
        columns: Item table columns in display order
        position: Zero-based row index, used for the serial column
        editing_key: Column the user is typing into (interactive mode only)
        mode: Render stores "" results; interactive keeps the previous value
        fallback: Circular policy, defaults to config
    """
    columns = list(columns)
    fallback = circular_policy(fallback)
    values = initial_values(row, columns, position)
    graph = FormulaGraph.build(columns)
    label_to_key = build_label_map(columns)

    skip = editing_key if mode == ComputeMode.INTERACTIVE else None
    targets = [col for col in columns if col.is_formula and col.key != skip]
    circular = [col.key for col in columns if col.key in graph.circular]
    if circular:
        logger.warning(f"Circular formula references in columns {circular}; row {position + 1}")
        if fallback == CircularFallback.BLANK:
            for key in circular:
                if key != skip:
                    values[key] = NO_VALUE
            targets = [col for col in targets if col.key not in graph.circular]

    evaluated = set()
    limit = pass_limit(mode, graph)
    passes = 0
    changed = True
    while changed and passes < limit:
        changed = False
        passes += 1
        for column in targets:
            result = evaluate(column.formula, values, label_to_key)
            if result == NO_VALUE:
                evaluated.discard(column.key)
            else:
                evaluated.add(column.key)
            if result == NO_VALUE and mode == ComputeMode.INTERACTIVE:
                continue
            if values[column.key] != result:
                values[column.key] = result
                changed = True

    logger.debug(f"Row {position + 1} resolved in {passes} pass(es), converged={not changed}")
    return RowComputation(
        values=values,
        passes=passes,
        converged=not changed,
        circular_columns=circular,
        evaluated=[col.key for col in targets if col.key in evaluated],
    )


def compute_row(
    row: Mapping[str, Any],
    columns: Iterable[Column],
    position: int = 0,
    editing_key: Optional[str] = None,
    mode: ComputeMode = ComputeMode.RENDER,
) -> Dict[str, Any]:
    """Resolved values of one row keyed by column key"""
    return compute_row_detailed(row, columns, position, editing_key, mode).values


def compute_rows(rows: Iterable[Mapping[str, Any]], columns: Iterable[Column]) -> List[Dict[str, Any]]:
    columns = list(columns)
    return [compute_row(row, columns, position) for position, row in enumerate(rows)]


class RowComputer(Stage[Dict[str, Any], List[RowComputation]]):
    """Compute every item row of an invoice against the template columns."""

    @property
    def name(self) -> str:
        return "Row Computation"

    @property
    def stage_number(self) -> int:
        return 1

    def validate_input(self, input_data: Dict[str, Any]) -> bool:
        return isinstance(input_data, dict) and "columns" in input_data and "items" in input_data

    def execute(self, input_data: Dict[str, Any]) -> List[RowComputation]:
        columns = list(input_data["columns"])
        return [
            compute_row_detailed(row, columns, position)
            for position, row in enumerate(input_data["items"])
        ]
