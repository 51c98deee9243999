from core.enums import CircularFallback, ColumnType, ComputeMode
from core.models import Column
from stages.s1_row_computation import (
    FormulaGraph, RowComputer, compute_row, compute_row_detailed, compute_rows,
)


def _columns():
    return [
        Column(key="sno", label="S.No"),
        Column(key="description", label="Item & Description"),
        Column(key="qty", label="Quantity", type=ColumnType.NUMBER),
        Column(key="price", label="Price", type=ColumnType.NUMBER),
        Column(key="total", label="Total", type=ColumnType.FORMULA, formula="[Quantity] * [Price]"),
    ]


def test_formula_column_resolves():
    values = compute_row({"qty": "3", "price": "12.5"}, _columns())
    assert values["total"] == 37.5
    assert values["qty"] == 3.0


def test_serial_column_uses_row_position():
    rows = compute_rows([{"qty": 1}, {"qty": 2}], _columns())
    assert [row["sno"] for row in rows] == [1, 2]


def test_rows_with_fields_list_and_description_fallback():
    row = {"description": "Widget", "fields": [{"key": "qty", "value": "2"}, {"key": "price", "value": "5"}]}
    values = compute_row(row, _columns())
    assert values["description"] == "Widget"
    assert values["total"] == 10.0


def test_non_numeric_input_coerces_to_zero():
    values = compute_row({"qty": "many", "price": "5"}, _columns())
    assert values["qty"] == 0.0
    assert values["total"] == 0.0


def test_formula_order_does_not_matter():
    columns = [
        Column(key="gross", label="Gross", type=ColumnType.FORMULA, formula="[Net] + [Tax]"),
        Column(key="tax", label="Tax", type=ColumnType.FORMULA, formula="[Net] * 0.18"),
        Column(key="net", label="Net", type=ColumnType.FORMULA, formula="[Quantity] * [Price]"),
        Column(key="qty", label="Quantity", type=ColumnType.NUMBER),
        Column(key="price", label="Price", type=ColumnType.NUMBER),
    ]
    values = compute_row({"qty": 2, "price": 50}, columns)
    assert values["net"] == 100.0
    assert values["tax"] == 18.0
    assert values["gross"] == 118.0


def test_long_reversed_chain_converges():
    # f1 reads f2 ... f7 reads Base: deeper than the default pass limit
    columns = [
        Column(key=f"f{i}", label=f"F{i}", type=ColumnType.FORMULA, formula=f"[F{i + 1}] + 1")
        for i in range(1, 7)
    ]
    columns.append(Column(key="f7", label="F7", type=ColumnType.FORMULA, formula="[Base]"))
    columns.append(Column(key="base", label="Base", type=ColumnType.NUMBER))

    result = compute_row_detailed({"base": 10}, columns)
    assert result.converged
    assert result.values["f1"] == 16.0
    assert result.values["f7"] == 10.0


def test_computation_is_idempotent():
    row = {"qty": "3", "price": "12.5"}
    assert compute_row(row, _columns()) == compute_row(row, _columns())


def test_render_mode_stores_no_value():
    columns = _columns()[2:4] + [
        Column(key="ratio", label="Ratio", type=ColumnType.FORMULA, formula="[Quantity] / [Price]"),
    ]
    values = compute_row({"qty": 3, "price": 0, "ratio": 5}, columns)
    assert values["ratio"] == ""


def test_interactive_mode_keeps_previous_value_on_no_value():
    columns = _columns()[2:4] + [
        Column(key="ratio", label="Ratio", type=ColumnType.FORMULA, formula="[Quantity] / [Price]"),
    ]
    values = compute_row({"qty": 3, "price": 0, "ratio": 5}, columns, mode=ComputeMode.INTERACTIVE)
    assert values["ratio"] == 5.0


def test_interactive_mode_skips_the_edited_column():
    values = compute_row(
        {"qty": 3, "price": 12.5, "total": "100"},
        _columns(),
        editing_key="total",
        mode=ComputeMode.INTERACTIVE,
    )
    assert values["total"] == 100.0


def test_circular_columns_are_flagged_and_blanked():
    columns = [
        Column(key="a", label="A", type=ColumnType.FORMULA, formula="[B] + 1"),
        Column(key="b", label="B", type=ColumnType.FORMULA, formula="[A] + 1"),
        Column(key="c", label="C", type=ColumnType.FORMULA, formula="[C] * 2"),
        Column(key="qty", label="Quantity", type=ColumnType.NUMBER),
        Column(key="double", label="Double", type=ColumnType.FORMULA, formula="[Quantity] * 2"),
    ]
    result = compute_row_detailed({"qty": 4}, columns)
    assert result.circular_columns == ["a", "b", "c"]
    assert result.values["a"] == ""
    assert result.values["c"] == ""
    assert result.values["double"] == 8.0


def test_circular_last_pass_fallback_is_bounded():
    columns = [
        Column(key="a", label="A", type=ColumnType.FORMULA, formula="[B] + 1"),
        Column(key="b", label="B", type=ColumnType.FORMULA, formula="[A] + 1"),
    ]
    result = compute_row_detailed({}, columns, fallback=CircularFallback.LAST_PASS)
    assert result.circular_columns == ["a", "b"]
    assert result.passes == 5
    assert not result.converged
    assert isinstance(result.values["a"], float)


def test_formula_graph_order_and_depths():
    columns = [
        Column(key="gross", label="Gross", type=ColumnType.FORMULA, formula="[Net] + [Tax]"),
        Column(key="tax", label="Tax", type=ColumnType.FORMULA, formula="[Net] * 0.18"),
        Column(key="net", label="Net", type=ColumnType.FORMULA, formula="[Quantity] * [Price]"),
    ]
    graph = FormulaGraph.build(columns)
    assert graph.execution_order == ["net", "tax", "gross"]
    assert graph.depths == {"net": 0, "tax": 1, "gross": 2}
    assert graph.max_depth == 2
    assert graph.circular == set()


def test_row_computer_stage():
    stage = RowComputer()
    data = {"columns": _columns(), "items": [{"qty": 2, "price": 4}]}
    assert stage.validate_input(data)
    assert not stage.validate_input({"items": []})

    results = stage.execute(data)
    assert results[0].values["total"] == 8.0
    assert results[0].converged


def test_huge_literal_formula_resolves():
    columns = [Column(key="big", label="Big", type=ColumnType.FORMULA, formula="100000000000000000000000000000 + 1")]
    assert compute_row({}, columns)["big"] == 1e29


def test_interactive_reports_which_formulas_evaluated():
    columns = _columns() + [
        Column(key="unit", label="Unit", type=ColumnType.FORMULA, formula="[Total] / [Quantity]"),
    ]
    result = compute_row_detailed({"qty": "0", "price": "5"}, columns, mode=ComputeMode.INTERACTIVE)
    assert result.evaluated == ["total"]
    assert result.values["unit"] == 0.0
