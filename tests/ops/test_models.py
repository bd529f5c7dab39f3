from __future__ import annotations

from pydantic import ValidationError
import pytest

from sheetbridge.ops.chart_types import normalize_chart_type
from sheetbridge.ops.models import (
    OPERATION_ADAPTER,
    OPERATION_MODELS,
    AddChart,
    ConditionalFormat,
    FormatCells,
    InsertRow,
    OperationError,
    SetColumnWidth,
    WriteRange,
)
from sheetbridge.ops.specs import OPERATION_SPECS, get_alias_map_for_operation


def test_operation_union_dispatches_on_kind() -> None:
    op = OPERATION_ADAPTER.validate_python(
        {"kind": "write_range", "startRow": 1, "startCol": 2, "values": [[1, 2]]}
    )
    assert isinstance(op, WriteRange)
    assert (op.start_row, op.start_col) == (1, 2)
    assert op.sheet is None


def test_operation_union_rejects_unknown_kind() -> None:
    with pytest.raises(ValidationError):
        OPERATION_ADAPTER.validate_python({"kind": "delete_everything"})


def test_wire_models_dump_camel_case() -> None:
    op = FormatCells.model_validate(
        {
            "range": {"startRow": 0, "startCol": 0, "endRow": 1, "endCol": 1},
            "backgroundColor": "c8e6c9",
        }
    )
    dumped = op.model_dump(by_alias=True, exclude_none=True)
    assert dumped["backgroundColor"] == "#C8E6C9"
    assert dumped["range"]["endCol"] == 1
    assert op.bold is None


def test_format_cells_rejects_invalid_color() -> None:
    with pytest.raises(ValidationError, match="Invalid color format"):
        FormatCells.model_validate(
            {
                "range": {"startRow": 0, "startCol": 0, "endRow": 0, "endCol": 0},
                "textColor": "blue",
            }
        )


def test_set_column_width_rejects_non_positive() -> None:
    with pytest.raises(ValidationError, match="must be > 0"):
        SetColumnWidth.model_validate({"columns": {"0": 0}})


def test_add_chart_normalizes_type_and_labels() -> None:
    chart = AddChart.model_validate(
        {
            "chartType": "Column",
            "title": "Revenue",
            "xLabels": [2023, None],
            "series": [{"name": "Sales", "values": [1, 2.5]}],
        }
    )
    assert chart.chart_type == "bar"
    assert chart.x_labels == ["2023", ""]
    assert chart.id is None


def test_add_chart_requires_series() -> None:
    with pytest.raises(ValidationError):
        AddChart.model_validate({"chartType": "line", "series": []})


def test_normalize_chart_type() -> None:
    assert normalize_chart_type("doughnut") == "pie"
    assert normalize_chart_type(" Area ") == "area"
    assert normalize_chart_type("scatter") is None


def test_every_kind_has_model_and_spec() -> None:
    assert set(OPERATION_MODELS) == set(OPERATION_SPECS)
    assert get_alias_map_for_operation("unknown") == {}


def test_operation_error_hint_lists_required_fields() -> None:
    error = OperationError.from_operation(
        "write_range", ValueError("boom"), tool_call_id="call-1"
    )
    assert error.detail.message == "boom"
    assert error.detail.tool_call_id == "call-1"
    assert error.detail.hint == "write_range requires: startRow, startCol, values."


def test_operation_error_hint_for_unknown_kind() -> None:
    error = OperationError.from_operation("explode", ValueError("nope"))
    assert error.detail.hint is not None
    assert error.detail.hint.startswith("Unknown operation. Use one of: write_cell")


def test_null_optional_fields_fall_back_to_defaults() -> None:
    conditional = OPERATION_ADAPTER.validate_python(
        {
            "kind": "conditional_format",
            "range": {"startRow": 0, "startCol": 0, "endRow": 2, "endCol": 0},
            "rule": "highlight_negative",
            "threshold": None,
            "colorHigh": None,
            "sheet": None,
        }
    )
    assert isinstance(conditional, ConditionalFormat)
    assert conditional.threshold == 0.0
    assert conditional.color_high is None
    assert conditional.sheet is None

    insert = OPERATION_ADAPTER.validate_python(
        {"kind": "insert_row", "index": 0, "count": None}
    )
    assert isinstance(insert, InsertRow)
    assert insert.count == 1

    chart = AddChart.model_validate(
        {
            "chartType": "bar",
            "title": None,
            "xLabels": None,
            "series": [{"name": "Sales", "values": None}],
        }
    )
    assert chart.title == ""
    assert chart.x_labels == []
    assert chart.series[0].values == []


def test_null_required_field_is_still_rejected() -> None:
    with pytest.raises(ValidationError):
        OPERATION_ADAPTER.validate_python(
            {"kind": "insert_row", "index": None, "count": 2}
        )
