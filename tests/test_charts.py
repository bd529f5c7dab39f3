from __future__ import annotations

import pytest

from sheetbridge.charts import ChartBoard
from sheetbridge.ops.models import ChartRecord, ChartSeries


def _chart(chart_id: str, title: str = "") -> ChartRecord:
    return ChartRecord(
        id=chart_id,
        chart_type="bar",
        title=title,
        x_labels=["Q1"],
        series=[ChartSeries(name="Sales", values=[1.0])],
    )


def test_add_replaces_same_id_in_place() -> None:
    board = ChartBoard()
    board.add(_chart("a"))
    board.add(_chart("b"))
    board.add(_chart("a", title="updated"))
    assert [chart.id for chart in board.charts] == ["a", "b"]
    chart = board.get("a")
    assert chart is not None
    assert chart.title == "updated"


def test_remove_collapses_expanded_chart() -> None:
    board = ChartBoard()
    board.add(_chart("a"))
    board.set_expanded("a")
    assert board.remove("a") is True
    assert board.expanded_chart_id is None
    assert board.remove("a") is False
    assert len(board) == 0


def test_set_expanded_rejects_unknown_chart() -> None:
    board = ChartBoard()
    with pytest.raises(KeyError):
        board.set_expanded("missing")
    board.set_expanded(None)
    assert board.expanded_chart_id is None
