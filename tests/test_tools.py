from __future__ import annotations

from sheetbridge.session import SessionManager
from sheetbridge.snapshot import estimate_tokens
from sheetbridge.tools import (
    ApplyEventsToolInput,
    ApplyToolInput,
    run_apply_events_tool,
    run_apply_tool,
    run_list_operations_tool,
    run_sessions_tool,
    run_snapshot_tool,
    run_system_prompt_tool,
)


def test_run_apply_tool_executes_once_per_id() -> None:
    manager = SessionManager()
    payload = ApplyToolInput(
        tool_name="write_cell",
        arguments={"row": 0, "col": 0, "value": "hello"},
        tool_call_id="call-1",
    )
    first = run_apply_tool(payload, manager)
    second = run_apply_tool(payload, manager)
    assert first.outcome is not None
    assert first.outcome.status == "applied"
    assert first.session_id == manager.active.id
    assert second.ignored is True
    assert second.outcome is None


def test_run_apply_tool_generates_call_id_and_parses_json() -> None:
    manager = SessionManager()
    result = run_apply_tool(
        ApplyToolInput(tool_name="add_sheet", arguments='{"name": "Budget"}'),
        manager,
    )
    assert result.tool_call_id.startswith("call-")
    assert result.outcome is not None
    assert manager.active.document.sheet_names() == ["Sheet", "Budget"]


def test_run_apply_tool_reports_invalid_arguments() -> None:
    manager = SessionManager()
    result = run_apply_tool(
        ApplyToolInput(tool_name="merge_cells", arguments={}, tool_call_id="m1"),
        manager,
    )
    assert result.outcome is not None
    assert result.outcome.status == "failed"
    assert result.outcome.error is not None
    assert result.outcome.error.hint == "merge_cells requires: range."


def test_run_apply_events_tool_counts_ignored() -> None:
    manager = SessionManager()
    event = {
        "toolCallId": "e1",
        "toolName": "write_cell",
        "input": {"row": 1, "col": 1, "value": 3},
    }
    payload = ApplyEventsToolInput(
        events=[
            {**event, "state": "input-streaming"},
            {**event, "state": "input-available"},
            {**event, "state": "output-available"},
        ]
    )
    result = run_apply_events_tool(payload, manager)
    assert [outcome.tool_call_id for outcome in result.outcomes] == ["e1"]
    assert result.ignored == 2


def test_run_snapshot_tool_reports_charts_and_tokens() -> None:
    manager = SessionManager()
    run_apply_tool(
        ApplyToolInput(
            tool_name="add_chart",
            arguments={
                "id": "sales",
                "type": "pie",
                "series": [{"name": "Share", "values": [1, 2]}],
            },
        ),
        manager,
    )
    snapshot = run_snapshot_tool(manager)
    assert snapshot.snapshot == 'Sheet "Sheet": empty'
    assert snapshot.token_estimate == 5
    assert snapshot.session_tokens == 5
    assert [chart.id for chart in snapshot.charts] == ["sales"]


def test_run_system_prompt_and_operations() -> None:
    manager = SessionManager()
    assert "Current spreadsheet state:" in run_system_prompt_tool(manager)
    assert run_list_operations_tool()[0].name == "write_cell"


def test_run_sessions_tool() -> None:
    manager = SessionManager()
    manager.create_session()
    result = run_sessions_tool(manager)
    assert result.active_session_id == manager.active.id
    assert len(result.sessions) == 2


def test_snapshot_and_prompt_tools_feed_session_token_counter() -> None:
    manager = SessionManager()
    first = manager.active
    run_snapshot_tool(manager)
    assert run_snapshot_tool(manager).session_tokens == 10
    prompt = run_system_prompt_tool(manager)
    assert first.token_estimate == 10 + estimate_tokens(prompt)

    manager.create_session()
    assert run_snapshot_tool(manager).session_tokens == 5
    assert first.token_estimate == 10 + estimate_tokens(prompt)
