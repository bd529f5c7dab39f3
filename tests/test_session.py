from __future__ import annotations

import anyio
import pytest

from sheetbridge.config import BridgeSettings
from sheetbridge.session import DEFAULT_SESSION_TITLE, SessionManager
from sheetbridge.snapshot import TRUNCATION_MARKER


def _write(
    call_id: str, value: str, session_id: str | None = None
) -> dict[str, object]:
    event: dict[str, object] = {
        "toolCallId": call_id,
        "toolName": "write_cell",
        "state": "input-available",
        "input": {"row": 0, "col": 0, "value": value},
    }
    if session_id is not None:
        event["sessionId"] = session_id
    return event


def test_manager_starts_with_one_active_session() -> None:
    manager = SessionManager()
    assert len(manager.sessions()) == 1
    assert manager.active.info.title == DEFAULT_SESSION_TITLE
    assert manager.active.reconciler.attached


def test_new_session_is_listed_first_and_active() -> None:
    manager = SessionManager()
    first = manager.active
    second = manager.create_session()
    assert [info.id for info in manager.sessions()] == [second.id, first.id]
    assert manager.active is second
    assert not first.reconciler.attached


def test_sessions_do_not_share_documents_or_records() -> None:
    manager = SessionManager()
    first = manager.active
    first.reconciler.observe(_write("c1", "first"))
    second = manager.create_session()
    assert second.reconciler.observe(_write("c1", "second")) is not None
    assert first.document.get_cell(0, 0, 0).value == "first"
    assert second.document.get_cell(0, 0, 0).value == "second"


def test_stale_stream_cannot_reach_new_session() -> None:
    manager = SessionManager()
    old = manager.active
    new = manager.create_session()
    assert old.reconciler.observe(_write("late", "stale")) is None
    assert new.reconciler.observe(_write("late", "stale", old.id)) is None
    assert old.document.get_cell(0, 0, 0).is_empty
    assert new.document.get_cell(0, 0, 0).is_empty


def test_switch_session_reattaches() -> None:
    manager = SessionManager()
    first = manager.active
    manager.create_session()
    manager.switch_session(first.id)
    assert manager.active is first
    assert first.reconciler.attached
    with pytest.raises(KeyError):
        manager.switch_session("missing")


def test_delete_active_session_activates_first_remaining() -> None:
    manager = SessionManager()
    first = manager.active
    second = manager.create_session()
    active = manager.delete_session(second.id)
    assert active is first
    assert [info.id for info in manager.sessions()] == [first.id]


def test_deleting_last_session_creates_a_new_one() -> None:
    manager = SessionManager()
    only = manager.active
    replacement = manager.delete_session(only.id)
    assert replacement.id != only.id
    assert len(manager.sessions()) == 1
    assert not only.reconciler.attached


def test_update_title() -> None:
    manager = SessionManager()
    info = manager.update_title(manager.active.id, "  Budget  ")
    assert info.title == "Budget"
    assert manager.active.info.title == "Budget"
    with pytest.raises(ValueError, match="must not be empty"):
        manager.update_title(manager.active.id, "   ")


def test_snapshot_is_fresh_and_bounded() -> None:
    settings = BridgeSettings(max_token_estimate=10, avg_chars_per_token=4)
    manager = SessionManager(settings)
    context = manager.active
    assert context.snapshot() == 'Sheet "Sheet": empty'
    for row in range(10):
        context.document.set_value(0, row, 0, f"row {row}")
    assert context.snapshot().endswith(TRUNCATION_MARKER)


def test_token_counter() -> None:
    context = SessionManager().active
    context.add_tokens(120)
    context.add_tokens(30)
    assert context.token_estimate == 150
    context.reset_tokens()
    assert context.token_estimate == 0


def test_running_manager_expires_active_session_highlights() -> None:
    async def _scenario() -> tuple[int, int, int, int]:
        manager = SessionManager(BridgeSettings(highlight_delay_seconds=0.05))
        async with manager.running():
            first = manager.active
            first.reconciler.observe(_write("c1", "value"))
            scheduled = first.highlights.pending_expiries
            await anyio.sleep(0.2)
            expired = len(first.highlights.highlights)
            second = manager.create_session()
            second.reconciler.observe(_write("c2", "value"))
            switched = second.highlights.pending_expiries
        return scheduled, expired, switched, second.highlights.pending_expiries

    assert anyio.run(_scenario) == (1, 0, 1, 0)


def test_manager_outside_running_prunes_lazily() -> None:
    manager = SessionManager(BridgeSettings(highlight_delay_seconds=0))
    manager.active.reconciler.observe(_write("c1", "value"))
    assert manager.active.highlights.pending_expiries == 0
    assert manager.active.highlights.highlights == []
