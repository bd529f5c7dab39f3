from __future__ import annotations

from collections.abc import Awaitable, Callable
import importlib
import logging
from pathlib import Path
from typing import Any, cast

import anyio
import pytest
from pydantic import ValidationError

from sheetbridge import server
from sheetbridge.config import BridgeSettings
from sheetbridge.session import SessionInfo, SessionManager
from sheetbridge.tools import ApplyToolOutput, SnapshotToolOutput

ToolFunc = Callable[..., object] | Callable[..., Awaitable[object]]


class DummyApp:
    def __init__(self) -> None:
        self.tools: dict[str, ToolFunc] = {}

    def tool(self, *, name: str) -> Callable[[ToolFunc], ToolFunc]:
        def decorator(func: ToolFunc) -> ToolFunc:
            self.tools[name] = func
            return func

        return decorator


class DummyFastMCP(DummyApp):
    def __init__(self, name: str, **kwargs: Any) -> None:
        super().__init__()
        self.name = name
        self.kwargs = kwargs


async def _call_async(
    func: Callable[..., Awaitable[object]],
    kwargs: dict[str, object],
) -> object:
    return await func(**kwargs)


def _call(app: DummyApp, name: str, **kwargs: object) -> object:
    tool = cast(Callable[..., Awaitable[object]], app.tools[name])
    return anyio.run(_call_async, tool, kwargs)


def test_parse_args_defaults() -> None:
    config = server._parse_args([])
    assert config.log_level == "INFO"
    assert config.log_file is None
    assert config.rows is None
    assert config.columns is None


def test_parse_args_with_options(tmp_path: Path) -> None:
    log_file = tmp_path / "log.txt"
    config = server._parse_args(
        [
            "--log-level",
            "DEBUG",
            "--log-file",
            str(log_file),
            "--rows",
            "50",
            "--columns",
            "10",
        ]
    )
    assert config.log_level == "DEBUG"
    assert config.log_file == log_file
    assert (config.rows, config.columns) == (50, 10)


def test_configure_logging_adds_file_handler(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    captured: dict[str, object] = {}

    def fake_basic_config(**kwargs: object) -> None:
        captured.update(kwargs)

    monkeypatch.setattr(logging, "basicConfig", fake_basic_config)
    log_file = tmp_path / "server.log"
    server._configure_logging(
        server.ServerConfig(log_level="debug", log_file=log_file)
    )
    handlers = cast(list[logging.Handler], captured["handlers"])
    assert captured["level"] == logging.DEBUG
    assert captured["format"] == server._LOG_FORMAT
    assert any(isinstance(handler, logging.FileHandler) for handler in handlers)
    for handler in handlers:
        handler.close()


def test_build_settings_applies_grid_overrides(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(BridgeSettings, "from_env", classmethod(lambda cls: cls()))
    settings = server._build_settings(server.ServerConfig(rows=30, columns=5))
    assert (settings.default_row_count, settings.default_column_count) == (30, 5)
    assert server._build_settings(server.ServerConfig()).default_row_count == 200


def test_import_mcp_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise(_: str) -> None:
        raise ModuleNotFoundError("mcp")

    monkeypatch.setattr(importlib, "import_module", _raise)
    with pytest.raises(RuntimeError, match="sheetbridge\\[mcp\\]"):
        server._import_mcp()


def test_import_mcp_resolves_fastmcp_class(monkeypatch: pytest.MonkeyPatch) -> None:
    requested: list[str] = []

    class _Module:
        FastMCP = DummyFastMCP

    def _import(name: str) -> _Module:
        requested.append(name)
        return _Module()

    monkeypatch.setattr(importlib, "import_module", _import)
    assert server._import_mcp() is DummyFastMCP
    assert requested == ["mcp.server.fastmcp"]


def test_main_reports_missing_sdk(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise(_: str) -> None:
        raise ModuleNotFoundError("mcp")

    monkeypatch.setattr(importlib, "import_module", _raise)
    monkeypatch.setattr(logging, "basicConfig", lambda **_: None)
    assert server.main([]) == 1


def test_unknown_log_level_is_rejected() -> None:
    with pytest.raises(ValidationError, match="Unknown log level"):
        server.ServerConfig(log_level="chatty")
    with pytest.raises(SystemExit):
        server._parse_args(["--log-level", "chatty"])


def test_create_app_binds_highlight_expiry_to_lifespan() -> None:
    manager = SessionManager(BridgeSettings(highlight_delay_seconds=0.05))
    app = cast(DummyFastMCP, server._create_app(manager, DummyFastMCP))
    assert app.name == "Sheetbridge MCP"
    assert app.kwargs["json_response"] is True
    assert "sheetbridge_apply" in app.tools
    lifespan = app.kwargs["lifespan"]

    async def _scenario() -> tuple[int, int, int]:
        async with lifespan(app):
            apply_tool = cast(
                Callable[..., Awaitable[object]], app.tools["sheetbridge_apply"]
            )
            await apply_tool(
                tool_name="write_cell",
                arguments={"row": 0, "col": 0, "value": "x"},
                tool_call_id="w1",
            )
            scheduled = manager.active.highlights.pending_expiries
            await anyio.sleep(0.2)
            remaining = len(manager.active.highlights.highlights)
        return scheduled, remaining, manager.active.highlights.pending_expiries

    assert anyio.run(_scenario) == (1, 0, 0)


def test_register_tools_names() -> None:
    app = DummyApp()
    server._register_tools(app, SessionManager())
    assert set(app.tools) == {
        "sheetbridge_apply",
        "sheetbridge_apply_events",
        "sheetbridge_snapshot",
        "sheetbridge_system_prompt",
        "sheetbridge_list_operations",
        "sheetbridge_list_sessions",
        "sheetbridge_new_session",
        "sheetbridge_switch_session",
        "sheetbridge_delete_session",
    }


def test_apply_then_snapshot_through_tools() -> None:
    app = DummyApp()
    manager = SessionManager()
    server._register_tools(app, manager)
    result = cast(
        ApplyToolOutput,
        _call(
            app,
            "sheetbridge_apply",
            tool_name="write_range",
            arguments={"startRow": 0, "startCol": 0, "values": [["a", "b"]]},
            tool_call_id="w1",
        ),
    )
    assert result.outcome is not None
    assert result.outcome.target == "A1:B1"
    snapshot = cast(SnapshotToolOutput, _call(app, "sheetbridge_snapshot"))
    assert snapshot.snapshot == 'Sheet "Sheet" (1 rows × 2 cols):\n  A1: a | b'


def test_session_tools_switch_documents() -> None:
    app = DummyApp()
    manager = SessionManager()
    server._register_tools(app, manager)
    first_id = manager.active.id
    created = cast(SessionInfo, _call(app, "sheetbridge_new_session"))
    assert manager.active.id == created.id
    switched = cast(
        SessionInfo, _call(app, "sheetbridge_switch_session", session_id=first_id)
    )
    assert switched.id == first_id
    remaining = cast(
        SessionInfo, _call(app, "sheetbridge_delete_session", session_id=first_id)
    )
    assert remaining.id == created.id
