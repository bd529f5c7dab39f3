from __future__ import annotations

import argparse
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
import importlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from pydantic import BaseModel, Field, field_validator

from .config import BridgeSettings
from .prompts import ToolDefinition
from .session import SessionInfo, SessionManager
from .tools import (
    ApplyEventsToolInput,
    ApplyEventsToolOutput,
    ApplyToolInput,
    ApplyToolOutput,
    SessionsToolOutput,
    SnapshotToolOutput,
    run_apply_events_tool,
    run_apply_tool,
    run_list_operations_tool,
    run_sessions_tool,
    run_snapshot_tool,
    run_system_prompt_tool,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from mcp.server.fastmcp import FastMCP

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class ServerConfig(BaseModel):
    """Configuration for the MCP server process."""

    log_level: str = Field(default="INFO", description="Logging level.")
    log_file: Path | None = Field(default=None, description="Optional log file path.")
    rows: int | None = Field(default=None, gt=0, description="Rows per new sheet.")
    columns: int | None = Field(
        default=None, gt=0, description="Columns per new sheet."
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        candidate = value.strip().upper()
        if candidate not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return candidate


def main(argv: list[str] | None = None) -> int:
    """Run the MCP server entrypoint.

    Args:
        argv: Optional CLI arguments for testing.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    config = _parse_args(argv)
    _configure_logging(config)
    try:
        run_server(config)
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # pragma: no cover - surface runtime errors
        logger.exception("MCP server stopped unexpectedly.")
        return 1
    return 0


def run_server(config: ServerConfig) -> None:
    """Start the MCP server.

    Args:
        config: Server configuration.
    """
    fastmcp_cls = _import_mcp()
    settings = _build_settings(config)
    logger.info(
        "Sheet grid %sx%s, snapshot budget %s chars.",
        settings.default_row_count,
        settings.default_column_count,
        settings.max_chars,
    )
    app = _create_app(SessionManager(settings), fastmcp_cls)
    app.run()


def _parse_args(argv: list[str] | None) -> ServerConfig:
    """Parse CLI arguments into server config.

    Args:
        argv: Optional CLI argument list.

    Returns:
        Parsed server configuration.
    """
    parser = argparse.ArgumentParser(description="Sheetbridge MCP server (stdio).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        type=str.upper,
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    )
    parser.add_argument("--log-file", type=Path, help="Optional log file path.")
    parser.add_argument("--rows", type=int, help="Rows per new sheet.")
    parser.add_argument("--columns", type=int, help="Columns per new sheet.")
    args = parser.parse_args(argv)
    return ServerConfig(
        log_level=args.log_level,
        log_file=args.log_file,
        rows=args.rows,
        columns=args.columns,
    )


def _configure_logging(config: ServerConfig) -> None:
    """Configure logging for the server process.

    Args:
        config: Server configuration.
    """
    level = logging.getLevelNamesMapping()[config.log_level]
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        handlers.append(logging.FileHandler(config.log_file, encoding="utf-8"))
    logging.basicConfig(level=level, handlers=handlers, format=_LOG_FORMAT)


def _build_settings(config: ServerConfig) -> BridgeSettings:
    """Apply CLI grid overrides on top of environment settings."""
    settings = BridgeSettings.from_env()
    overrides: dict[str, int] = {}
    if config.rows is not None:
        overrides["default_row_count"] = config.rows
    if config.columns is not None:
        overrides["default_column_count"] = config.columns
    if not overrides:
        return settings
    return settings.model_copy(update=overrides)


def _import_mcp() -> type[FastMCP]:
    """Resolve the FastMCP application class from the optional MCP SDK.

    Returns:
        The FastMCP class.
    """
    try:
        module = importlib.import_module("mcp.server.fastmcp")
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "MCP SDK is not installed. Install with `pip install sheetbridge[mcp]`."
        ) from exc
    return cast("type[FastMCP]", module.FastMCP)


def _build_lifespan(
    manager: SessionManager,
) -> Callable[[Any], AbstractAsyncContextManager[None]]:
    """Keep session highlights expiring for as long as the server runs."""

    @asynccontextmanager
    async def _lifespan(_app: Any) -> AsyncIterator[None]:
        async with manager.running():
            logger.debug("Highlight expiry bound to server task group.")
            yield

    return _lifespan


def _create_app(
    manager: SessionManager, fastmcp_cls: type[FastMCP] | None = None
) -> FastMCP:
    """Create the MCP FastMCP application.

    Args:
        manager: Session registry shared by every tool.
        fastmcp_cls: FastMCP class; resolved through ``_import_mcp`` if omitted.

    Returns:
        FastMCP application instance.
    """
    app_cls = fastmcp_cls or _import_mcp()
    app = app_cls(
        "Sheetbridge MCP",
        json_response=True,
        lifespan=_build_lifespan(manager),
    )
    _register_tools(app, manager)
    return app


def _register_tools(app: FastMCP, manager: SessionManager) -> None:
    """Register MCP tools for the server.

    Tools run directly on the event loop: the document is only ever mutated
    from that single thread of control.

    Args:
        app: FastMCP application instance.
        manager: Session registry shared by every tool.
    """

    async def _apply_tool(
        tool_name: str,
        arguments: dict[str, Any] | str | None = None,
        tool_call_id: str | None = None,
        state: str = "input-available",
    ) -> ApplyToolOutput:
        """Apply one spreadsheet operation to the active session.

        Args:
            tool_name: Operation kind, e.g. 'write_cell' or 'format_cells'.
            arguments: Operation arguments as an object or JSON text.
            tool_call_id: Invocation id; a repeated id is ignored.
            state: Tool-call state; only complete states execute.

        Returns:
            Operation outcome, or ignored when the id was already executed.
        """
        payload = ApplyToolInput(
            tool_name=tool_name,
            arguments=arguments,
            tool_call_id=tool_call_id,
            state=state,
        )
        return run_apply_tool(payload, manager)

    apply_tool = app.tool(name="sheetbridge_apply")
    apply_tool(_apply_tool)

    async def _apply_events_tool(
        events: list[dict[str, Any]],
    ) -> ApplyEventsToolOutput:
        """Observe streamed tool-call events in order.

        Args:
            events: Tool-call events with toolCallId, toolName, state, input.

        Returns:
            Outcomes for the events that triggered execution.
        """
        payload = ApplyEventsToolInput(events=events)
        return run_apply_events_tool(payload, manager)

    events_tool = app.tool(name="sheetbridge_apply_events")
    events_tool(_apply_events_tool)

    async def _snapshot_tool() -> SnapshotToolOutput:
        """Return the size-bounded text snapshot of the active document."""
        return run_snapshot_tool(manager)

    snapshot_tool = app.tool(name="sheetbridge_snapshot")
    snapshot_tool(_snapshot_tool)

    async def _system_prompt_tool() -> str:
        """Return the agent system prompt with the current snapshot embedded."""
        return run_system_prompt_tool(manager)

    prompt_tool = app.tool(name="sheetbridge_system_prompt")
    prompt_tool(_system_prompt_tool)

    async def _operations_tool() -> list[ToolDefinition]:
        """List every supported operation with its argument schema."""
        return run_list_operations_tool()

    operations_tool = app.tool(name="sheetbridge_list_operations")
    operations_tool(_operations_tool)

    async def _sessions_tool() -> SessionsToolOutput:
        """List chat sessions, newest first."""
        return run_sessions_tool(manager)

    sessions_tool = app.tool(name="sheetbridge_list_sessions")
    sessions_tool(_sessions_tool)

    async def _new_session_tool() -> SessionInfo:
        """Start a new chat session with an empty document."""
        return manager.create_session().info

    new_session_tool = app.tool(name="sheetbridge_new_session")
    new_session_tool(_new_session_tool)

    async def _switch_session_tool(session_id: str) -> SessionInfo:
        """Make an existing session active.

        Args:
            session_id: Session to activate.
        """
        return manager.switch_session(session_id).info

    switch_session_tool = app.tool(name="sheetbridge_switch_session")
    switch_session_tool(_switch_session_tool)

    async def _delete_session_tool(session_id: str) -> SessionInfo:
        """Delete a session and return the session active afterwards.

        Args:
            session_id: Session to delete.
        """
        return manager.delete_session(session_id).info

    delete_session_tool = app.tool(name="sheetbridge_delete_session")
    delete_session_tool(_delete_session_tool)

