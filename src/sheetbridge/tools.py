from __future__ import annotations

from typing import Any
import uuid

from pydantic import BaseModel, Field

from .ops.models import ChartRecord, OperationOutcome
from .prompts import ToolDefinition, build_system_prompt, tool_definitions
from .session import SessionInfo, SessionManager


class ApplyToolInput(BaseModel):
    """MCP tool input for one operation invocation."""

    tool_name: str
    arguments: dict[str, Any] | str | None = None
    tool_call_id: str | None = None
    state: str = "input-available"


class ApplyToolOutput(BaseModel):
    """MCP tool output for one invocation; ``outcome`` is None when ignored."""

    session_id: str
    tool_call_id: str
    outcome: OperationOutcome | None = None
    ignored: bool = False


class ApplyEventsToolInput(BaseModel):
    """MCP tool input for a batch of streamed tool-call events."""

    events: list[dict[str, Any]] = Field(default_factory=list)


class ApplyEventsToolOutput(BaseModel):
    session_id: str
    outcomes: list[OperationOutcome] = Field(default_factory=list)
    ignored: int = 0


class SnapshotToolOutput(BaseModel):
    """MCP tool output for the current snapshot."""

    session_id: str
    snapshot: str
    token_estimate: int
    session_tokens: int = Field(
        description="Tokens handed to the agent by this session so far."
    )
    charts: list[ChartRecord] = Field(default_factory=list)


class SessionsToolOutput(BaseModel):
    active_session_id: str
    sessions: list[SessionInfo] = Field(default_factory=list)


def run_apply_tool(payload: ApplyToolInput, manager: SessionManager) -> ApplyToolOutput:
    """Feed one invocation through the active session's reconciler.

    Args:
        payload: Tool input payload.
        manager: Session registry; only the active session is mutated.

    Returns:
        The outcome, or ``ignored=True`` when the id was already executed or
        the event was not executable.
    """
    context = manager.active
    call_id = payload.tool_call_id or f"call-{uuid.uuid4().hex[:12]}"
    outcome = context.reconciler.observe(
        {
            "toolCallId": call_id,
            "toolName": payload.tool_name,
            "state": payload.state,
            "input": payload.arguments,
            "sessionId": context.id,
        }
    )
    return ApplyToolOutput(
        session_id=context.id,
        tool_call_id=call_id,
        outcome=outcome,
        ignored=outcome is None,
    )


def run_apply_events_tool(
    payload: ApplyEventsToolInput, manager: SessionManager
) -> ApplyEventsToolOutput:
    """Observe a batch of events in order against the active session."""
    context = manager.active
    outcomes: list[OperationOutcome] = []
    ignored = 0
    for event in payload.events:
        outcome = context.reconciler.observe(event)
        if outcome is None:
            ignored += 1
        else:
            outcomes.append(outcome)
    return ApplyEventsToolOutput(
        session_id=context.id, outcomes=outcomes, ignored=ignored
    )


def run_snapshot_tool(manager: SessionManager) -> SnapshotToolOutput:
    context = manager.active
    snapshot = context.snapshot()
    estimate = context.serializer.estimate_tokens(snapshot)
    context.add_tokens(estimate)
    return SnapshotToolOutput(
        session_id=context.id,
        snapshot=snapshot,
        token_estimate=estimate,
        session_tokens=context.token_estimate,
        charts=context.charts.charts,
    )


def run_system_prompt_tool(manager: SessionManager) -> str:
    """Build the system prompt and count it against the active session."""
    context = manager.active
    prompt = build_system_prompt(context.snapshot())
    context.add_tokens(context.serializer.estimate_tokens(prompt))
    return prompt


def run_list_operations_tool() -> list[ToolDefinition]:
    return tool_definitions()


def run_sessions_tool(manager: SessionManager) -> SessionsToolOutput:
    return SessionsToolOutput(
        active_session_id=manager.active.id, sessions=manager.sessions()
    )
