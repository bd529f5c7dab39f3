"""At-most-once execution of streamed tool-call events.

Per invocation id the lifecycle is ``unseen -> pending -> ready -> executed``.
The first event in an executable state fires the executor; every later event
for that id is ignored because the id is already in the session's
``ExecutionRecord``.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterator, Mapping
import logging
from typing import Any, Final, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .executor import OperationExecutor
from .ops.models import OperationError, OperationOutcome
from .ops.normalize import parse_tool_call

logger = logging.getLogger(__name__)

CallPhase = Literal["pending", "ready", "executed"]

EXECUTABLE_STATES: Final[frozenset[str]] = frozenset(
    {"input-available", "output-available", "result", "call"}
)
PENDING_STATES: Final[frozenset[str]] = frozenset({"input-streaming", "partial-call"})


class ToolCallEvent(BaseModel):
    """One decoded tool-call lifecycle event from the agent stream."""

    tool_call_id: str = Field(
        validation_alias=AliasChoices("tool_call_id", "toolCallId", "id")
    )
    tool_name: str = Field(
        validation_alias=AliasChoices("tool_name", "toolName", "name")
    )
    state: str
    arguments: Any = Field(
        default=None,
        validation_alias=AliasChoices("arguments", "input", "args"),
    )
    session_id: str | None = Field(
        default=None, validation_alias=AliasChoices("session_id", "sessionId")
    )

    @field_validator("tool_call_id", "tool_name", "state")
    @classmethod
    def _validate_text(cls, value: str) -> str:
        candidate = value.strip()
        if not candidate:
            raise ValueError("must not be empty.")
        return candidate

    @classmethod
    def from_raw(cls, payload: Mapping[str, Any]) -> ToolCallEvent:
        """Build an event from a UI-message part or a bare event mapping.

        Accepts ``{"toolInvocation": {...}}`` wrappers and typed parts whose
        ``type`` is ``"tool-<name>"``.

        Raises:
            ValueError: If required fields are missing.
        """
        data = dict(payload)
        nested = data.pop("toolInvocation", None)
        if isinstance(nested, Mapping):
            data = {**data, **nested}
        part_type = data.get("type")
        if (
            isinstance(part_type, str)
            and part_type.startswith("tool-")
            and not any(key in data for key in ("tool_name", "toolName", "name"))
        ):
            data["toolName"] = part_type.removeprefix("tool-")
        return cls.model_validate(data)


class ExecutionRecord:
    """Append-only set of invocation ids already executed in one session."""

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def add(self, tool_call_id: str) -> None:
        self._ids.add(tool_call_id)

    def __contains__(self, tool_call_id: object) -> bool:
        return tool_call_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))


class ToolCallReconciler:
    """Gate the executor so each invocation id runs at most once.

    The reconciler is bound to one session id. Once detached, every event is
    ignored until ``attach`` is called again, so an abandoned stream cannot
    mutate the document.
    """

    def __init__(
        self,
        executor: OperationExecutor,
        record: ExecutionRecord | None = None,
        *,
        session_id: str | None = None,
    ) -> None:
        self.executor = executor
        self.record = record if record is not None else ExecutionRecord()
        self.session_id = session_id
        self.attached = True
        self.outcomes: list[OperationOutcome] = []
        self._phases: dict[str, CallPhase] = {}

    def phase(self, tool_call_id: str) -> CallPhase | Literal["unseen"]:
        if tool_call_id in self.record:
            return "executed"
        return self._phases.get(tool_call_id, "unseen")

    def attach(self, session_id: str | None = None) -> None:
        """Rebind to a session before subscribing to its stream."""
        if session_id is not None:
            self.session_id = session_id
        self.attached = True

    def detach(self) -> None:
        self.attached = False

    def observe(
        self, event: ToolCallEvent | Mapping[str, Any]
    ) -> OperationOutcome | None:
        """Process one event; returns an outcome only when it triggers execution.

        Never raises for a single bad event: malformed events are logged and
        dropped.
        """
        if not self.attached:
            logger.debug("Reconciler detached; dropping event.")
            return None
        parsed = self._coerce_event(event)
        if parsed is None:
            return None
        if (
            parsed.session_id is not None
            and self.session_id is not None
            and parsed.session_id != self.session_id
        ):
            logger.debug(
                "Dropping event %s from stale session %s.",
                parsed.tool_call_id,
                parsed.session_id,
            )
            return None
        call_id = parsed.tool_call_id
        if call_id in self.record:
            logger.debug("Tool call %s already executed; ignoring.", call_id)
            return None
        if parsed.state in PENDING_STATES:
            self._phases[call_id] = "pending"
            return None
        if parsed.state not in EXECUTABLE_STATES:
            logger.debug(
                "Tool call %s in state %s is not executable.", call_id, parsed.state
            )
            return None
        self._phases[call_id] = "ready"
        return self._execute(parsed)

    async def consume(
        self, events: AsyncIterable[ToolCallEvent | Mapping[str, Any]]
    ) -> list[OperationOutcome]:
        """Observe a stream until it ends or the reconciler is detached."""
        outcomes: list[OperationOutcome] = []
        async for event in events:
            if not self.attached:
                logger.info("Reconciler detached; abandoning stream.")
                break
            outcome = self.observe(event)
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def _execute(self, event: ToolCallEvent) -> OperationOutcome:
        call_id = event.tool_call_id
        # Arguments never change once complete, so a bad payload consumes its id.
        self.record.add(call_id)
        self._phases[call_id] = "executed"
        try:
            operation = parse_tool_call(
                event.tool_name, event.arguments, tool_call_id=call_id
            )
        except OperationError as exc:
            logger.warning("Dropping tool call %s: %s", call_id, exc)
            outcome = OperationOutcome(
                kind=event.tool_name,
                tool_call_id=call_id,
                status="failed",
                error=exc.detail,
            )
        else:
            outcome = self.executor.execute(operation, tool_call_id=call_id)
        self.outcomes.append(outcome)
        return outcome

    def _coerce_event(
        self, event: ToolCallEvent | Mapping[str, Any]
    ) -> ToolCallEvent | None:
        if isinstance(event, ToolCallEvent):
            return event
        try:
            return ToolCallEvent.from_raw(event)
        except (TypeError, ValueError) as exc:
            logger.warning("Dropping malformed tool-call event: %s", exc)
            return None
