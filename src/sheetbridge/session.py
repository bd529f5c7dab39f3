from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import uuid

import anyio
from anyio.abc import TaskGroup
from pydantic import BaseModel, Field

from .charts import ChartBoard
from .config import BridgeSettings
from .document import SpreadsheetDocument, WorkbookDocument
from .executor import OperationExecutor
from .highlights import HighlightBoard
from .reconciler import ExecutionRecord, ToolCallReconciler
from .snapshot import SnapshotSerializer

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "New Chat"


class SessionInfo(BaseModel):
    """Listing entry for one chat session."""

    id: str
    title: str = DEFAULT_SESSION_TITLE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SessionContext:
    """Everything one chat session owns: document, record, boards, reconciler.

    Switching sessions swaps whole contexts, so a stale stream can only ever
    reach its own document.
    """

    def __init__(
        self,
        info: SessionInfo,
        *,
        settings: BridgeSettings | None = None,
        document: SpreadsheetDocument | None = None,
    ) -> None:
        self.info = info
        self.settings = settings or BridgeSettings()
        self.document: SpreadsheetDocument = (
            document
            if document is not None
            else WorkbookDocument(
                default_rows=self.settings.default_row_count,
                default_columns=self.settings.default_column_count,
            )
        )
        self.record = ExecutionRecord()
        self.charts = ChartBoard()
        self.highlights = HighlightBoard(
            delay_seconds=self.settings.highlight_delay_seconds,
            color=self.settings.highlight_color,
        )
        self.executor = OperationExecutor(
            self.document,
            settings=self.settings,
            highlights=self.highlights,
            charts=self.charts,
        )
        self.serializer = SnapshotSerializer(self.settings)
        self.reconciler = ToolCallReconciler(
            self.executor, self.record, session_id=info.id
        )
        self.token_estimate = 0

    @property
    def id(self) -> str:
        return self.info.id

    def snapshot(self) -> str:
        """Serialize the document fresh; never cached across turns."""
        return self.serializer.serialize(self.document)

    def add_tokens(self, count: int) -> None:
        self.token_estimate += count

    def reset_tokens(self) -> None:
        self.token_estimate = 0

    def close(self) -> None:
        self.reconciler.detach()
        self.highlights.clear()


class SessionManager:
    """Ordered chat sessions with exactly one active for mutation."""

    def __init__(self, settings: BridgeSettings | None = None) -> None:
        self.settings = settings or BridgeSettings()
        self._sessions: list[SessionContext] = []
        self._task_group: TaskGroup | None = None
        self._active: SessionContext = self.create_session()

    @property
    def active(self) -> SessionContext:
        return self._active

    @asynccontextmanager
    async def running(self) -> AsyncIterator[SessionManager]:
        """Expire highlights of the active session on a shared task group."""
        async with anyio.create_task_group() as task_group:
            self._task_group = task_group
            self._active.highlights.bind(task_group)
            try:
                yield self
            finally:
                for context in self._sessions:
                    context.highlights.bind(None)
                self._task_group = None
                task_group.cancel_scope.cancel()

    def sessions(self) -> list[SessionInfo]:
        return [context.info for context in self._sessions]

    def get(self, session_id: str) -> SessionContext:
        for context in self._sessions:
            if context.id == session_id:
                return context
        raise KeyError(f"Unknown session id: {session_id}")

    def create_session(
        self, document: SpreadsheetDocument | None = None
    ) -> SessionContext:
        """Create a session, list it first and make it active."""
        info = SessionInfo(id=uuid.uuid4().hex[:8])
        context = SessionContext(info, settings=self.settings, document=document)
        self._sessions.insert(0, context)
        self._activate(context)
        logger.info("Created session %s", context.id)
        return context

    def switch_session(self, session_id: str) -> SessionContext:
        context = self.get(session_id)
        self._activate(context)
        return context

    def delete_session(self, session_id: str) -> SessionContext:
        """Delete a session and return the session that is active afterwards.

        Deleting the last session creates a fresh one; deleting the active
        session activates the first remaining one.
        """
        context = self.get(session_id)
        self._sessions.remove(context)
        context.close()
        logger.info("Deleted session %s", session_id)
        if not self._sessions:
            return self.create_session()
        if self._active is context:
            self._activate(self._sessions[0])
        return self._active

    def update_title(self, session_id: str, title: str) -> SessionInfo:
        candidate = title.strip()
        if not candidate:
            raise ValueError("Session title must not be empty.")
        context = self.get(session_id)
        context.info = context.info.model_copy(update={"title": candidate})
        return context.info

    def _activate(self, context: SessionContext) -> None:
        previous = getattr(self, "_active", None)
        if previous is not None and previous is not context:
            previous.reconciler.detach()
            previous.highlights.clear()
            previous.highlights.bind(None)
        context.reconciler.attach(context.id)
        context.highlights.bind(self._task_group)
        self._active = context
