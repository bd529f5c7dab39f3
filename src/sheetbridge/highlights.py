"""Transient visual acknowledgment of document writes.

A highlight is a record the presentation layer paints over a range; it never
touches cell formatting. Each highlight expires after a fixed delay through a
cancellable task keyed by (sheet, range), so flashing the same range again
replaces the pending expiry instead of racing it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import itertools
import logging
import time

import anyio
from anyio.abc import TaskGroup
from pydantic import BaseModel

from .ranges import CellRange

logger = logging.getLogger(__name__)

_HighlightKey = tuple[int, str]


class Highlight(BaseModel):
    id: str
    sheet: int
    target: CellRange
    color: str
    expires_at: float


class HighlightBoard:
    """Live highlight records plus their scheduled expiries.

    While a task group is bound, through ``bind()`` or ``running()``, expiries
    are scheduled tasks. Otherwise expired records are pruned lazily whenever
    the board is read.
    """

    def __init__(self, *, delay_seconds: float = 1.5, color: str = "#d4f5f0") -> None:
        self.delay_seconds = delay_seconds
        self.color = color
        self._highlights: dict[_HighlightKey, Highlight] = {}
        self._scopes: dict[_HighlightKey, anyio.CancelScope] = {}
        self._task_group: TaskGroup | None = None
        self._ids = itertools.count(1)

    @property
    def highlights(self) -> list[Highlight]:
        self._prune()
        return list(self._highlights.values())

    @property
    def pending_expiries(self) -> int:
        return len(self._scopes)

    def bind(self, task_group: TaskGroup | None) -> None:
        """Schedule future expiries on ``task_group``.

        Passing ``None`` cancels pending expiries; live records then expire
        through lazy pruning on their deadline.
        """
        if task_group is None:
            for key in list(self._scopes):
                self._cancel_expiry(key)
        self._task_group = task_group

    @asynccontextmanager
    async def running(self) -> AsyncIterator[HighlightBoard]:
        """Bind a private task group so highlights expire on their own."""
        async with anyio.create_task_group() as task_group:
            self.bind(task_group)
            try:
                yield self
            finally:
                self.bind(None)
                task_group.cancel_scope.cancel()
                self.clear()

    def flash(self, sheet: int, target: CellRange) -> Highlight:
        key = (sheet, target.label)
        self._cancel_expiry(key)
        highlight = Highlight(
            id=f"hl-{next(self._ids)}",
            sheet=sheet,
            target=target,
            color=self.color,
            expires_at=time.monotonic() + self.delay_seconds,
        )
        self._highlights[key] = highlight
        if self._task_group is not None:
            scope = anyio.CancelScope()
            self._scopes[key] = scope
            self._task_group.start_soon(self._expire_later, key, highlight.id, scope)
        return highlight

    def dismiss(self, highlight_id: str) -> bool:
        """Remove one highlight; a highlight already gone is a no-op."""
        for key, highlight in list(self._highlights.items()):
            if highlight.id == highlight_id:
                self._cancel_expiry(key)
                del self._highlights[key]
                return True
        return False

    def clear(self) -> None:
        for key in list(self._scopes):
            self._cancel_expiry(key)
        self._highlights.clear()

    async def _expire_later(
        self, key: _HighlightKey, highlight_id: str, scope: anyio.CancelScope
    ) -> None:
        with scope:
            await anyio.sleep(self.delay_seconds)
            current = self._highlights.get(key)
            if current is not None and current.id == highlight_id:
                del self._highlights[key]
            else:
                logger.debug("Highlight %s already gone at expiry.", highlight_id)
        if self._scopes.get(key) is scope:
            del self._scopes[key]

    def _prune(self) -> None:
        if self._task_group is not None:
            return
        now = time.monotonic()
        for key, highlight in list(self._highlights.items()):
            if highlight.expires_at <= now:
                del self._highlights[key]

    def _cancel_expiry(self, key: _HighlightKey) -> None:
        scope = self._scopes.pop(key, None)
        if scope is not None:
            scope.cancel()
