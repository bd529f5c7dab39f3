"""Bridge between agent tool calls and a live spreadsheet document."""

from __future__ import annotations

from .config import BridgeSettings
from .document import SpreadsheetDocument, WorkbookDocument
from .executor import OperationExecutor
from .ops import Operation, OperationOutcome, parse_tool_call
from .reconciler import ExecutionRecord, ToolCallEvent, ToolCallReconciler
from .session import SessionContext, SessionManager
from .snapshot import EMPTY_SNAPSHOT, serialize_document

__all__ = [
    "EMPTY_SNAPSHOT",
    "BridgeSettings",
    "ExecutionRecord",
    "Operation",
    "OperationExecutor",
    "OperationOutcome",
    "SessionContext",
    "SessionManager",
    "SpreadsheetDocument",
    "ToolCallEvent",
    "ToolCallReconciler",
    "WorkbookDocument",
    "parse_tool_call",
    "serialize_document",
]
