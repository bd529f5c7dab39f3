from __future__ import annotations

from .models import (
    OPERATION_ADAPTER,
    AddChart,
    AddSheet,
    ChartRecord,
    ChartSeries,
    ClearRange,
    ConditionalFormat,
    FormatCells,
    FreezePanes,
    InsertColumn,
    InsertRow,
    MergeCells,
    Operation,
    OperationError,
    OperationErrorDetail,
    OperationOutcome,
    RangeInput,
    ReadRange,
    RenameSheet,
    SetColumnWidth,
    SetFormula,
    WriteCell,
    WriteRange,
)
from .normalize import parse_arguments, parse_operation, parse_tool_call
from .types import OperationKind, OutcomeStatus, ToolCallState

__all__ = [
    "OPERATION_ADAPTER",
    "AddChart",
    "AddSheet",
    "ChartRecord",
    "ChartSeries",
    "ClearRange",
    "ConditionalFormat",
    "FormatCells",
    "FreezePanes",
    "InsertColumn",
    "InsertRow",
    "MergeCells",
    "Operation",
    "OperationError",
    "OperationErrorDetail",
    "OperationKind",
    "OperationOutcome",
    "OutcomeStatus",
    "RangeInput",
    "ReadRange",
    "RenameSheet",
    "SetColumnWidth",
    "SetFormula",
    "ToolCallState",
    "WriteCell",
    "WriteRange",
    "parse_arguments",
    "parse_operation",
    "parse_tool_call",
]
