from __future__ import annotations

from typing import Literal

OperationKind = Literal[
    "write_cell",
    "write_range",
    "set_formula",
    "format_cells",
    "insert_row",
    "insert_column",
    "add_sheet",
    "rename_sheet",
    "read_range",
    "clear_range",
    "set_column_width",
    "merge_cells",
    "freeze_panes",
    "conditional_format",
    "add_chart",
]
OutcomeStatus = Literal["applied", "skipped", "failed"]
ChartType = Literal["bar", "line", "pie", "area"]
FreezeMode = Literal["row", "column", "both"]
ConditionalRule = Literal[
    "color_scale",
    "highlight_above",
    "highlight_below",
    "highlight_negative",
]
ToolCallState = Literal[
    "partial-call",
    "input-streaming",
    "input-available",
    "call",
    "output-available",
    "output-error",
    "result",
]
