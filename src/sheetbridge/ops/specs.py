from __future__ import annotations

from typing import Final, cast

from pydantic import BaseModel, Field

from .chart_types import SUPPORTED_CHART_TYPES_CSV
from .types import OperationKind


class OperationSpec(BaseModel):
    """Wire metadata used by argument normalization and tool definitions."""

    kind: OperationKind
    description: str
    aliases: dict[str, str] = Field(default_factory=dict)


_RANGE_DESCRIPTION = "range is { startRow, startCol, endRow, endCol } or an A1 range."

OPERATION_SPECS: Final[dict[OperationKind, OperationSpec]] = {
    "write_cell": OperationSpec(
        kind="write_cell",
        description=(
            "Writes a value to a single cell. A value starting with '=' is "
            "written as a formula."
        ),
        aliases={"column": "col"},
    ),
    "write_range": OperationSpec(
        kind="write_range",
        description="Writes a 2D array of values starting at startRow/startCol.",
        aliases={"row": "startRow", "col": "startCol", "data": "values"},
    ),
    "set_formula": OperationSpec(
        kind="set_formula",
        description="Writes an Excel formula string (starting with '=') to a cell.",
        aliases={"column": "col", "value": "formula"},
    ),
    "format_cells": OperationSpec(
        kind="format_cells",
        description=(
            "Applies bold, backgroundColor and/or textColor to a range. "
            f"Omitted attributes are left unchanged; {_RANGE_DESCRIPTION}"
        ),
        aliases={
            "background": "backgroundColor",
            "fillColor": "backgroundColor",
            "color": "textColor",
            "fontColor": "textColor",
        },
    ),
    "insert_row": OperationSpec(
        kind="insert_row",
        description="Inserts count rows (default 1) before index.",
        aliases={"row": "index"},
    ),
    "insert_column": OperationSpec(
        kind="insert_column",
        description="Inserts count columns (default 1) before index.",
        aliases={"col": "index", "column": "index"},
    ),
    "add_sheet": OperationSpec(
        kind="add_sheet",
        description="Adds a new sheet and makes it active.",
        aliases={"title": "name", "sheetName": "name"},
    ),
    "rename_sheet": OperationSpec(
        kind="rename_sheet",
        description="Renames a sheet by index (the active sheet when omitted).",
        aliases={"title": "name", "newName": "name"},
    ),
    "read_range": OperationSpec(
        kind="read_range",
        description=f"Reads current values from a range; {_RANGE_DESCRIPTION}",
    ),
    "clear_range": OperationSpec(
        kind="clear_range",
        description=(
            f"Clears all values and formatting in a range; {_RANGE_DESCRIPTION}"
        ),
    ),
    "set_column_width": OperationSpec(
        kind="set_column_width",
        description=(
            "Sets pixel widths for columns given as a map of column index to "
            "width, e.g. {\"0\": 120, \"3\": 80}."
        ),
        aliases={"widths": "columns"},
    ),
    "merge_cells": OperationSpec(
        kind="merge_cells",
        description=f"Merges a cell range into one cell; {_RANGE_DESCRIPTION}",
    ),
    "freeze_panes": OperationSpec(
        kind="freeze_panes",
        description=(
            "Freezes rows through row and/or columns through column; "
            "mode is row, column or both."
        ),
        aliases={"col": "column"},
    ),
    "conditional_format": OperationSpec(
        kind="conditional_format",
        description=(
            "Colors cells by value: color_scale, highlight_above, "
            "highlight_below or highlight_negative, with optional threshold, "
            f"colorHigh and colorLow; {_RANGE_DESCRIPTION}"
        ),
        aliases={"type": "rule", "value": "threshold"},
    ),
    "add_chart": OperationSpec(
        kind="add_chart",
        description=(
            f"Adds a chart ({SUPPORTED_CHART_TYPES_CSV}) with a title, "
            "category labels (xLabels) and one or more named numeric series."
        ),
        aliases={"type": "chartType", "labels": "xLabels", "categories": "xLabels"},
    ),
}


def get_alias_map_for_operation(kind: str) -> dict[str, str]:
    """Return alias mapping for one operation kind."""
    if kind not in OPERATION_SPECS:
        return {}
    spec = OPERATION_SPECS[cast(OperationKind, kind)]
    return dict(spec.aliases)


def get_description(kind: str) -> str:
    """Return the agent-facing description for one operation kind."""
    if kind not in OPERATION_SPECS:
        return ""
    return OPERATION_SPECS[cast(OperationKind, kind)].description
