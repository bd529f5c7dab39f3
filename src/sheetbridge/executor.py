from __future__ import annotations

from collections.abc import Callable, Iterable
import logging
import math
from typing import Any, Final, get_args
import uuid

from .charts import ChartBoard
from .config import BridgeSettings
from .document import CellData, SpreadsheetDocument
from .highlights import HighlightBoard
from .ops.models import (
    AddChart,
    AddSheet,
    ChartRecord,
    ClearRange,
    ConditionalFormat,
    FormatCells,
    FreezePanes,
    InsertColumn,
    InsertRow,
    MergeCells,
    Operation,
    OperationError,
    OperationOutcome,
    RangeInput,
    ReadRange,
    RenameSheet,
    SetColumnWidth,
    SetFormula,
    WriteCell,
    WriteRange,
)
from .ops.types import OperationKind, OutcomeStatus
from .ranges import (
    CellGrid,
    CellRange,
    clamp_cell,
    clamp_index,
    clamp_range,
    rectangularize,
    truncate_grid,
)
from .snapshot import format_row

logger = logging.getLogger(__name__)


class OperationExecutor:
    """Apply validated operations to one document.

    ``execute`` never raises: each operation runs inside its own failure
    boundary, and a failure is logged and reported as a ``failed`` outcome.
    """

    def __init__(
        self,
        document: SpreadsheetDocument,
        *,
        settings: BridgeSettings | None = None,
        highlights: HighlightBoard | None = None,
        charts: ChartBoard | None = None,
    ) -> None:
        self.document = document
        self.settings = settings or BridgeSettings()
        self.highlights = highlights
        self.charts = charts if charts is not None else ChartBoard()

    def execute(
        self, operation: Operation, *, tool_call_id: str | None = None
    ) -> OperationOutcome:
        handler = _HANDLERS[operation.kind]
        try:
            outcome = handler(self, operation)
        except Exception as exc:
            logger.exception(
                "Operation %s (%s) failed: %s", operation.kind, tool_call_id, exc
            )
            error = OperationError.from_operation(
                operation.kind, exc, tool_call_id=tool_call_id
            )
            return OperationOutcome(
                kind=operation.kind,
                tool_call_id=tool_call_id,
                status="failed",
                error=error.detail,
            )
        logger.debug(
            "Operation %s (%s) %s at %s",
            operation.kind,
            tool_call_id,
            outcome.status,
            outcome.target,
        )
        return outcome.model_copy(update={"tool_call_id": tool_call_id})

    def execute_all(self, operations: Iterable[Operation]) -> list[OperationOutcome]:
        """Execute in order; a failure does not stop later operations."""
        return [self.execute(operation) for operation in operations]

    def _write_cell(self, op: WriteCell) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = clamp_cell(self.document.bounds(sheet), op.row, op.col)
        self.document.set_value(sheet, target.start_row, target.start_col, op.value)
        self._flash(sheet, target)
        return _outcome(op, sheet=sheet, target=target)

    def _set_formula(self, op: SetFormula) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = clamp_cell(self.document.bounds(sheet), op.row, op.col)
        self.document.set_formula(sheet, target.start_row, target.start_col, op.formula)
        self._flash(sheet, target)
        return _outcome(op, sheet=sheet, target=target)

    def _write_range(self, op: WriteRange) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        rect = rectangularize(op.values)
        if rect.is_empty:
            return _outcome(op, status="skipped", sheet=sheet, output="No values.")
        target = clamp_range(
            self.document.bounds(sheet),
            op.start_row,
            op.start_col,
            op.start_row + rect.rows - 1,
            op.start_col + rect.cols - 1,
        )
        grid = truncate_grid(rect.grid, target.row_count, target.column_count)
        output: str | None = None
        try:
            self.document.set_values(sheet, target.start_row, target.start_col, grid)
        except Exception as exc:
            logger.warning(
                "Bulk write to %s failed, writing cells one by one: %s",
                target.label,
                exc,
            )
            written, failed = self._write_cells(sheet, target, grid)
            output = f"Wrote {written} cells individually; {failed} failed."
        self._flash(sheet, target)
        return _outcome(op, sheet=sheet, target=target, output=output)

    def _write_cells(
        self, sheet: int, target: CellRange, grid: CellGrid
    ) -> tuple[int, int]:
        written = 0
        failed = 0
        for r_idx, row in enumerate(grid):
            for c_idx, value in enumerate(row):
                if value is None:
                    continue
                row_index = target.start_row + r_idx
                col_index = target.start_col + c_idx
                try:
                    self.document.set_value(sheet, row_index, col_index, value)
                except Exception as exc:
                    failed += 1
                    logger.warning(
                        "Cell write failed at row %s col %s: %s",
                        row_index,
                        col_index,
                        exc,
                    )
                    continue
                written += 1
        return written, failed

    def _format_cells(self, op: FormatCells) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = self._clamp(sheet, op.range)
        if op.bold is None and op.background_color is None and op.text_color is None:
            return _outcome(op, status="skipped", sheet=sheet, target=target)
        if op.bold is not None:
            self.document.set_bold(sheet, target, op.bold)
        if op.background_color is not None:
            self.document.set_background(sheet, target, op.background_color)
        if op.text_color is not None:
            self.document.set_text_color(sheet, target, op.text_color)
        return _outcome(op, sheet=sheet, target=target)

    def _insert_row(self, op: InsertRow) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        bounds = self.document.bounds(sheet)
        index = clamp_index(op.index, bounds.row_count)
        self.document.insert_rows(sheet, index, op.count)
        return _outcome(
            op, sheet=sheet, output=f"Inserted {op.count} row(s) at {index}."
        )

    def _insert_column(self, op: InsertColumn) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        bounds = self.document.bounds(sheet)
        index = clamp_index(op.index, bounds.column_count)
        self.document.insert_columns(sheet, index, op.count)
        return _outcome(
            op, sheet=sheet, output=f"Inserted {op.count} column(s) at {index}."
        )

    def _add_sheet(self, op: AddSheet) -> OperationOutcome:
        sheet = self.document.add_sheet(op.name)
        self.document.set_active_sheet(sheet)
        name = self.document.sheet_names()[sheet]
        return _outcome(op, sheet=sheet, output=f"Added sheet {name!r}.")

    def _rename_sheet(self, op: RenameSheet) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        self.document.rename_sheet(sheet, op.name)
        return _outcome(op, sheet=sheet)

    def _read_range(self, op: ReadRange) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = self._clamp(sheet, op.range)
        rows = self.document.get_values(sheet, target)
        lines = [f"{target.label}:"]
        lines.extend(
            format_row(target.start_row + r_idx, target.start_col, cells)
            for r_idx, cells in enumerate(rows)
        )
        return _outcome(op, sheet=sheet, target=target, output="\n".join(lines))

    def _clear_range(self, op: ClearRange) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = self._clamp(sheet, op.range)
        self.document.clear_range(sheet, target)
        return _outcome(op, sheet=sheet, target=target)

    def _set_column_width(self, op: SetColumnWidth) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        bounds = self.document.bounds(sheet)
        for col, width in sorted(op.columns.items()):
            self.document.set_column_width(
                sheet, clamp_index(col, bounds.max_col), width
            )
        return _outcome(op, sheet=sheet)

    def _merge_cells(self, op: MergeCells) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = self._clamp(sheet, op.range)
        if target.row_count == 1 and target.column_count == 1:
            return _outcome(
                op,
                status="skipped",
                sheet=sheet,
                target=target,
                output="A single cell cannot be merged.",
            )
        self.document.merge_range(sheet, target)
        return _outcome(op, sheet=sheet, target=target)

    def _freeze_panes(self, op: FreezePanes) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        bounds = self.document.bounds(sheet)
        rows = 0
        columns = 0
        if op.mode in ("row", "both"):
            rows = clamp_index(op.row or 0, bounds.max_row) + 1
        if op.mode in ("column", "both"):
            columns = clamp_index(op.column or 0, bounds.max_col) + 1
        self.document.freeze_panes(sheet, rows, columns)
        return _outcome(
            op, sheet=sheet, output=f"Frozen {rows} row(s), {columns} column(s)."
        )

    def _conditional_format(self, op: ConditionalFormat) -> OperationOutcome:
        sheet = self._resolve_sheet(op.sheet)
        target = self._clamp(sheet, op.range)
        color_high = op.color_high or self.settings.default_conditional_high
        color_low = op.color_low or self.settings.default_conditional_low
        numbers = _numeric_cells(target, self.document.get_values(sheet, target))
        colored = _conditional_colors(
            op.rule, numbers, op.threshold, color_high, color_low
        )
        for (row, col), color in colored.items():
            self.document.set_background(
                sheet,
                CellRange(start_row=row, start_col=col, end_row=row, end_col=col),
                color,
            )
        status: OutcomeStatus = "applied" if colored else "skipped"
        return _outcome(
            op,
            status=status,
            sheet=sheet,
            target=target,
            output=f"{len(colored)} cell(s) colored.",
        )

    def _add_chart(self, op: AddChart) -> OperationOutcome:
        chart = ChartRecord(
            id=op.id or f"chart-{uuid.uuid4().hex[:8]}",
            chart_type=op.chart_type,
            title=op.title,
            x_labels=list(op.x_labels),
            series=list(op.series),
        )
        self.charts.add(chart)
        return _outcome(op, output=chart.id)

    def _resolve_sheet(self, sheet: int | None) -> int:
        """Resolve an optional sheet index, clamped like any coordinate."""
        count = self.document.sheet_count()
        if count == 0:
            raise ValueError("Document has no sheets.")
        if sheet is None:
            sheet = self.document.active_sheet_index()
        return clamp_index(sheet, count - 1)

    def _clamp(self, sheet: int, spec: RangeInput) -> CellRange:
        return clamp_range(
            self.document.bounds(sheet),
            spec.start_row,
            spec.start_col,
            spec.end_row,
            spec.end_col,
        )

    def _flash(self, sheet: int, target: CellRange) -> None:
        if self.highlights is not None:
            self.highlights.flash(sheet, target)


def _outcome(
    op: Operation,
    *,
    status: OutcomeStatus = "applied",
    sheet: int | None = None,
    target: CellRange | None = None,
    output: str | None = None,
) -> OperationOutcome:
    return OperationOutcome(
        kind=op.kind,
        status=status,
        sheet=sheet,
        target=target.label if target is not None else None,
        output=output,
    )


def coerce_number(value: object) -> float | None:
    """Coerce a cell value to a finite number, or ``None`` if not numeric.

    Text is parsed after stripping thousands separators; booleans are not
    numbers here.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _numeric_cells(
    target: CellRange, rows: list[list[CellData]]
) -> dict[tuple[int, int], float]:
    numbers: dict[tuple[int, int], float] = {}
    for r_idx, cells in enumerate(rows):
        for c_idx, cell in enumerate(cells):
            number = coerce_number(cell.value)
            if number is not None:
                numbers[(target.start_row + r_idx, target.start_col + c_idx)] = number
    return numbers


def _conditional_colors(
    rule: str,
    numbers: dict[tuple[int, int], float],
    threshold: float,
    color_high: str,
    color_low: str,
) -> dict[tuple[int, int], str]:
    """Map each cell to its new background; cells left out stay untouched."""
    if rule == "highlight_above":
        return {
            cell: color_high for cell, value in numbers.items() if value > threshold
        }
    if rule == "highlight_below":
        return {cell: color_low for cell, value in numbers.items() if value < threshold}
    if rule == "highlight_negative":
        return {
            cell: color_low if value < 0 else color_high
            for cell, value in numbers.items()
            if value != 0
        }
    if rule == "color_scale":
        if not numbers:
            return {}
        low = min(numbers.values())
        high = max(numbers.values())
        if low == high:
            return {}
        midpoint = (low + high) / 2
        return {
            cell: color_high if value >= midpoint else color_low
            for cell, value in numbers.items()
        }
    raise ValueError(f"Unsupported conditional rule: {rule}")


_Handler = Callable[[OperationExecutor, Any], OperationOutcome]

_HANDLERS: Final[dict[OperationKind, _Handler]] = {
    "write_cell": OperationExecutor._write_cell,
    "write_range": OperationExecutor._write_range,
    "set_formula": OperationExecutor._set_formula,
    "format_cells": OperationExecutor._format_cells,
    "insert_row": OperationExecutor._insert_row,
    "insert_column": OperationExecutor._insert_column,
    "add_sheet": OperationExecutor._add_sheet,
    "rename_sheet": OperationExecutor._rename_sheet,
    "read_range": OperationExecutor._read_range,
    "clear_range": OperationExecutor._clear_range,
    "set_column_width": OperationExecutor._set_column_width,
    "merge_cells": OperationExecutor._merge_cells,
    "freeze_panes": OperationExecutor._freeze_panes,
    "conditional_format": OperationExecutor._conditional_format,
    "add_chart": OperationExecutor._add_chart,
}

_missing_handlers = set(get_args(OperationKind)) - set(_HANDLERS)
if _missing_handlers:  # pragma: no cover - import-time coverage check
    raise RuntimeError(f"Missing operation handlers: {sorted(_missing_handlers)}")
