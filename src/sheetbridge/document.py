from __future__ import annotations

from collections.abc import Sequence
from copy import copy
from typing import Protocol, runtime_checkable

from openpyxl import Workbook
from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.styles import Font, PatternFill
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel

from .ranges import CellRange, CellScalar, SheetBounds
from .shared.a1 import cell_label, column_label
from .shared.colors import from_argb, to_argb

DEFAULT_ROW_COUNT = 200
DEFAULT_COLUMN_COUNT = 60
_PIXELS_PER_CHARACTER = 7.0


class CellData(BaseModel):
    """Cell content as read back for serialization and conditional logic."""

    value: CellScalar = None
    formula: str | None = None

    @property
    def is_empty(self) -> bool:
        if self.formula:
            return False
        return self.value is None or self.value == ""


@runtime_checkable
class SpreadsheetDocument(Protocol):
    """Host spreadsheet engine interface used by the executor and serializer.

    Sheets are addressed by zero-based index; rows and columns are zero-based.
    Callers clamp coordinates with ``sheetbridge.ranges`` before calling in.
    """

    def sheet_count(self) -> int: ...

    def sheet_names(self) -> list[str]: ...

    def active_sheet_index(self) -> int: ...

    def set_active_sheet(self, sheet: int) -> None: ...

    def bounds(self, sheet: int) -> SheetBounds: ...

    def used_bounds(self, sheet: int) -> SheetBounds: ...

    def get_cell(self, sheet: int, row: int, col: int) -> CellData: ...

    def get_values(self, sheet: int, target: CellRange) -> list[list[CellData]]: ...

    def set_value(self, sheet: int, row: int, col: int, value: CellScalar) -> None: ...

    def set_formula(self, sheet: int, row: int, col: int, formula: str) -> None: ...

    def set_values(
        self,
        sheet: int,
        start_row: int,
        start_col: int,
        grid: Sequence[Sequence[CellScalar]],
    ) -> None: ...

    def clear_range(self, sheet: int, target: CellRange) -> None: ...

    def insert_rows(self, sheet: int, index: int, count: int) -> None: ...

    def insert_columns(self, sheet: int, index: int, count: int) -> None: ...

    def add_sheet(self, name: str | None = None) -> int: ...

    def rename_sheet(self, sheet: int, name: str) -> None: ...

    def set_column_width(self, sheet: int, col: int, width: float) -> None: ...

    def merge_range(self, sheet: int, target: CellRange) -> None: ...

    def freeze_panes(self, sheet: int, rows: int, columns: int) -> None: ...

    def set_bold(self, sheet: int, target: CellRange, bold: bool) -> None: ...

    def set_background(self, sheet: int, target: CellRange, color: str) -> None: ...

    def set_text_color(self, sheet: int, target: CellRange, color: str) -> None: ...


class WorkbookDocument:
    """``SpreadsheetDocument`` backed by an in-memory openpyxl workbook.

    openpyxl worksheets have no fixed grid size, so the visible grid
    (row/column count) is tracked here per sheet title and grows with
    insertions.
    """

    def __init__(
        self,
        workbook: Workbook | None = None,
        *,
        default_rows: int = DEFAULT_ROW_COUNT,
        default_columns: int = DEFAULT_COLUMN_COUNT,
    ) -> None:
        self.workbook = workbook if workbook is not None else Workbook()
        self._default_rows = default_rows
        self._default_columns = default_columns
        self._bounds: dict[str, SheetBounds] = {}
        for worksheet in self.workbook.worksheets:
            self._track(worksheet)

    def sheet_count(self) -> int:
        return len(self.workbook.worksheets)

    def sheet_names(self) -> list[str]:
        return list(self.workbook.sheetnames)

    def active_sheet_index(self) -> int:
        active = self.workbook.active
        if active is None:
            return 0
        return self.workbook.worksheets.index(active)

    def set_active_sheet(self, sheet: int) -> None:
        self.workbook.active = self._sheet(sheet)

    def bounds(self, sheet: int) -> SheetBounds:
        worksheet = self._sheet(sheet)
        bounds = self._bounds.get(worksheet.title)
        if bounds is None:
            bounds = self._track(worksheet)
        return bounds

    def used_bounds(self, sheet: int) -> SheetBounds:
        """Return the extent up to the last non-empty row and column."""
        worksheet = self._sheet(sheet)
        last_row = 0
        last_col = 0
        for (row, col), cell in worksheet._cells.items():  # noqa: SLF001
            if cell.value is None or cell.value == "":
                continue
            last_row = max(last_row, row)
            last_col = max(last_col, col)
        return SheetBounds(row_count=last_row, column_count=last_col)

    def get_cell(self, sheet: int, row: int, col: int) -> CellData:
        worksheet = self._sheet(sheet)
        return _read_cell(worksheet, row, col)

    def get_values(self, sheet: int, target: CellRange) -> list[list[CellData]]:
        worksheet = self._sheet(sheet)
        columns = range(target.start_col, target.end_col + 1)
        return [
            [_read_cell(worksheet, row, col) for col in columns]
            for row in range(target.start_row, target.end_row + 1)
        ]

    def set_value(self, sheet: int, row: int, col: int, value: CellScalar) -> None:
        worksheet = self._sheet(sheet)
        worksheet.cell(row=row + 1, column=col + 1).value = value

    def set_formula(self, sheet: int, row: int, col: int, formula: str) -> None:
        if not formula.startswith("="):
            raise ValueError("Formula must start with '='.")
        worksheet = self._sheet(sheet)
        worksheet.cell(row=row + 1, column=col + 1).value = formula

    def set_values(
        self,
        sheet: int,
        start_row: int,
        start_col: int,
        grid: Sequence[Sequence[CellScalar]],
    ) -> None:
        worksheet = self._sheet(sheet)
        for r_idx, row in enumerate(grid):
            for c_idx, value in enumerate(row):
                worksheet.cell(
                    row=start_row + r_idx + 1, column=start_col + c_idx + 1
                ).value = value

    def clear_range(self, sheet: int, target: CellRange) -> None:
        worksheet = self._sheet(sheet)
        for row, col in target.cells():
            cell = _existing_cell(worksheet, row, col)
            if cell is None:
                continue
            if not isinstance(cell, MergedCell):
                cell.value = None
            cell.font = Font()
            cell.fill = PatternFill()
            cell.number_format = "General"

    def insert_rows(self, sheet: int, index: int, count: int) -> None:
        worksheet = self._sheet(sheet)
        worksheet.insert_rows(index + 1, amount=count)
        bounds = self.bounds(sheet)
        self._bounds[worksheet.title] = SheetBounds(
            row_count=bounds.row_count + count, column_count=bounds.column_count
        )

    def insert_columns(self, sheet: int, index: int, count: int) -> None:
        worksheet = self._sheet(sheet)
        worksheet.insert_cols(index + 1, amount=count)
        bounds = self.bounds(sheet)
        self._bounds[worksheet.title] = SheetBounds(
            row_count=bounds.row_count, column_count=bounds.column_count + count
        )

    def add_sheet(self, name: str | None = None) -> int:
        title = name or self._next_sheet_title()
        worksheet = self.workbook.create_sheet(title=title)
        self._track(worksheet)
        index = self.workbook.worksheets.index(worksheet)
        self.workbook.active = worksheet
        return index

    def rename_sheet(self, sheet: int, name: str) -> None:
        worksheet = self._sheet(sheet)
        old_title = worksheet.title
        bounds = self.bounds(sheet)
        worksheet.title = name
        self._bounds.pop(old_title, None)
        self._bounds[worksheet.title] = bounds

    def set_column_width(self, sheet: int, col: int, width: float) -> None:
        worksheet = self._sheet(sheet)
        worksheet.column_dimensions[column_label(col)].width = round(
            width / _PIXELS_PER_CHARACTER, 2
        )

    def column_width(self, sheet: int, col: int) -> float | None:
        """Return the column width in pixels, or None when unset."""
        worksheet = self._sheet(sheet)
        label = column_label(col)
        if label not in worksheet.column_dimensions:
            return None
        width = worksheet.column_dimensions[label].width
        if width is None:
            return None
        return round(width * _PIXELS_PER_CHARACTER, 2)

    def merge_range(self, sheet: int, target: CellRange) -> None:
        worksheet = self._sheet(sheet)
        for existing in self.merged_ranges(sheet):
            if existing.intersects(target):
                worksheet.unmerge_cells(existing.label)
        worksheet.merge_cells(
            start_row=target.start_row + 1,
            start_column=target.start_col + 1,
            end_row=target.end_row + 1,
            end_column=target.end_col + 1,
        )

    def merged_ranges(self, sheet: int) -> list[CellRange]:
        worksheet = self._sheet(sheet)
        return [
            CellRange(
                start_row=merged.min_row - 1,
                start_col=merged.min_col - 1,
                end_row=merged.max_row - 1,
                end_col=merged.max_col - 1,
            )
            for merged in list(worksheet.merged_cells.ranges)
        ]

    def freeze_panes(self, sheet: int, rows: int, columns: int) -> None:
        worksheet = self._sheet(sheet)
        if rows <= 0 and columns <= 0:
            worksheet.freeze_panes = None
            return
        worksheet.freeze_panes = cell_label(max(rows, 0), max(columns, 0))

    def set_bold(self, sheet: int, target: CellRange, bold: bool) -> None:
        worksheet = self._sheet(sheet)
        for row, col in target.cells():
            cell = worksheet.cell(row=row + 1, column=col + 1)
            font = copy_font(cell.font)
            font.bold = bold
            cell.font = font

    def set_background(self, sheet: int, target: CellRange, color: str) -> None:
        worksheet = self._sheet(sheet)
        argb = to_argb(color)
        for row, col in target.cells():
            worksheet.cell(row=row + 1, column=col + 1).fill = PatternFill(
                fill_type="solid", start_color=argb, end_color=argb
            )

    def set_text_color(self, sheet: int, target: CellRange, color: str) -> None:
        worksheet = self._sheet(sheet)
        argb = to_argb(color)
        for row, col in target.cells():
            cell = worksheet.cell(row=row + 1, column=col + 1)
            font = copy_font(cell.font)
            font.color = argb
            cell.font = font

    def background(self, sheet: int, row: int, col: int) -> str | None:
        """Return the solid fill color of a cell as ``#RRGGBB``, if any."""
        cell = _existing_cell(self._sheet(sheet), row, col)
        if cell is None:
            return None
        fill = cell.fill
        if getattr(fill, "fill_type", None) != "solid":
            return None
        return from_argb(getattr(fill, "start_color", None))

    def _sheet(self, sheet: int) -> Worksheet:
        worksheets = self.workbook.worksheets
        if not 0 <= sheet < len(worksheets):
            raise IndexError(f"Sheet index out of range: {sheet}")
        return worksheets[sheet]

    def _track(self, worksheet: Worksheet) -> SheetBounds:
        bounds = SheetBounds(
            row_count=max(self._default_rows, worksheet.max_row),
            column_count=max(self._default_columns, worksheet.max_column),
        )
        self._bounds[worksheet.title] = bounds
        return bounds

    def _next_sheet_title(self) -> str:
        existing = set(self.workbook.sheetnames)
        number = len(existing) + 1
        while f"Sheet{number}" in existing:
            number += 1
        return f"Sheet{number}"


def copy_font(font: Font) -> Font:
    """Return a mutable copy of an openpyxl font."""
    return copy(font)


def _existing_cell(
    worksheet: Worksheet, row: int, col: int
) -> Cell | MergedCell | None:
    """Return a cell only if it already exists; reading must not create cells."""
    return worksheet._cells.get((row + 1, col + 1))  # noqa: SLF001


def _read_cell(worksheet: Worksheet, row: int, col: int) -> CellData:
    cell = _existing_cell(worksheet, row, col)
    if cell is None:
        return CellData()
    raw = cell.value
    if cell.data_type == "f":
        text = raw if isinstance(raw, str) else getattr(raw, "text", None)
        if text is None:
            text = str(raw)
        formula = text if text.startswith("=") else f"={text}"
        return CellData(value=None, formula=formula)
    if raw is None or isinstance(raw, (str, int, float, bool)):
        return CellData(value=raw)
    return CellData(value=str(raw))
