"""Range normalization for untrusted, agent-supplied coordinates.

Every coordinate that reaches the document passes through ``clamp_range`` or
``clamp_cell`` first, so negative, inverted or oversized inputs become a
usable range instead of an error.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .shared.a1 import range_label

CellScalar: TypeAlias = str | int | float | bool | None
CellGrid: TypeAlias = list[list[CellScalar]]


class SheetBounds(BaseModel):
    """Grid dimensions of one sheet at the moment of use."""

    model_config = ConfigDict(frozen=True)

    row_count: int = Field(ge=0)
    column_count: int = Field(ge=0)

    @property
    def max_row(self) -> int:
        return max(self.row_count - 1, 0)

    @property
    def max_col(self) -> int:
        return max(self.column_count - 1, 0)


class CellRange(BaseModel):
    """Inclusive, zero-based rectangular range."""

    model_config = ConfigDict(frozen=True)

    start_row: int = Field(ge=0)
    start_col: int = Field(ge=0)
    end_row: int = Field(ge=0)
    end_col: int = Field(ge=0)

    @model_validator(mode="after")
    def _validate_order(self) -> CellRange:
        if self.end_row < self.start_row or self.end_col < self.start_col:
            raise ValueError("Range end must not precede range start.")
        return self

    @property
    def row_count(self) -> int:
        return self.end_row - self.start_row + 1

    @property
    def column_count(self) -> int:
        return self.end_col - self.start_col + 1

    @property
    def label(self) -> str:
        return range_label(self.start_row, self.start_col, self.end_row, self.end_col)

    def cells(self) -> Iterator[tuple[int, int]]:
        """Yield every (row, col) in row-major order."""
        for row in range(self.start_row, self.end_row + 1):
            for col in range(self.start_col, self.end_col + 1):
                yield row, col

    def intersects(self, other: CellRange) -> bool:
        return not (
            other.end_row < self.start_row
            or other.start_row > self.end_row
            or other.end_col < self.start_col
            or other.start_col > self.end_col
        )


class RectangularGrid(BaseModel):
    """Result of ``rectangularize``; ``cols == 0`` means nothing to write."""

    grid: CellGrid = Field(default_factory=list)
    cols: int = 0

    @property
    def rows(self) -> int:
        return len(self.grid)

    @property
    def is_empty(self) -> bool:
        return self.cols == 0


def clamp_index(value: int, upper: int) -> int:
    """Clamp one coordinate into ``[0, upper]``."""
    return min(max(value, 0), max(upper, 0))


def clamp_range(
    bounds: SheetBounds,
    start_row: int,
    start_col: int,
    end_row: int,
    end_col: int,
) -> CellRange:
    """Clamp a range into the sheet; never raises.

    Each coordinate is clamped independently. If the clamped end precedes the
    clamped start on either axis, the result collapses to the single cell at
    the clamped start.
    """
    top = clamp_index(start_row, bounds.max_row)
    left = clamp_index(start_col, bounds.max_col)
    bottom = clamp_index(end_row, bounds.max_row)
    right = clamp_index(end_col, bounds.max_col)
    if bottom < top or right < left:
        return CellRange(start_row=top, start_col=left, end_row=top, end_col=left)
    return CellRange(start_row=top, start_col=left, end_row=bottom, end_col=right)


def clamp_cell(bounds: SheetBounds, row: int, col: int) -> CellRange:
    """Clamp a single cell reference into a one-cell range."""
    return clamp_range(bounds, row, col, row, col)


def rectangularize(values: Sequence[Sequence[CellScalar]]) -> RectangularGrid:
    """Pad ragged rows with ``None`` up to the widest row."""
    cols = max((len(row) for row in values), default=0)
    if cols == 0:
        return RectangularGrid()
    grid = [list(row) + [None] * (cols - len(row)) for row in values]
    return RectangularGrid(grid=grid, cols=cols)


def truncate_grid(grid: CellGrid, rows: int, cols: int) -> CellGrid:
    """Cut a grid down to at most ``rows`` x ``cols``."""
    return [list(row[:cols]) for row in grid[:rows]]
