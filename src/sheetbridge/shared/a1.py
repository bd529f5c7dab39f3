from __future__ import annotations

import re

_A1_PATTERN = re.compile(r"^([A-Za-z]{1,3})([1-9][0-9]*)$")
_A1_RANGE_PATTERN = re.compile(r"^[A-Za-z]{1,3}[1-9][0-9]*:[A-Za-z]{1,3}[1-9][0-9]*$")
_COLUMN_LABEL_PATTERN = re.compile(r"^[A-Za-z]{1,3}$")


def column_label(index: int) -> str:
    """Convert a zero-based column index to its label (0 -> A, 26 -> AA)."""
    if index < 0:
        raise ValueError("Column index must not be negative.")
    chunks: list[str] = []
    current = index + 1
    while current > 0:
        current -= 1
        chunks.append(chr(ord("A") + (current % 26)))
        current //= 26
    return "".join(reversed(chunks))


def column_index(label: str) -> int:
    """Convert a column label (A/AA) to its zero-based index."""
    normalized = label.strip().upper()
    if not _COLUMN_LABEL_PATTERN.match(normalized):
        raise ValueError(f"Invalid column label: {label}")
    index = 0
    for char in normalized:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def cell_label(row: int, col: int) -> str:
    """Return the A1 label for a zero-based (row, col) pair."""
    if row < 0:
        raise ValueError("Row index must not be negative.")
    return f"{column_label(col)}{row + 1}"


def parse_cell_ref(ref: str) -> tuple[int, int]:
    """Parse an A1 cell reference into a zero-based (row, col) pair."""
    match = _A1_PATTERN.match(ref.strip())
    if match is None:
        raise ValueError(f"Invalid cell reference: {ref}")
    return int(match.group(2)) - 1, column_index(match.group(1))


def range_label(start_row: int, start_col: int, end_row: int, end_col: int) -> str:
    """Return an A1 range label; single cells render without a colon."""
    start = cell_label(start_row, start_col)
    if (start_row, start_col) == (end_row, end_col):
        return start
    return f"{start}:{cell_label(end_row, end_col)}"


def parse_range_ref(ref: str) -> tuple[int, int, int, int]:
    """Parse ``A1:C3`` (or a single ``B2``) into zero-based corner coordinates.

    Corners are returned as written; ordering is left to the range normalizer.
    """
    candidate = ref.strip()
    if _A1_PATTERN.match(candidate):
        row, col = parse_cell_ref(candidate)
        return row, col, row, col
    if not _A1_RANGE_PATTERN.match(candidate):
        raise ValueError(f"Invalid range reference: {ref}")
    start, end = candidate.split(":", maxsplit=1)
    start_row, start_col = parse_cell_ref(start)
    end_row, end_col = parse_cell_ref(end)
    return start_row, start_col, end_row, end_col
