from __future__ import annotations

from .a1 import (
    cell_label,
    column_index,
    column_label,
    parse_cell_ref,
    parse_range_ref,
    range_label,
)

__all__ = [
    "cell_label",
    "column_index",
    "column_label",
    "parse_cell_ref",
    "parse_range_ref",
    "range_label",
]
