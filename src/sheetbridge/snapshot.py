"""Size-bounded text projection of the document, sent to the agent each turn.

Format::

    Sheet "Budget" (3 rows × 2 cols):
      A1: Month | Income
      A2: January | 5000
    Sheet "Notes": empty

Rows beyond ``max_rows`` per sheet are never read. Once the next line would
push the output past ``max_chars``, a single truncation marker is appended
and serialization stops, so later sheets may be omitted entirely.
"""

from __future__ import annotations

from collections.abc import Iterator
import logging
import math

from .config import BridgeSettings
from .document import CellData, SpreadsheetDocument
from .ranges import CellRange
from .shared.a1 import cell_label

logger = logging.getLogger(__name__)

MAX_TOKEN_ESTIMATE = 6000
AVG_CHARS_PER_TOKEN = 4
MAX_CHARS = MAX_TOKEN_ESTIMATE * AVG_CHARS_PER_TOKEN
MAX_ROWS_PER_SHEET = 200
EMPTY_SNAPSHOT = "Empty spreadsheet."
TRUNCATION_MARKER = "  ... (truncated for context limit)"
FIELD_SEPARATOR = " | "


def serialize_document(
    document: SpreadsheetDocument,
    *,
    max_chars: int = MAX_CHARS,
    max_rows: int = MAX_ROWS_PER_SHEET,
) -> str:
    """Encode every sheet of the document; never raises.

    Args:
        document: Document to project.
        max_chars: Character budget before the truncation marker.
        max_rows: Rows per sheet considered, regardless of budget.

    Returns:
        Snapshot text, or ``EMPTY_SNAPSHOT`` when there is nothing to show
        or serialization fails.
    """
    try:
        return _serialize(document, max_chars=max_chars, max_rows=max_rows)
    except Exception:
        logger.exception("Snapshot serialization failed.")
        return EMPTY_SNAPSHOT


def cell_text(cell: CellData) -> str:
    """Render one cell: formula text if present, else the coerced value."""
    if cell.formula:
        return cell.formula
    value = cell.value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    # One document row must stay one snapshot line.
    return " ".join(str(value).splitlines())


def format_row(row: int, start_col: int, cells: list[CellData]) -> str:
    fields = FIELD_SEPARATOR.join(cell_text(cell) for cell in cells)
    return f"  {cell_label(row, start_col)}: {fields}"


def estimate_tokens(text: str, avg_chars_per_token: int = AVG_CHARS_PER_TOKEN) -> int:
    return math.ceil(len(text) / avg_chars_per_token)


class SnapshotSerializer:
    """``serialize_document`` bound to one session's settings."""

    def __init__(self, settings: BridgeSettings | None = None) -> None:
        self.settings = settings or BridgeSettings()

    @property
    def max_chars(self) -> int:
        return self.settings.max_chars

    def serialize(self, document: SpreadsheetDocument) -> str:
        return serialize_document(
            document,
            max_chars=self.settings.max_chars,
            max_rows=self.settings.max_rows_per_sheet,
        )

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text, self.settings.avg_chars_per_token)


class _LineBudget:
    """Running character count over every emitted line, newlines included."""

    def __init__(self, max_chars: int) -> None:
        self.max_chars = max_chars
        self.used = 0
        self.lines: list[str] = []

    def take(self, line: str) -> bool:
        cost = len(line) + (1 if self.lines else 0)
        if self.used + cost > self.max_chars:
            return False
        self.used += cost
        self.lines.append(line)
        return True

    def render(self) -> str:
        return "\n".join(self.lines)


def _serialize(document: SpreadsheetDocument, *, max_chars: int, max_rows: int) -> str:
    names = document.sheet_names()
    if not names:
        return EMPTY_SNAPSHOT
    budget = _LineBudget(max_chars)
    for index, name in enumerate(names):
        title = name or f"Sheet{index + 1}"
        for line in _sheet_lines(document, index, title, max_rows):
            if not budget.take(line):
                budget.lines.append(TRUNCATION_MARKER)
                return budget.render()
    return budget.render() or EMPTY_SNAPSHOT


def _sheet_lines(
    document: SpreadsheetDocument, sheet: int, name: str, max_rows: int
) -> Iterator[str]:
    used = document.used_bounds(sheet)
    if used.row_count == 0 or used.column_count == 0:
        yield f'Sheet "{name}": empty'
        return
    yield f'Sheet "{name}" ({used.row_count} rows × {used.column_count} cols):'
    scan = CellRange(
        start_row=0,
        start_col=0,
        end_row=min(used.row_count, max_rows) - 1,
        end_col=used.column_count - 1,
    )
    for row, cells in enumerate(document.get_values(sheet, scan)):
        if all(cell_text(cell) == "" for cell in cells):
            continue
        yield format_row(row, 0, cells)
