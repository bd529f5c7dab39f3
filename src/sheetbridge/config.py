from __future__ import annotations

from collections.abc import Callable, Mapping
import os
from typing import Any, Final

from pydantic import BaseModel, Field, field_validator

from .shared.colors import normalize_hex_color

_ENV_FIELDS: Final[dict[str, tuple[str, Callable[[str], Any]]]] = {
    "SHEETBRIDGE_MAX_TOKENS": ("max_token_estimate", int),
    "SHEETBRIDGE_CHARS_PER_TOKEN": ("avg_chars_per_token", int),
    "SHEETBRIDGE_MAX_ROWS": ("max_rows_per_sheet", int),
    "SHEETBRIDGE_HIGHLIGHT_DELAY": ("highlight_delay_seconds", float),
    "SHEETBRIDGE_ROWS": ("default_row_count", int),
    "SHEETBRIDGE_COLUMNS": ("default_column_count", int),
}


class BridgeSettings(BaseModel):
    """Tunable limits and defaults shared by one session's components."""

    max_token_estimate: int = Field(
        default=6000, gt=0, description="Snapshot budget in estimated tokens."
    )
    avg_chars_per_token: int = Field(
        default=4, gt=0, description="Characters assumed per token."
    )
    max_rows_per_sheet: int = Field(
        default=200, gt=0, description="Rows per sheet considered by the snapshot."
    )
    highlight_delay_seconds: float = Field(
        default=1.5, ge=0, description="Lifetime of a write highlight."
    )
    highlight_color: str = "#d4f5f0"
    default_row_count: int = Field(default=200, gt=0)
    default_column_count: int = Field(default=60, gt=0)
    default_conditional_high: str = "#c8e6c9"
    default_conditional_low: str = "#ffcdd2"

    @field_validator(
        "highlight_color", "default_conditional_high", "default_conditional_low"
    )
    @classmethod
    def _validate_color(cls, value: str) -> str:
        return normalize_hex_color(value)

    @property
    def max_chars(self) -> int:
        return self.max_token_estimate * self.avg_chars_per_token

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BridgeSettings:
        """Build settings with ``SHEETBRIDGE_*`` overrides applied.

        Args:
            environ: Environment mapping; defaults to ``os.environ``.

        Returns:
            Settings instance.

        Raises:
            ValueError: If a variable cannot be parsed.
        """
        source = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for variable, (field_name, parse) in _ENV_FIELDS.items():
            raw = source.get(variable)
            if raw is None or not raw.strip():
                continue
            try:
                overrides[field_name] = parse(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {variable}: {raw!r}") from exc
        return cls(**overrides)
