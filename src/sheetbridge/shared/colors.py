from __future__ import annotations

import re

_HEX_COLOR_PATTERN = re.compile(r"^#?(?:[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$")


def normalize_hex_color(value: str, *, field_name: str = "color") -> str:
    """Normalize HEX input into ``#RRGGBB`` or ``#AARRGGBB`` form.

    Args:
        value: Raw color text from the agent.
        field_name: Field name used in validation messages.

    Returns:
        Uppercase HEX string with a leading ``#``.

    Raises:
        ValueError: If the value is not valid HEX color text.
    """
    text = value.strip().upper()
    if not _HEX_COLOR_PATTERN.match(text):
        raise ValueError(
            f"Invalid {field_name} format. Use 'RRGGBB', 'AARRGGBB', "
            "'#RRGGBB', or '#AARRGGBB'."
        )
    return text if text.startswith("#") else f"#{text}"


def to_argb(value: str) -> str:
    """Convert HEX color text into the AARRGGBB form openpyxl stores."""
    raw = normalize_hex_color(value)[1:]
    return raw if len(raw) == 8 else f"FF{raw}"


def from_argb(value: object) -> str | None:
    """Convert an openpyxl color (or its rgb text) back into ``#RRGGBB``."""
    rgb = getattr(value, "rgb", value)
    if not isinstance(rgb, str) or len(rgb) != 8:
        return None
    text = rgb.upper()
    return f"#{text[2:]}" if text.startswith("FF") else f"#{text}"
