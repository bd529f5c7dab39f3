from __future__ import annotations

from types import SimpleNamespace

import pytest

from sheetbridge.shared.colors import from_argb, normalize_hex_color, to_argb


def test_normalize_hex_color_adds_hash_and_uppercases() -> None:
    assert normalize_hex_color("c8e6c9") == "#C8E6C9"
    assert normalize_hex_color(" #80ff0000 ") == "#80FF0000"


def test_normalize_hex_color_rejects_invalid() -> None:
    with pytest.raises(ValueError, match="Invalid background_color format"):
        normalize_hex_color("red", field_name="background_color")


def test_argb_roundtrip() -> None:
    assert to_argb("#c8e6c9") == "FFC8E6C9"
    assert from_argb("FFC8E6C9") == "#C8E6C9"
    assert from_argb(SimpleNamespace(rgb="FF112233")) == "#112233"
    assert from_argb(None) is None
