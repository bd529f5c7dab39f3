from __future__ import annotations

import json
import re
from typing import Any, Final, cast

from pydantic import ValidationError

from ..shared.a1 import parse_range_ref
from .models import OPERATION_ADAPTER, Operation, OperationError
from .specs import OPERATION_SPECS, get_alias_map_for_operation

_RANGE_KINDS: Final[frozenset[str]] = frozenset(
    {
        "format_cells",
        "read_range",
        "clear_range",
        "merge_cells",
        "conditional_format",
    }
)
_CORNER_FIELDS: Final[tuple[str, ...]] = ("startRow", "startCol", "endRow", "endCol")
_CAMEL_BOUNDARY = re.compile(r"([A-Z])")


def parse_tool_call(
    tool_name: str,
    arguments: object,
    *,
    tool_call_id: str | None = None,
) -> Operation:
    """Validate one decoded tool call into an Operation.

    Args:
        tool_name: Operation kind as named by the agent.
        arguments: Argument object, JSON object text, or ``None``.
        tool_call_id: Invocation id, carried into error details.

    Returns:
        The validated operation.

    Raises:
        OperationError: If the tool is unknown or its arguments are invalid.
    """
    kind = tool_name.strip()
    if kind not in OPERATION_SPECS:
        raise OperationError.from_operation(
            kind,
            ValueError(f"Unknown operation: {tool_name!r}"),
            tool_call_id=tool_call_id,
        )
    try:
        return parse_operation(kind, parse_arguments(arguments))
    except ValidationError as exc:
        message = build_operation_error_message(kind, _summarize_validation(exc))
        raise OperationError.from_operation(
            kind, ValueError(message), tool_call_id=tool_call_id
        ) from exc
    except ValueError as exc:
        raise OperationError.from_operation(
            kind, exc, tool_call_id=tool_call_id
        ) from exc


def parse_operation(kind: str, arguments: dict[str, Any]) -> Operation:
    """Normalize arguments and validate them against the operation union."""
    payload = normalize_operation_payload(kind, arguments)
    return OPERATION_ADAPTER.validate_python(payload)


def parse_arguments(raw: object) -> dict[str, Any]:
    """Parse tool-call arguments given as an object or JSON object text."""
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str):
        raise ValueError("arguments must be an object or JSON object text.")
    text = raw.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError("arguments are not valid JSON.") from exc
    if not isinstance(parsed, dict):
        raise ValueError("arguments JSON value must be an object.")
    return cast(dict[str, Any], parsed)


def normalize_operation_payload(kind: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Fold aliases and legacy argument shapes into the canonical payload.

    Returns a new dict carrying the ``kind`` discriminator; ``write_cell``
    whose value is formula text becomes ``set_formula``.
    """
    payload = dict(arguments)
    payload.pop("kind", None)
    if kind == "format_cells":
        _unpack_nested_format(payload)
    for alias, canonical in get_alias_map_for_operation(kind).items():
        alias_to_canonical_with_conflict_check(
            payload, alias=alias, canonical=canonical, kind=kind
        )
    if kind == "write_cell":
        kind = _promote_formula_value(payload)
    if kind == "set_column_width":
        _fold_single_column_width(payload)
    if kind in _RANGE_KINDS:
        _normalize_range_field(payload, kind=kind)
    payload["kind"] = kind
    return payload


def alias_to_canonical_with_conflict_check(
    payload: dict[str, Any],
    *,
    alias: str,
    canonical: str,
    kind: str,
) -> None:
    """Map an alias field onto its canonical field."""
    if alias not in payload:
        return
    alias_value = payload.pop(alias)
    for existing in (canonical, _to_snake(canonical)):
        if existing in payload:
            if payload[existing] != alias_value:
                raise ValueError(
                    build_operation_error_message(
                        kind, f"conflicting fields: '{canonical}' and alias '{alias}'"
                    )
                )
            return
    payload[canonical] = alias_value


def build_operation_error_message(kind: str, reason: str) -> str:
    """Build a consistent validation message for invalid operation arguments."""
    return f"Invalid {kind} arguments: {reason}."


def _unpack_nested_format(payload: dict[str, Any]) -> None:
    """Flatten the ``format: {bold, color, background}`` shape."""
    nested = payload.pop("format", None)
    if nested is None:
        return
    if not isinstance(nested, dict):
        raise ValueError(
            build_operation_error_message("format_cells", "format must be an object")
        )
    for key in ("bold", "color", "background", "backgroundColor", "textColor"):
        if key in nested and key not in payload:
            payload[key] = nested[key]


def _promote_formula_value(payload: dict[str, Any]) -> str:
    value = payload.get("value")
    if isinstance(value, str) and value.strip().startswith("="):
        payload["formula"] = payload.pop("value")
        return "set_formula"
    return "write_cell"


def _fold_single_column_width(payload: dict[str, Any]) -> None:
    """Convert the single ``col`` + ``width`` shape into a columns map."""
    if "columns" in payload or "col" not in payload:
        return
    col = payload.pop("col")
    if "width" not in payload:
        raise ValueError(
            build_operation_error_message(
                "set_column_width", "'col' requires 'width'"
            )
        )
    payload["columns"] = {col: payload.pop("width")}


def _normalize_range_field(payload: dict[str, Any], *, kind: str) -> None:
    """Accept ``range`` as an object or A1 text, or flat corner fields."""
    if "range" in payload:
        payload["range"] = _coerce_range(payload["range"], kind=kind)
        return
    corners = {
        name: _pop_either(payload, name)
        for name in _CORNER_FIELDS
    }
    if corners["startRow"] is None or corners["startCol"] is None:
        return
    if corners["endRow"] is None:
        corners["endRow"] = corners["startRow"]
    if corners["endCol"] is None:
        corners["endCol"] = corners["startCol"]
    payload["range"] = corners


def _coerce_range(value: object, *, kind: str) -> object:
    if not isinstance(value, str):
        return value
    try:
        start_row, start_col, end_row, end_col = parse_range_ref(value)
    except ValueError as exc:
        raise ValueError(
            build_operation_error_message(kind, "range must be like 'A1:C3'")
        ) from exc
    return {
        "startRow": start_row,
        "startCol": start_col,
        "endRow": end_row,
        "endCol": end_col,
    }


def _pop_either(payload: dict[str, Any], camel: str) -> Any:
    if camel in payload:
        return payload.pop(camel)
    return payload.pop(_to_snake(camel), None)


def _to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


def _summarize_validation(exc: ValidationError) -> str:
    """Render pydantic errors as ``loc: msg`` pairs."""
    parts: list[str] = []
    for error in exc.errors():
        # The first loc entry is the union tag chosen by the discriminator.
        loc = ".".join(str(item) for item in error["loc"][1:])
        parts.append(f"{loc}: {error['msg']}" if loc else error["msg"])
    return "; ".join(parts)
