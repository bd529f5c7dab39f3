from __future__ import annotations

from typing import Final

# Ordering here determines error messages and tool descriptions.
SUPPORTED_CHART_TYPES: Final[tuple[str, ...]] = ("bar", "line", "pie", "area")

CHART_TYPE_ALIASES: Final[dict[str, str]] = {
    "column": "bar",
    "bar_clustered": "bar",
    "column_clustered": "bar",
    "doughnut": "pie",
    "donut": "pie",
    "area_stacked": "area",
}

SUPPORTED_CHART_TYPES_SET: Final[frozenset[str]] = frozenset(SUPPORTED_CHART_TYPES)
SUPPORTED_CHART_TYPES_CSV: Final[str] = ", ".join(SUPPORTED_CHART_TYPES)


def normalize_chart_type(chart_type: str) -> str | None:
    """Normalize chart type input to a canonical key.

    Args:
        chart_type: Raw chart type value from the agent payload.

    Returns:
        Canonical chart type key when supported; otherwise ``None``.
    """
    candidate = chart_type.strip().lower().replace("-", "_").replace(" ", "_")
    canonical = CHART_TYPE_ALIASES.get(candidate, candidate)
    if canonical in SUPPORTED_CHART_TYPES_SET:
        return canonical
    return None
