from __future__ import annotations

import logging

from .ops.models import ChartRecord

logger = logging.getLogger(__name__)


class ChartBoard:
    """Session-scoped list of chart records for the presentation layer."""

    def __init__(self) -> None:
        self._charts: list[ChartRecord] = []
        self.expanded_chart_id: str | None = None

    @property
    def charts(self) -> list[ChartRecord]:
        return list(self._charts)

    def add(self, chart: ChartRecord) -> None:
        """Append a chart; a chart with the same id is replaced in place."""
        for index, existing in enumerate(self._charts):
            if existing.id == chart.id:
                logger.debug("Replacing chart %s", chart.id)
                self._charts[index] = chart
                return
        self._charts.append(chart)

    def get(self, chart_id: str) -> ChartRecord | None:
        for chart in self._charts:
            if chart.id == chart_id:
                return chart
        return None

    def remove(self, chart_id: str) -> bool:
        remaining = [chart for chart in self._charts if chart.id != chart_id]
        removed = len(remaining) != len(self._charts)
        self._charts = remaining
        if self.expanded_chart_id == chart_id:
            self.expanded_chart_id = None
        return removed

    def clear(self) -> None:
        self._charts = []
        self.expanded_chart_id = None

    def set_expanded(self, chart_id: str | None) -> None:
        """Mark one chart as expanded, or collapse with ``None``."""
        if chart_id is not None and self.get(chart_id) is None:
            raise KeyError(f"Unknown chart id: {chart_id}")
        self.expanded_chart_id = chart_id

    def __len__(self) -> int:
        return len(self._charts)
