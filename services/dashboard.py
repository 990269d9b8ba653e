"""Pull-only query surface over the telemetry store."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from datastore.telemetry_store import TelemetryStore
from models.records import Metric, Reading
from services import classifier, windows
from services.aggregator import Aggregator, MetricStats, ReadingSummary
from services.clock import Clock, utc_now


class DashboardService:
    """Read-only views for visualization and summarization collaborators."""

    def __init__(
        self,
        store: TelemetryStore,
        aggregator: Optional[Aggregator] = None,
        clock: Clock = utc_now,
        session_gap_minutes: float = 10,
        session_max_points: int = 30,
    ) -> None:
        self.store = store
        self.aggregator = aggregator or Aggregator()
        self.clock = clock
        self.session_gap_minutes = session_gap_minutes
        self.session_max_points = session_max_points

    def readings(self) -> List[Reading]:
        return self.store.query(order="desc")

    def latest(self) -> Optional[Reading]:
        return self.store.latest()

    def window(self, duration_minutes: float) -> List[Reading]:
        return windows.time_window(self.readings(), duration_minutes, clock=self.clock)

    def session_path(
        self,
        gap_minutes: Optional[float] = None,
        max_points: Optional[int] = None,
    ) -> List[Reading]:
        """Latest contiguous run of located readings, oldest first."""
        located = [reading for reading in self.readings() if reading.has_location]
        return windows.session_path(
            located,
            gap_threshold_minutes=self.session_gap_minutes if gap_minutes is None else gap_minutes,
            max_points=self.session_max_points if max_points is None else max_points,
        )

    def chart(self, metric: "Metric | str", window_minutes: float) -> windows.ChartSeries:
        return windows.chart_series(self.readings(), metric, window_minutes, clock=self.clock)

    def stats(
        self,
        metric: "Metric | str",
        readings: Optional[Iterable[Reading]] = None,
    ) -> MetricStats:
        return self.aggregator.stats(self.readings() if readings is None else readings, metric)

    def classify(self, metric: "Metric | str", value: float) -> classifier.MetricScore:
        return classifier.classify(metric, value)

    def comfort(self, readings: Optional[Iterable[Reading]] = None) -> classifier.ComfortProfile:
        return classifier.comfort_profile(self.readings() if readings is None else readings)

    def summarize(self, readings: Optional[Iterable[Reading]] = None) -> ReadingSummary:
        return self.aggregator.summarize(self.readings() if readings is None else readings)

    def filtered(self, day: Optional[date] = None, hour: Optional[int] = None) -> List[Reading]:
        return windows.filter_by_date(self.readings(), day=day, hour=hour)
