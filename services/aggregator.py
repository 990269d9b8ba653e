"""Aggregation logic for sensor readings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from models.records import Metric, Reading
from services.clock import as_utc


@dataclass
class MetricStats:
    """Computed statistics for one metric; ``None`` everywhere means no data."""

    metric: Metric
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    latest: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.latest is not None


@dataclass
class ReadingSummary:
    """Context handed to the summarization collaborator."""

    summary: Dict[Metric, MetricStats] = field(default_factory=dict)
    location_data: List[Reading] = field(default_factory=list)


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def __init__(self, location_sample_size: int = 10) -> None:
        self.location_sample_size = location_sample_size

    def stats(self, readings: Iterable[Reading], metric: "Metric | str") -> MetricStats:
        metric = Metric.parse(metric)
        stats = MetricStats(metric=metric)
        total = 0.0
        count = 0
        newest = None

        for reading in readings:
            value = reading.value(metric)
            if value is None:
                continue
            count += 1
            total += value

            if stats.min is None or value < stats.min:
                stats.min = value
            if stats.max is None or value > stats.max:
                stats.max = value
            created = as_utc(reading.created_at)
            if newest is None or created >= newest:
                newest = created
                stats.latest = value

        if count:
            # clamp so rounding never pushes the mean outside [min, max]
            stats.mean = min(max(round(total / count, 2), stats.min), stats.max)

        return stats

    def summarize(self, readings: Iterable[Reading]) -> ReadingSummary:
        items = list(readings)
        located = sorted(
            (reading for reading in items if reading.has_location),
            key=lambda reading: as_utc(reading.created_at),
            reverse=True,
        )
        return ReadingSummary(
            summary={metric: self.stats(items, metric) for metric in Metric},
            location_data=located[: self.location_sample_size],
        )
