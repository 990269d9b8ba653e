"""Time-windowed and session-segmented views over reading history.

All functions are pure with respect to the store: they take a sequence of
readings and return new lists. Anything relative to "now" reads the injected
clock, so two calls with an advancing clock may disagree on the same input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from models.errors import QueryError
from models.records import Metric, Reading
from services.clock import Clock, as_utc, utc_now

_MS_PER_MINUTE = 60_000


@dataclass(frozen=True, slots=True)
class ChartPoint:
    x: float
    y: float


@dataclass
class ChartSeries:
    metric: Metric
    points: List[ChartPoint] = field(default_factory=list)
    domain: Optional[Tuple[float, float]] = None


def _require_minutes(value: float, name: str, allow_zero: bool = True) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise QueryError(f"{name} must be a finite number of minutes.")
    if value < 0 or (value == 0 and not allow_zero):
        raise QueryError(f"{name} must be {'non-negative' if allow_zero else 'positive'}.")
    return float(value)


def _chronological(readings: Iterable[Reading]) -> List[Reading]:
    return sorted(readings, key=lambda reading: as_utc(reading.created_at))


def time_window(
    readings: Iterable[Reading],
    duration_minutes: float,
    clock: Clock = utc_now,
) -> List[Reading]:
    """Readings with ``now - created_at <= duration``, in input order."""
    duration = timedelta(minutes=_require_minutes(duration_minutes, "Window duration"))
    now = as_utc(clock())
    return [reading for reading in readings if now - as_utc(reading.created_at) <= duration]


def session_path(
    readings: Iterable[Reading],
    gap_threshold_minutes: float = 10,
    max_points: int = 30,
) -> List[Reading]:
    """The most recent contiguous session, oldest first.

    A session ends wherever two consecutive readings are more than
    ``gap_threshold_minutes`` apart; only the run after the latest such gap is
    returned, capped to its last ``max_points`` entries.
    """
    gap = timedelta(minutes=_require_minutes(gap_threshold_minutes, "Gap threshold"))
    if isinstance(max_points, bool) or not isinstance(max_points, int) or max_points < 1:
        raise QueryError("max_points must be a positive integer.")

    ordered = _chronological(readings)
    start = 0
    for index in range(len(ordered) - 1, 0, -1):
        if as_utc(ordered[index].created_at) - as_utc(ordered[index - 1].created_at) > gap:
            start = index
            break

    session = ordered[start:]
    return session[-max_points:]


def chart_series(
    readings: Iterable[Reading],
    metric: "Metric | str",
    window_minutes: float,
    clock: Clock = utc_now,
) -> ChartSeries:
    """Points ``(minutes_ago <= 0, value)`` sorted oldest first, with a padded y domain."""
    metric = Metric.parse(metric)
    now = as_utc(clock())

    points: List[ChartPoint] = []
    for reading in time_window(readings, window_minutes, clock=lambda: now):
        value = reading.value(metric)
        if value is None:
            continue
        elapsed_ms = (now - as_utc(reading.created_at)).total_seconds() * 1000
        # readings stamped slightly ahead of the clock plot at 0
        points.append(ChartPoint(x=-max(elapsed_ms, 0.0) / _MS_PER_MINUTE, y=value))

    points.sort(key=lambda point: point.x)
    return ChartSeries(metric=metric, points=points, domain=_padded_domain(points))


def _padded_domain(points: Sequence[ChartPoint]) -> Optional[Tuple[float, float]]:
    if len(points) < 2:
        return None
    low = min(point.y for point in points)
    high = max(point.y for point in points)
    spread = high - low
    if spread == 0:
        return (low - 1, high + 1)
    return (low - spread * 0.1, high + spread * 0.1)


def filter_by_date(
    readings: Iterable[Reading],
    day: Optional[date] = None,
    hour: Optional[int] = None,
) -> List[Reading]:
    """Calendar-day (UTC) filter, optionally narrowed to one hour of that day."""
    if hour is not None and not 0 <= hour <= 23:
        raise QueryError("Hour must be between 0 and 23.")
    if day is None:
        return list(readings)

    selected: List[Reading] = []
    for reading in readings:
        created = as_utc(reading.created_at)
        if created.date() != day:
            continue
        if hour is not None and created.hour != hour:
            continue
        selected.append(reading)
    return selected
