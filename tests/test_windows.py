from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import List

import pytest

from models.errors import QueryError
from models.records import Metric, Reading
from services.windows import chart_series, filter_by_date, session_path, time_window

_BASE = datetime(2024, 3, 10, 8, 0, tzinfo=timezone.utc)


def _at(minute: float, temperature: float = 20.0, reading_id: str | None = None) -> Reading:
    return Reading(
        id=reading_id or f"r{minute:g}",
        created_at=_BASE + timedelta(minutes=minute),
        temperature=temperature,
        humidity=45.0,
        pressure=1010.0,
        air_quality=15.0,
        latitude=48.1,
        longitude=11.6,
    )


class SteppingClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def _ids(readings: List[Reading]) -> List[str]:
    return [reading.id for reading in readings]


def test_time_window_boundary_is_inclusive() -> None:
    readings = [_at(0), _at(5), _at(10)]
    clock = SteppingClock(_BASE + timedelta(minutes=10))

    assert _ids(time_window(readings, 10, clock=clock)) == ["r0", "r5", "r10"]
    assert _ids(time_window(readings, 9.99, clock=clock)) == ["r5", "r10"]


def test_time_window_follows_advancing_clock() -> None:
    readings = [_at(0), _at(8)]
    clock = SteppingClock(_BASE + timedelta(minutes=5))

    first = time_window(readings, 10, clock=clock)
    clock.advance(6)
    second = time_window(readings, 10, clock=clock)

    assert _ids(first) == ["r0", "r8"]
    assert _ids(second) == ["r8"]


def test_time_window_zero_keeps_only_current_instant() -> None:
    clock = SteppingClock(_BASE + timedelta(minutes=3))

    assert _ids(time_window([_at(0), _at(3)], 0, clock=clock)) == ["r3"]


def test_time_window_rejects_negative_duration() -> None:
    with pytest.raises(QueryError):
        time_window([], -1, clock=lambda: _BASE)


def test_session_path_returns_run_after_latest_gap() -> None:
    readings = [_at(minute) for minute in (28, 0, 24, 2, 26, 4)]

    session = session_path(readings, gap_threshold_minutes=10)

    assert _ids(session) == ["r24", "r26", "r28"]


def test_session_path_without_gap_returns_everything_oldest_first() -> None:
    readings = [_at(4), _at(0), _at(2)]

    assert _ids(session_path(readings)) == ["r0", "r2", "r4"]


def test_session_path_gap_equal_to_threshold_does_not_split() -> None:
    readings = [_at(0), _at(10), _at(20)]

    assert _ids(session_path(readings, gap_threshold_minutes=10)) == ["r0", "r10", "r20"]


def test_session_path_caps_to_latest_points() -> None:
    readings = [_at(minute) for minute in range(40)]

    session = session_path(readings, max_points=30)

    assert len(session) == 30
    assert session[0].id == "r10"
    assert session[-1].id == "r39"


def test_session_path_empty_and_invalid_arguments() -> None:
    assert session_path([]) == []
    with pytest.raises(QueryError):
        session_path([_at(0)], max_points=0)
    with pytest.raises(QueryError):
        session_path([_at(0)], gap_threshold_minutes=-5)


def test_chart_series_points_relative_to_now() -> None:
    readings = [_at(60, 20.0), _at(30, 99.0), _at(50, 10.0)]
    clock = SteppingClock(_BASE + timedelta(minutes=60))

    series = chart_series(readings, Metric.temperature, 20, clock=clock)

    assert series.metric is Metric.temperature
    assert [(point.x, point.y) for point in series.points] == [(-10.0, 10.0), (0.0, 20.0)]
    assert series.domain == pytest.approx((9.0, 21.0))


def test_chart_series_flat_values_pad_by_one() -> None:
    readings = [_at(1, 20.0), _at(2, 20.0)]
    clock = SteppingClock(_BASE + timedelta(minutes=2))

    series = chart_series(readings, "temperature", 5, clock=clock)

    assert series.domain == (19.0, 21.0)


def test_chart_series_clamps_future_readings_and_skips_missing_domain() -> None:
    clock = SteppingClock(_BASE)

    series = chart_series([_at(0.5)], Metric.temperature, 5, clock=clock)

    assert [point.x for point in series.points] == [0.0]
    assert series.domain is None


def test_filter_by_date_and_hour() -> None:
    readings = [_at(0), _at(65), _at(60 * 24)]

    assert _ids(filter_by_date(readings, day=date(2024, 3, 10))) == ["r0", "r65"]
    assert _ids(filter_by_date(readings, day=date(2024, 3, 10), hour=9)) == ["r65"]
    assert len(filter_by_date(readings)) == 3


def test_filter_by_date_rejects_bad_hour() -> None:
    with pytest.raises(QueryError):
        filter_by_date([], day=date(2024, 3, 10), hour=24)
