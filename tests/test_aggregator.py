"""Unit tests for the aggregation logic."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from models.errors import QueryError
from models.records import Metric, Reading
from services.aggregator import Aggregator

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _reading(
    minute: int,
    temperature: float,
    latitude: float | None = 52.0,
    longitude: float | None = 13.0,
) -> Reading:
    """Helper to build deterministic readings."""

    return Reading(
        id=str(minute),
        created_at=_BASE + timedelta(minutes=minute),
        temperature=temperature,
        humidity=50.0,
        pressure=1013.0,
        air_quality=20.0,
        latitude=latitude,
        longitude=longitude,
    )


def test_stats_empty_iterable_returns_no_data() -> None:
    aggregator = Aggregator()

    stats = aggregator.stats([], Metric.temperature)

    assert stats.min is None
    assert stats.max is None
    assert stats.mean is None
    assert stats.latest is None
    assert stats.has_data is False


def test_stats_computes_statistics() -> None:
    aggregator = Aggregator()
    readings = [
        _reading(0, 10.0),
        _reading(2, 30.0),
        _reading(1, 20.0),
    ]

    stats = aggregator.stats(readings, "temperature")

    assert stats.metric is Metric.temperature
    assert stats.min == 10.0
    assert stats.max == 30.0
    assert stats.mean == 20.0
    # latest follows created_at, not input order
    assert stats.latest == 30.0


def test_stats_mean_is_rounded_to_two_decimals() -> None:
    readings = [_reading(0, 1.0), _reading(1, 1.0), _reading(2, 2.0)]

    stats = Aggregator().stats(readings, Metric.temperature)

    assert stats.mean == 1.33
    assert stats.min <= stats.mean <= stats.max


def test_stats_skips_non_finite_values() -> None:
    readings = [_reading(0, 10.0), _reading(1, float("nan"))]

    stats = Aggregator().stats(readings, Metric.temperature)

    assert stats.min == stats.max == stats.latest == 10.0


def test_stats_rejects_unknown_metric() -> None:
    with pytest.raises(QueryError):
        Aggregator().stats([], "wind_speed")


def test_summarize_covers_every_metric_and_recent_locations() -> None:
    aggregator = Aggregator(location_sample_size=10)
    readings = [_reading(minute, 20.0 + minute) for minute in range(12)]
    readings.append(_reading(20, 99.0, latitude=None, longitude=None))

    summary = aggregator.summarize(readings)

    assert set(summary.summary) == set(Metric)
    assert summary.summary[Metric.temperature].latest == 99.0
    assert len(summary.location_data) == 10
    assert [reading.id for reading in summary.location_data[:2]] == ["11", "10"]
    assert all(reading.has_location for reading in summary.location_data)


def test_naive_timestamps_are_compared_as_utc() -> None:
    aggregator = Aggregator()
    naive = Reading(
        id="naive",
        created_at=datetime(2024, 1, 1, 0, 5),
        temperature=99.0,
        humidity=50.0,
        pressure=1013.0,
        air_quality=20.0,
        latitude=52.0,
        longitude=13.0,
    )
    readings = [_reading(0, 10.0), naive, _reading(3, 30.0)]

    stats = aggregator.stats(readings, Metric.temperature)
    summary = aggregator.summarize(readings)

    assert stats.latest == 99.0
    assert [reading.id for reading in summary.location_data] == ["naive", "3", "0"]
