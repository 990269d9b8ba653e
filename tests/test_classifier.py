from __future__ import annotations

import math
from datetime import datetime, timezone

import pytest

from models.errors import QueryError
from models.records import Metric, Reading
from services.classifier import (
    air_quality_band,
    air_quality_score,
    classify,
    comfort_index,
    comfort_profile,
    humidity_score,
    pressure_band,
    pressure_score,
    temperature_band,
    temperature_score,
)


@pytest.mark.parametrize(
    ("value", "label"),
    [
        (-5, "cold"),
        (9.99, "cold"),
        (10, "cool"),
        (17.9, "cool"),
        (18, "comfortable"),
        (24.9, "comfortable"),
        (25, "warm"),
        (29.9, "warm"),
        (30, "hot"),
    ],
)
def test_temperature_band_edges(value: float, label: str) -> None:
    assert temperature_band(value)[0] == label


@pytest.mark.parametrize(
    ("value", "label"),
    [
        (25, "Excellent"),
        (20, "Good"),
        (10.5, "Good"),
        (10, "Moderate"),
        (5, "Poor"),
        (2, "Very Poor"),
        (0, "Very Poor"),
    ],
)
def test_air_quality_band_higher_is_cleaner(value: float, label: str) -> None:
    assert air_quality_band(value)[0] == label


@pytest.mark.parametrize(
    ("value", "score"),
    [
        (5, 1),
        (10, 2),
        (15, 3),
        (18, 4),
        (20.99, 4),
        (21, 5),
        (24, 5),
        (24.5, 4),
        (27.5, 3),
        (31, 2),
        (33.5, 1),
    ],
)
def test_temperature_score_intervals(value: float, score: int) -> None:
    assert temperature_score(value) == score


def test_humidity_and_pressure_scores_peak_in_ideal_range() -> None:
    assert humidity_score(50) == 5
    assert humidity_score(35) == 4
    assert humidity_score(95) == 1
    assert pressure_score(1013) == 5
    assert pressure_score(1022) == 4
    assert pressure_score(980) == 1


def test_air_quality_score_lower_is_better() -> None:
    assert [air_quality_score(v) for v in (0, 50, 51, 100, 150, 200, 201)] == [5, 5, 4, 4, 3, 2, 1]


def test_classify_air_quality_uses_both_tables() -> None:
    score = classify("air_quality", 15)

    assert score.band_label == "Good"
    assert score.comfort == 5


def test_display_band_and_comfort_score_are_independent() -> None:
    assert classify(Metric.air_quality, 120).band_label == "Excellent"
    assert classify(Metric.air_quality, 120).comfort == 3


def test_classify_returns_band_and_score() -> None:
    score = classify("temperature", 22)

    assert score.metric is Metric.temperature
    assert score.band_label == "comfortable"
    assert score.band_color == "#27ae60"
    assert score.comfort == 5
    assert pressure_band(1030) == ("high", "#d7191c")


@pytest.mark.parametrize("value", [math.nan, math.inf, "22", None])
def test_classify_rejects_non_numeric(value) -> None:
    with pytest.raises(QueryError):
        classify(Metric.humidity, value)


def test_classify_rejects_unknown_metric() -> None:
    with pytest.raises(QueryError):
        classify("wind", 3.0)


def test_comfort_index_is_two_decimal_mean() -> None:
    # scores 5, 5, 4
    assert comfort_index(22, 50, 75) == 4.67


def test_comfort_profile_scores_averages() -> None:
    created = datetime(2024, 1, 1, tzinfo=timezone.utc)
    readings = [
        Reading("1", created, 20, 40, 1012, 40),
        Reading("2", created, 24, 60, 1014, 60),
    ]

    profile = comfort_profile(readings)

    assert profile.temperature == 5
    assert profile.humidity == 5
    assert profile.pressure == 5
    assert profile.air_quality == 5
    assert profile.comfort_index == 5.0


def test_comfort_profile_empty_returns_no_data() -> None:
    profile = comfort_profile([])

    assert profile.temperature is None
    assert profile.comfort_index is None
