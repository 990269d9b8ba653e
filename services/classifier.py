"""Map raw metric values to display bands and 1-5 comfort scores.

Each metric has two independent tables: a display band (label and color) and
a comfort score. The two are thresholded differently and never merged.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from models.errors import QueryError
from models.records import Metric, Reading

Band = Tuple[str, str]


@dataclass(frozen=True, slots=True)
class MetricScore:
    metric: Metric
    value: float
    band_label: str
    band_color: str
    comfort: int


@dataclass(frozen=True, slots=True)
class ComfortProfile:
    """Scores of per-metric averages; all ``None`` when there is no data."""

    temperature: Optional[int] = None
    humidity: Optional[int] = None
    pressure: Optional[int] = None
    air_quality: Optional[int] = None
    comfort_index: Optional[float] = None


def temperature_band(value: float) -> Band:
    if value < 10:
        return "cold", "#3498db"
    if value < 18:
        return "cool", "#5dade2"
    if value < 25:
        return "comfortable", "#27ae60"
    if value < 30:
        return "warm", "#f39c12"
    return "hot", "#e74c3c"


def air_quality_band(value: float) -> Band:
    # higher index means cleaner air on this scale
    if value > 20:
        return "Excellent", "#2ecc40"
    if value > 10:
        return "Good", "#27ae60"
    if value > 5:
        return "Moderate", "#f1c40f"
    if value > 2:
        return "Poor", "#e67e22"
    return "Very Poor", "#e74c3c"


def humidity_band(value: float) -> Band:
    if value <= 30:
        return "dry", "#2b83ba"
    if value <= 60:
        return "comfortable", "#abdda4"
    return "humid", "#d7191c"


def pressure_band(value: float) -> Band:
    if value <= 1013:
        return "low", "#2b83ba"
    if value <= 1025:
        return "normal", "#abdda4"
    return "high", "#d7191c"


def _banded_score(value: float, edges: Tuple[float, float, float, float, float, float, float, float]) -> int:
    """Score a value against nested ranges centred on the ideal band.

    ``edges`` is ``(l2, l3, l4, l5, h5, h4, h3, h2)``: ``[l5, h5]`` scores 5,
    ``[l4, l5)`` and ``(h5, h4]`` score 4, and so on outward; outside
    ``[l2, h2]`` scores 1.
    """
    l2, l3, l4, l5, h5, h4, h3, h2 = edges
    if l5 <= value <= h5:
        return 5
    if l4 <= value < l5 or h5 < value <= h4:
        return 4
    if l3 <= value < l4 or h4 < value <= h3:
        return 3
    if l2 <= value < l3 or h3 < value <= h2:
        return 2
    return 1


def temperature_score(value: float) -> int:
    return _banded_score(value, (10, 15, 18, 21, 24, 27, 30, 33))


def humidity_score(value: float) -> int:
    return _banded_score(value, (10, 20, 30, 40, 60, 70, 80, 90))


def pressure_score(value: float) -> int:
    return _banded_score(value, (990, 1000, 1005, 1010, 1020, 1025, 1030, 1040))


def air_quality_score(value: float) -> int:
    if value <= 50:
        return 5
    if value <= 100:
        return 4
    if value <= 150:
        return 3
    if value <= 200:
        return 2
    return 1


_BANDS: Dict[Metric, Callable[[float], Band]] = {
    Metric.temperature: temperature_band,
    Metric.humidity: humidity_band,
    Metric.pressure: pressure_band,
    Metric.air_quality: air_quality_band,
}

_SCORES: Dict[Metric, Callable[[float], int]] = {
    Metric.temperature: temperature_score,
    Metric.humidity: humidity_score,
    Metric.pressure: pressure_score,
    Metric.air_quality: air_quality_score,
}


def _finite(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise QueryError(f"Cannot classify non-numeric value {value!r}.")
    return float(value)


def classify(metric: "Metric | str", value: float) -> MetricScore:
    metric = Metric.parse(metric)
    value = _finite(value)
    label, color = _BANDS[metric](value)
    return MetricScore(
        metric=metric,
        value=value,
        band_label=label,
        band_color=color,
        comfort=_SCORES[metric](value),
    )


def comfort_index(temperature: float, humidity: float, air_quality: float) -> float:
    """Mean of the temperature, humidity and air-quality scores; pressure is left out."""
    scores = (
        temperature_score(_finite(temperature)),
        humidity_score(_finite(humidity)),
        air_quality_score(_finite(air_quality)),
    )
    return round(sum(scores) / len(scores), 2)


def comfort_profile(readings: Iterable[Reading]) -> ComfortProfile:
    totals = {metric: 0.0 for metric in Metric}
    counts = {metric: 0 for metric in Metric}
    for reading in readings:
        for metric in Metric:
            value = reading.value(metric)
            if value is None:
                continue
            totals[metric] += value
            counts[metric] += 1

    averages = {
        metric: totals[metric] / counts[metric] for metric in Metric if counts[metric]
    }
    scores = {metric.value: _SCORES[metric](avg) for metric, avg in averages.items()}

    index: Optional[float] = None
    if all(metric in averages for metric in (Metric.temperature, Metric.humidity, Metric.air_quality)):
        index = comfort_index(
            averages[Metric.temperature],
            averages[Metric.humidity],
            averages[Metric.air_quality],
        )
    return ComfortProfile(comfort_index=index, **scores)
