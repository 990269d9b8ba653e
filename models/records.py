"""Domain models shared across services."""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from models.errors import QueryError


class Metric(str, Enum):
    """Numeric channels reported by the sensor node."""

    temperature = "temperature"
    humidity = "humidity"
    pressure = "pressure"
    air_quality = "air_quality"

    @classmethod
    def parse(cls, name: "str | Metric") -> "Metric":
        if isinstance(name, Metric):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError as exc:
            raise QueryError(f"Unknown metric {name!r}.") from exc


class LinkState(str, Enum):
    """Lifecycle of the wireless link to the sensor node."""

    idle = "idle"
    scanning = "scanning"
    connecting = "connecting"
    connected = "connected"
    subscribed = "subscribed"


@dataclass(frozen=True, slots=True)
class GeoFix:
    latitude: float
    longitude: float

    @property
    def is_sentinel(self) -> bool:
        """``(0, 0)`` is reserved to mean "no fix"."""
        return self.latitude == 0 and self.longitude == 0


@dataclass(frozen=True, slots=True)
class DraftReading:
    """A decoded reading stamped with its arrival time, location still pending."""

    temperature: float
    humidity: float
    pressure: float
    air_quality: float
    received_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def fix(self) -> Optional[GeoFix]:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoFix(self.latitude, self.longitude)

    def with_fix(self, fix: GeoFix) -> "DraftReading":
        return replace(self, latitude=fix.latitude, longitude=fix.longitude)


@dataclass(frozen=True, slots=True)
class Reading:
    """A persisted reading as held by the telemetry store."""

    id: str
    created_at: datetime
    temperature: float
    humidity: float
    pressure: float
    air_quality: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def value(self, metric: Metric) -> Optional[float]:
        """Return the metric value, or ``None`` when it is not a finite number."""
        value = getattr(self, Metric.parse(metric).value)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value) if math.isfinite(value) else None
