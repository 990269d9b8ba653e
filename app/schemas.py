"""Pydantic schemas for packets, remote rows and the HTTP API layer."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.records import GeoFix, LinkState, Metric, Reading
from services.clock import as_utc


def _require_finite_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    if not math.isfinite(value):
        raise ValueError("must be finite")
    return float(value)


class SensorPacket(BaseModel):
    """JSON body of a single sensor notification."""

    model_config = ConfigDict(extra="ignore")

    temperature: float
    humidity: float
    pressure: float
    air_quality: float

    @field_validator("temperature", "humidity", "pressure", "air_quality", mode="before")
    @classmethod
    def _numeric(cls, value: Any) -> float:
        return _require_finite_number(value)


class ReadingRow(BaseModel):
    """A row of the remote ``sensor_data`` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: datetime
    temperature: float
    humidity: float
    pressure: float
    air_quality: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if value is None:
            raise ValueError("id is required")
        return str(value)

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def fix(self) -> Optional[GeoFix]:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoFix(self.latitude, self.longitude)

    def to_reading(self) -> Reading:
        return Reading(
            id=self.id,
            created_at=self.created_at,
            temperature=self.temperature,
            humidity=self.humidity,
            pressure=self.pressure,
            air_quality=self.air_quality,
            latitude=self.latitude,
            longitude=self.longitude,
        )


class ReadingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    temperature: float
    humidity: float
    pressure: float
    air_quality: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FeedStatus(str, Enum):
    ok = "ok"
    awaiting_sensor = "awaiting_sensor"


class LatestResponse(BaseModel):
    status: FeedStatus
    reading: Optional[ReadingOut] = None


class MetricStatsOut(BaseModel):
    """Aggregates for one metric; every field is ``None`` when there is no data."""

    model_config = ConfigDict(from_attributes=True)

    metric: Metric
    min: Optional[float] = None
    max: Optional[float] = None
    mean: Optional[float] = None
    latest: Optional[float] = None


class MetricScoreOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric: Metric
    value: float
    band_label: str
    band_color: str
    comfort: int = Field(..., ge=1, le=5)


class ChartPointOut(BaseModel):
    x: float = Field(..., le=0, description="Minutes relative to now.")
    y: float


class ChartSeriesOut(BaseModel):
    metric: Metric
    points: List[ChartPointOut] = Field(default_factory=list)
    domain: Optional[List[float]] = None


class ComfortProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    temperature: Optional[int] = None
    humidity: Optional[int] = None
    pressure: Optional[int] = None
    air_quality: Optional[int] = None
    comfort_index: Optional[float] = None


class SummaryOut(BaseModel):
    """Context handed to the summarization collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    summary: Dict[str, MetricStatsOut]
    location_data: List[ReadingOut] = Field(
        default_factory=list, serialization_alias="locationData"
    )


class PipelineCountersOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    received: int = 0
    dropped: int = 0
    discarded: int = 0
    persisted: int = 0
    persist_failures: int = 0
    polled: int = 0


class LinkStatusOut(BaseModel):
    state: LinkState
    device: str
    counters: PipelineCountersOut
    last_error: Optional[str] = None


class RelayAccepted(BaseModel):
    success: bool = True
