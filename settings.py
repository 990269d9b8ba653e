from __future__ import annotations

import math
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_DEVICE_NAME_ENV = "SENSOR_DEVICE_NAME"
_SERVICE_UUID_ENV = "SENSOR_SERVICE_UUID"
_CHARACTERISTIC_UUID_ENV = "SENSOR_CHARACTERISTIC_UUID"
_LINK_AUTOSTART_ENV = "LINK_AUTOSTART"
_REMOTE_URL_ENV = "REMOTE_STORE_URL"
_REMOTE_API_KEY_ENV = "REMOTE_STORE_API_KEY"
_REMOTE_TABLE_ENV = "REMOTE_STORE_TABLE"
_MOCK_STORE_PATH_ENV = "MOCK_STORE_PERSISTENCE_PATH"
_BUFFER_SIZE_ENV = "LIVE_BUFFER_SIZE"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_POLL_LIMIT_ENV = "POLL_LIMIT"
_LOCATION_URL_ENV = "LOCATION_URL"
_LOCATION_TIMEOUT_ENV = "LOCATION_TIMEOUT_SECONDS"
_STATIC_LATITUDE_ENV = "STATIC_LATITUDE"
_STATIC_LONGITUDE_ENV = "STATIC_LONGITUDE"
_SESSION_GAP_ENV = "SESSION_GAP_MINUTES"
_SESSION_MAX_POINTS_ENV = "SESSION_MAX_POINTS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    device_name: str
    service_uuid: str
    characteristic_uuid: str
    link_autostart: bool
    remote_url: Optional[str]
    remote_api_key: Optional[str]
    remote_table: str
    mock_store_path: Optional[str]
    buffer_size: int
    poll_interval: float
    poll_limit: int
    location_url: Optional[str]
    location_timeout: float
    static_latitude: Optional[float]
    static_longitude: Optional[float]
    session_gap_minutes: float
    session_max_points: int
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 and math.isfinite(parsed) else default


def _read_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        parsed = float(value.strip())
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        device_name=_read_str_env(_DEVICE_NAME_ENV, "ESP32_Sensor"),
        service_uuid=_read_str_env(
            _SERVICE_UUID_ENV, "4fafc201-1fb5-459e-8fcc-c5c9c331914b"
        ).lower(),
        characteristic_uuid=_read_str_env(
            _CHARACTERISTIC_UUID_ENV, "beb5483e-36e1-4688-b7f5-ea07361b26a8"
        ).lower(),
        link_autostart=_read_bool(_LINK_AUTOSTART_ENV, False),
        remote_url=_read_optional_env(_REMOTE_URL_ENV, None),
        remote_api_key=_read_optional_env(_REMOTE_API_KEY_ENV, None),
        remote_table=_read_str_env(_REMOTE_TABLE_ENV, "sensor_data"),
        mock_store_path=_read_optional_env(_MOCK_STORE_PATH_ENV, "./tmp/readings.json"),
        buffer_size=_read_positive_int(_BUFFER_SIZE_ENV, 100),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 5.0),
        poll_limit=_read_positive_int(_POLL_LIMIT_ENV, 100),
        location_url=_read_optional_env(_LOCATION_URL_ENV, None),
        location_timeout=_read_positive_float(_LOCATION_TIMEOUT_ENV, 10.0),
        static_latitude=_read_optional_float(_STATIC_LATITUDE_ENV),
        static_longitude=_read_optional_float(_STATIC_LONGITUDE_ENV),
        session_gap_minutes=_read_positive_float(_SESSION_GAP_ENV, 10.0),
        session_max_points=_read_positive_int(_SESSION_MAX_POINTS_ENV, 30),
        log_level=_read_log_level("INFO"),
    )
