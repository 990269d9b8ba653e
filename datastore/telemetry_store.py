"""Two-tier reading history: a bounded local buffer backed by a remote table."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Deque, Dict, List, Optional, Protocol
from uuid import uuid4

from models.errors import PersistError, QueryError
from models.records import DraftReading, Reading
from settings import get_settings
from storage.mock_table import MockReadingsTable
from storage.rest_table import RestReadingsTable

logger = logging.getLogger(__name__)


class ReadingsTable(Protocol):
    name: str

    async def insert(self, payload: Dict[str, Any]) -> Reading:
        ...

    async def select(self, limit: int, descending: bool = True) -> List[Reading]:
        ...


class TelemetryStore:
    """Owns the canonical reading history.

    Every access to the local buffer happens under ``_lock`` so readers never
    observe a half-evicted buffer. The lock is never held across a call to the
    remote table.
    """

    def __init__(self, table: ReadingsTable, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("Local buffer capacity must be positive.")
        self.table = table
        self.capacity = capacity
        self._buffer: Deque[Reading] = deque(maxlen=capacity)
        self._lock = Lock()
        self._remote_watermark: Optional[datetime] = None

    async def append(self, draft: DraftReading) -> Reading:
        """Record a located draft locally, then write it to the remote table.

        Raises ``PersistError`` when the remote write fails; the reading stays
        in the local buffer under a provisional id.
        """
        fix = draft.fix
        if fix is None or fix.is_sentinel:
            raise ValueError("Only located readings can be stored.")

        local = Reading(
            id=f"local-{uuid4().hex}",
            created_at=draft.received_at,
            temperature=draft.temperature,
            humidity=draft.humidity,
            pressure=draft.pressure,
            air_quality=draft.air_quality,
            latitude=fix.latitude,
            longitude=fix.longitude,
        )
        with self._lock:
            self._buffer.append(local)

        payload = {
            "temperature": draft.temperature,
            "humidity": draft.humidity,
            "pressure": draft.pressure,
            "air_quality": draft.air_quality,
            "latitude": fix.latitude,
            "longitude": fix.longitude,
        }
        try:
            stored = await self.table.insert(payload)
        except PersistError:
            logger.warning(
                "Remote write failed; reading kept locally only",
                extra={"reading_id": local.id},
            )
            raise

        with self._lock:
            self._adopt_server_identity(local, stored)
        return stored

    def latest(self) -> Optional[Reading]:
        with self._lock:
            if not self._buffer:
                return None
            return max(self._buffer, key=lambda reading: reading.created_at)

    def query(self, limit: Optional[int] = None, order: str = "desc") -> List[Reading]:
        """Return buffered readings ordered by ``created_at``."""
        if order not in {"asc", "desc"}:
            raise QueryError(f"Unsupported order {order!r}; use 'asc' or 'desc'.")
        if limit is not None and limit < 0:
            raise QueryError("Limit must not be negative.")

        with self._lock:
            snapshot = list(self._buffer)

        ordered = sorted(
            snapshot, key=lambda reading: reading.created_at, reverse=order == "desc"
        )
        return ordered if limit is None else ordered[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    async def fetch_remote(self, limit: int) -> List[Reading]:
        """Read the newest ``limit`` rows straight from the remote table."""
        return await self.table.select(limit, descending=True)

    async def refresh(self, limit: int = 100) -> int:
        """Pull the newest remote rows into the local buffer.

        Only rows newer than the previous poll whose server id is not already
        buffered are taken. Returns the number of rows ingested.
        """
        rows = await self.fetch_remote(limit)

        with self._lock:
            held = {reading.id for reading in self._buffer}
            fresh = [
                row
                for row in sorted(rows, key=lambda reading: reading.created_at)
                if row.id not in held
                and (self._remote_watermark is None or row.created_at > self._remote_watermark)
            ]
            accepted = 0
            for row in fresh:
                if row.has_location and row.latitude == 0 and row.longitude == 0:
                    logger.warning(
                        "Skipping remote row located at the no-fix sentinel",
                        extra={"reading_id": row.id},
                    )
                    continue
                self._buffer.append(row)
                accepted += 1
            if rows:
                newest = max(row.created_at for row in rows)
                if self._remote_watermark is None or newest > self._remote_watermark:
                    self._remote_watermark = newest

        if accepted:
            logger.debug("Ingested polled rows", extra={"row_count": accepted})
        return accepted

    def _adopt_server_identity(self, local: Reading, stored: Reading) -> None:
        index = next(
            (position for position, reading in enumerate(self._buffer) if reading is local),
            None,
        )
        if index is None:
            # already evicted by a burst of newer readings
            return
        if any(reading.id == stored.id for reading in self._buffer):
            # a poll landed the server row while the insert was in flight
            del self._buffer[index]
            return
        self._buffer[index] = stored


def build_table(
    remote_url: Optional[str],
    table_name: str,
    api_key: Optional[str] = None,
    mock_path: Optional[str] = None,
) -> ReadingsTable:
    if remote_url:
        return RestReadingsTable(base_url=remote_url, table=table_name, api_key=api_key)
    persistence = Path(mock_path) if mock_path else None
    return MockReadingsTable(name=table_name, persistence_path=persistence)


@lru_cache
def build_default_table() -> ReadingsTable:
    settings = get_settings()
    return build_table(
        remote_url=settings.remote_url,
        table_name=settings.remote_table,
        api_key=settings.remote_api_key,
        mock_path=settings.mock_store_path,
    )


@lru_cache
def build_default_store(capacity: Optional[int] = None) -> TelemetryStore:
    settings = get_settings()
    return TelemetryStore(table=build_default_table(), capacity=capacity or settings.buffer_size)
