from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from app.schemas import ReadingRow
from models.records import Reading
from services.clock import Clock, utc_now


class MockReadingsTable:
    """In-process stand-in for the remote ``sensor_data`` table."""

    def __init__(
        self,
        name: str,
        persistence_path: Optional[Path] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.name = name
        self.persistence_path = persistence_path
        self._clock = clock
        self._rows: List[ReadingRow] = []
        self._next_id = 1
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    async def insert(self, payload: Dict[str, Any]) -> Reading:
        with self._lock:
            row = ReadingRow.model_validate(
                {**payload, "id": self._next_id, "created_at": self._clock()}
            )
            self._next_id += 1
            self._rows.append(row)
            self._persist()
        return row.to_reading()

    async def select(self, limit: int, descending: bool = True) -> List[Reading]:
        with self._lock:
            rows = sorted(
                self._rows,
                key=lambda row: (row.created_at, int(row.id)),
                reverse=descending,
            )
        return [row.to_reading() for row in rows[:limit]]

    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = [row.model_dump(mode="json") for row in self._rows]
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "[]"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = []

        for payload in data:
            self._rows.append(ReadingRow.model_validate(payload))
        if self._rows:
            self._next_id = max(int(row.id) for row in self._rows) + 1
