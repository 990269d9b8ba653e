from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from app.schemas import ReadingRow
from models.errors import PersistError
from models.records import Reading

logger = logging.getLogger(__name__)


class RestReadingsTable:
    """PostgREST-style remote table (the hosted ``sensor_data`` table).

    The server assigns ``id`` and ``created_at`` on insert.
    """

    def __init__(
        self,
        base_url: str,
        table: str = "sensor_data",
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.name = table
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=30.0)
        self._client.headers.update(headers)

    @property
    def path(self) -> str:
        return f"/rest/v1/{self.name}"

    async def aclose(self) -> None:
        await self._client.aclose()

    async def insert(self, payload: Dict[str, Any]) -> Reading:
        try:
            response = await self._client.post(
                self.path,
                json=payload,
                headers={"Prefer": "return=representation"},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise PersistError(
                f"Remote insert rejected with status {exc.response.status_code}."
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PersistError(f"Remote insert failed: {exc}") from exc

        # representation is a one-element array
        row = body[0] if isinstance(body, list) and body else body
        try:
            return ReadingRow.model_validate(row).to_reading()
        except ValidationError as exc:
            raise PersistError("Remote insert returned an unexpected row.") from exc

    async def select(self, limit: int, descending: bool = True) -> List[Reading]:
        order = "created_at.desc" if descending else "created_at.asc"
        try:
            response = await self._client.get(
                self.path,
                params={"select": "*", "order": order, "limit": str(limit)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise PersistError(
                f"Remote read rejected with status {exc.response.status_code}."
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PersistError(f"Remote read failed: {exc}") from exc

        if not isinstance(body, list):
            raise PersistError("Remote read returned a non-list payload.")

        readings: List[Reading] = []
        for row in body:
            try:
                readings.append(ReadingRow.model_validate(row).to_reading())
            except ValidationError:
                logger.warning(
                    "Skipping malformed remote row",
                    extra={"reading_id": row.get("id") if isinstance(row, dict) else None},
                )
        return readings
