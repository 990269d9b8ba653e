"""Attach a geolocation fix to draft readings."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, Optional, Protocol

import httpx

from models.errors import LocationUnavailable, ReadingDiscarded
from models.records import DraftReading, GeoFix

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def locate(self) -> GeoFix:
        """Return a fix or raise ``LocationUnavailable``."""
        ...


class StaticLocationProvider:
    """Always reports the configured coordinate."""

    def __init__(self, latitude: float, longitude: float) -> None:
        self.fix = GeoFix(latitude, longitude)

    async def locate(self) -> GeoFix:
        return self.fix


class HttpLocationProvider:
    """IP geolocation over HTTP.

    The endpoint must return a JSON object carrying either
    ``latitude``/``longitude`` or ``lat``/``lon``.
    """

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=30.0)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def locate(self) -> GeoFix:
        try:
            response = await self._client.get(self.url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise LocationUnavailable(f"Geolocation request failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise LocationUnavailable("Geolocation response is not a JSON object.")

        latitude = _coordinate(payload, "latitude", "lat")
        longitude = _coordinate(payload, "longitude", "lon")
        if latitude is None or longitude is None:
            raise LocationUnavailable("Geolocation response has no coordinates.")
        return GeoFix(latitude, longitude)


def _coordinate(payload: dict[str, Any], *keys: str) -> Optional[float]:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isfinite(value):
            return float(value)
    return None


class LocationEnricher:
    """Resolve a fix per reading, falling back to the last known one."""

    def __init__(self, provider: Optional[LocationProvider], timeout: float = 10.0) -> None:
        self.provider = provider
        self.timeout = timeout
        self._last_known: Optional[GeoFix] = None

    @property
    def last_known(self) -> Optional[GeoFix]:
        return self._last_known

    async def enrich(self, draft: DraftReading) -> DraftReading:
        """Return ``draft`` with a location, or raise ``ReadingDiscarded``."""
        try:
            fix = await self._attempt_fix()
        except LocationUnavailable as exc:
            fix = self._last_known
            logger.info(
                "Location fix unavailable, using last known fix",
                extra={"reason": str(exc)},
            )
        else:
            if not fix.is_sentinel:
                self._last_known = fix

        if fix is None:
            raise ReadingDiscarded("No location fix is available.")
        if fix.is_sentinel:
            raise ReadingDiscarded("Location resolved to the (0, 0) no-fix sentinel.")
        return draft.with_fix(fix)

    async def _attempt_fix(self) -> GeoFix:
        if self.provider is None:
            raise LocationUnavailable("No location provider configured.")
        try:
            return await asyncio.wait_for(self.provider.locate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise LocationUnavailable(
                f"Location fix timed out after {self.timeout:g}s."
            ) from exc
