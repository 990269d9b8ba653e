"""Wire the link, decoder, enricher and store into one ingestion pipeline."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Set

from datastore.telemetry_store import TelemetryStore, build_default_store
from models.errors import DecodeError, LinkError, PersistError, ReadingDiscarded
from models.records import DraftReading, LinkState
from services.decoder import PacketDecoder, Payload
from services.link import LinkManager, LinkTarget
from services.locator import (
    HttpLocationProvider,
    LocationEnricher,
    LocationProvider,
    StaticLocationProvider,
)
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass
class PipelineCounters:
    received: int = 0
    dropped: int = 0
    discarded: int = 0
    persisted: int = 0
    persist_failures: int = 0
    polled: int = 0


class TelemetryPipeline:
    """Ingest payloads from the link and keep the store in step with the remote copy.

    Each decoded draft is located and persisted in its own task so a slow
    location fix never holds up the next notification.
    """

    def __init__(
        self,
        link: LinkManager,
        decoder: PacketDecoder,
        enricher: LocationEnricher,
        store: TelemetryStore,
        poll_interval: float = 5.0,
        poll_limit: int = 100,
    ) -> None:
        self.link = link
        self.decoder = decoder
        self.enricher = enricher
        self.store = store
        self.poll_interval = poll_interval
        self.poll_limit = poll_limit
        self.counters = PipelineCounters()
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._ingest_tasks: Set[asyncio.Task[None]] = set()

        self.link.on_payload = self.handle_payload
        self.link.on_failure = self._on_link_failure

    @property
    def link_state(self) -> LinkState:
        return self.link.state

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self, connect: bool = True) -> None:
        """Start remote polling and, when ``connect`` is set, the link.

        ``RadioUnavailable`` from the link propagates; polling keeps running.
        """
        self.start_polling()
        if connect:
            await self.link.start()

    async def stop(self) -> None:
        await self.stop_polling()
        tasks = list(self._ingest_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        await self.link.stop()

    def start_polling(self) -> None:
        if self.polling:
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    def handle_payload(self, payload: Payload) -> Optional[asyncio.Task[None]]:
        """Decode one payload and schedule its enrichment; never raises on bad input."""
        self.counters.received += 1
        try:
            draft = self.decoder.decode(payload)
        except DecodeError as exc:
            self.counters.dropped += 1
            logger.warning(
                "Dropping undecodable payload",
                extra={"reason": str(exc), "payload_size": len(payload)},
            )
            return None

        task = asyncio.get_running_loop().create_task(self.ingest(draft))
        self._ingest_tasks.add(task)
        task.add_done_callback(self._ingest_tasks.discard)
        return task

    async def ingest(self, draft: DraftReading) -> None:
        try:
            located = await self.enricher.enrich(draft)
        except ReadingDiscarded as exc:
            self.counters.discarded += 1
            logger.warning("Discarding reading", extra={"reason": str(exc)})
            return

        try:
            stored = await self.store.append(located)
        except PersistError as exc:
            self.counters.persist_failures += 1
            logger.warning("Reading not persisted remotely", extra={"reason": str(exc)})
            return

        self.counters.persisted += 1
        logger.debug(
            "Reading stored",
            extra={
                "reading_id": stored.id,
                "latitude": stored.latitude,
                "longitude": stored.longitude,
            },
        )

    async def drain(self) -> None:
        """Wait for every in-flight ingest task."""
        while self._ingest_tasks:
            await asyncio.gather(*list(self._ingest_tasks), return_exceptions=True)

    async def poll_once(self) -> int:
        try:
            ingested = await self.store.refresh(self.poll_limit)
        except PersistError as exc:
            logger.warning("Remote poll failed", extra={"reason": str(exc)})
            return 0
        self.counters.polled += ingested
        return ingested

    async def _poll_loop(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.poll_interval)

    def _on_link_failure(self, exc: LinkError) -> None:
        logger.error(
            "Link session ended; call start() to reconnect",
            extra={"device": self.link.target.name, "reason": str(exc)},
        )


def build_location_provider() -> Optional[LocationProvider]:
    settings = get_settings()
    if settings.location_url:
        return HttpLocationProvider(settings.location_url)
    if settings.static_latitude is not None and settings.static_longitude is not None:
        return StaticLocationProvider(settings.static_latitude, settings.static_longitude)
    return None


@lru_cache
def build_default_pipeline() -> TelemetryPipeline:
    """Factory that wires the pipeline from environment settings."""
    settings = get_settings()
    return TelemetryPipeline(
        link=LinkManager(LinkTarget.from_settings()),
        decoder=PacketDecoder(),
        enricher=LocationEnricher(build_location_provider(), timeout=settings.location_timeout),
        store=build_default_store(),
        poll_interval=settings.poll_interval,
        poll_limit=settings.poll_limit,
    )
