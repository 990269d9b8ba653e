"""BLE link to the sensor node: discovery, connection and notification stream."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, ClassVar, Optional

from bleak import BleakClient, BleakScanner
from bleak.exc import BleakError

from models.errors import (
    ConnectionFailed,
    LinkError,
    RadioUnavailable,
    SubscriptionFailed,
)
from models.records import LinkState
from settings import get_settings

logger = logging.getLogger(__name__)

PayloadHandler = Callable[[bytes], None]
FailureHandler = Callable[[LinkError], None]

_TRANSPORT_ERRORS = (BleakError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class LinkTarget:
    """Fixed identity of the sensor node."""

    name: str
    service_uuid: str
    characteristic_uuid: str

    def matches(self, device: Any, advertisement: Any) -> bool:
        advertised_name = getattr(advertisement, "local_name", None) or getattr(device, "name", None)
        if advertised_name == self.name:
            return True
        service_uuids = getattr(advertisement, "service_uuids", None) or []
        return self.service_uuid.lower() in {uuid.lower() for uuid in service_uuids}

    @classmethod
    def from_settings(cls) -> "LinkTarget":
        settings = get_settings()
        return cls(
            name=settings.device_name,
            service_uuid=settings.service_uuid,
            characteristic_uuid=settings.characteristic_uuid,
        )


class LinkManager:
    """Owns the radio while active; at most one instance holds it per process.

    ``start()`` raises ``RadioUnavailable`` immediately when scanning cannot
    begin. Later failures (``ConnectionFailed``, ``SubscriptionFailed``) go to
    ``on_failure`` and leave the link idle; nothing is retried.
    """

    _radio_holder: ClassVar[Optional["LinkManager"]] = None

    def __init__(
        self,
        target: LinkTarget,
        on_payload: Optional[PayloadHandler] = None,
        on_failure: Optional[FailureHandler] = None,
        scanner_factory: Callable[..., Any] = BleakScanner,
        client_factory: Callable[..., Any] = BleakClient,
    ) -> None:
        self.target = target
        self.on_payload = on_payload
        self.on_failure = on_failure
        self._scanner_factory = scanner_factory
        self._client_factory = client_factory
        self._scanner: Any = None
        self._client: Any = None
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._stopping = False
        # bumped on every start(); callbacks from an earlier session compare against it
        self._generation = 0
        self.state = LinkState.idle
        self.last_error: Optional[LinkError] = None

    @property
    def holds_radio(self) -> bool:
        return LinkManager._radio_holder is self

    async def start(self) -> None:
        if self.state is not LinkState.idle:
            return

        holder = LinkManager._radio_holder
        if holder is not None and holder is not self:
            raise RadioUnavailable("The radio is held by another link.")

        try:
            scanner = self._scanner_factory(detection_callback=self._on_detection)
            await scanner.start()
        except _TRANSPORT_ERRORS as exc:
            raise RadioUnavailable(f"Cannot start discovery: {exc}") from exc

        LinkManager._radio_holder = self
        self._scanner = scanner
        self._stopping = False
        self._generation += 1
        self.last_error = None
        self._set_state(LinkState.scanning)

    async def stop(self) -> None:
        self._stopping = True
        task = self._connect_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self._teardown()

    def _on_detection(self, device: Any, advertisement: Any) -> None:
        if self.state is not LinkState.scanning or self._connect_task is not None:
            return
        if not self.target.matches(device, advertisement):
            return
        logger.info(
            "Sensor node discovered",
            extra={"device": getattr(device, "address", None) or self.target.name},
        )
        self._set_state(LinkState.connecting)
        self._connect_task = asyncio.get_running_loop().create_task(
            self._connect(device, self._generation)
        )

    async def _connect(self, device: Any, generation: int) -> None:
        try:
            await self._stop_scanner()
            client = self._client_factory(
                device,
                disconnected_callback=partial(self._on_disconnect, generation),
            )
            self._client = client
            try:
                await client.connect()
            except _TRANSPORT_ERRORS as exc:
                raise ConnectionFailed(f"Connection to {self.target.name} failed: {exc}") from exc
            self._set_state(LinkState.connected)

            characteristic = client.services.get_characteristic(self.target.characteristic_uuid)
            if characteristic is None:
                raise SubscriptionFailed(
                    f"Characteristic {self.target.characteristic_uuid} not offered by the node."
                )
            try:
                await client.start_notify(characteristic, self._on_notify)
            except _TRANSPORT_ERRORS as exc:
                raise SubscriptionFailed(f"Subscription failed: {exc}") from exc
            self._set_state(LinkState.subscribed)
        except LinkError as exc:
            await self._fail(exc, generation)
        finally:
            self._connect_task = None

    def _on_notify(self, _sender: Any, data: bytearray) -> None:
        if self.state is not LinkState.subscribed or self.on_payload is None:
            return
        try:
            self.on_payload(bytes(data))
        except Exception:  # noqa: BLE001 - one bad payload must not end the stream
            logger.exception("Payload handler raised", extra={"payload_size": len(data)})

    def _on_disconnect(self, generation: int, _client: Any) -> None:
        # bleak also fires this for disconnects we requested ourselves
        if self._stopping or generation != self._generation:
            return
        if self.state not in {LinkState.connected, LinkState.subscribed}:
            return
        asyncio.get_running_loop().create_task(
            self._fail(ConnectionFailed(f"{self.target.name} disconnected."), generation)
        )

    async def _fail(self, exc: LinkError, generation: int) -> None:
        if self._stopping or generation != self._generation:
            return
        self._stopping = True
        self.last_error = exc
        logger.error(
            "Link failed",
            extra={"device": self.target.name, "link_state": self.state, "reason": str(exc)},
        )
        await self._teardown()
        if self.on_failure is not None:
            self.on_failure(exc)

    async def _teardown(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            if self.state is LinkState.subscribed:
                with suppress(*_TRANSPORT_ERRORS):
                    await client.stop_notify(self.target.characteristic_uuid)
            with suppress(*_TRANSPORT_ERRORS):
                await client.disconnect()
        await self._stop_scanner()
        if LinkManager._radio_holder is self:
            LinkManager._radio_holder = None
        self._set_state(LinkState.idle)

    async def _stop_scanner(self) -> None:
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            with suppress(*_TRANSPORT_ERRORS):
                await scanner.stop()

    def _set_state(self, state: LinkState) -> None:
        if state is self.state:
            return
        logger.info(
            "Link state changed",
            extra={"device": self.target.name, "link_state": state},
        )
        self.state = state
