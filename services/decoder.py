"""Turn raw notification payloads into validated draft readings."""

from __future__ import annotations

import json
from typing import Union

from pydantic import ValidationError

from app.schemas import SensorPacket
from models.errors import DecodeError
from models.records import DraftReading
from services.clock import Clock, utc_now

Payload = Union[bytes, bytearray, memoryview, str]


class PacketDecoder:
    """Stateless apart from the clock used to stamp arrival time."""

    def __init__(self, clock: Clock = utc_now, encoding: str = "utf-8") -> None:
        self._clock = clock
        self._encoding = encoding

    def decode(self, payload: Payload) -> DraftReading:
        text = self._to_text(payload)

        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DecodeError(f"Payload is not valid JSON: {exc.msg}.") from exc

        if not isinstance(document, dict):
            raise DecodeError("Payload must be a JSON object.")

        try:
            packet = SensorPacket.model_validate(document)
        except ValidationError as exc:
            fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
            raise DecodeError(
                f"Payload has missing or non-numeric fields: {', '.join(fields)}."
            ) from exc

        return DraftReading(
            temperature=packet.temperature,
            humidity=packet.humidity,
            pressure=packet.pressure,
            air_quality=packet.air_quality,
            received_at=self._clock(),
        )

    def _to_text(self, payload: Payload) -> str:
        if isinstance(payload, str):
            text = payload
        elif isinstance(payload, (bytes, bytearray, memoryview)):
            try:
                text = bytes(payload).decode(self._encoding)
            except UnicodeDecodeError as exc:
                raise DecodeError(f"Payload is not valid {self._encoding}.") from exc
        else:
            raise DecodeError(f"Unsupported payload type {type(payload).__name__}.")

        # firmware pads notifications with NULs up to the MTU
        text = text.strip().strip("\x00").strip()
        if not text:
            raise DecodeError("Payload is empty.")
        return text
