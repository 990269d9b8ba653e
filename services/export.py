from __future__ import annotations

import csv
import io
from typing import Iterable

from models.records import Reading

CSV_HEADERS = (
    "Time",
    "Lat",
    "Lng",
    "Temp (°C)",
    "Humidity (%)",
    "Pressure (hPa)",
    "Air Quality (IAQ)",
)


def readings_to_csv(readings: Iterable[Reading]) -> str:
    """Render readings as CSV; missing coordinates become empty cells."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for reading in readings:
        writer.writerow(
            [
                reading.created_at.isoformat(),
                "" if reading.latitude is None else reading.latitude,
                "" if reading.longitude is None else reading.longitude,
                reading.temperature,
                reading.humidity,
                reading.pressure,
                reading.air_quality,
            ]
        )
    return buffer.getvalue()
