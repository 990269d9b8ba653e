from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

NO_DATA = "-"

_UNITS = {
    "temperature": "°C",
    "humidity": "%",
    "pressure": "hPa",
    "air_quality": "IAQ",
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {NO_DATA if value is None else value}")


def render_latest(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    reading = payload.get("reading")
    if payload.get("status") != "ok" or not reading:
        typer.echo("Awaiting sensor data.")
        return
    echo_key_values(
        [
            ("time", reading.get("created_at")),
            ("temperature", _with_unit("temperature", reading.get("temperature"))),
            ("humidity", _with_unit("humidity", reading.get("humidity"))),
            ("pressure", _with_unit("pressure", reading.get("pressure"))),
            ("air_quality", _with_unit("air_quality", reading.get("air_quality"))),
            ("latitude", reading.get("latitude")),
            ("longitude", reading.get("longitude")),
        ]
    )


def render_stats(payload: Dict[str, Any]) -> None:
    metric = payload.get("metric", "")
    echo_heading(f"Statistics: {metric}")
    echo_key_values(
        [
            ("min", _with_unit(metric, payload.get("min"))),
            ("max", _with_unit(metric, payload.get("max"))),
            ("mean", _with_unit(metric, payload.get("mean"))),
            ("latest", _with_unit(metric, payload.get("latest"))),
        ]
    )


def render_session(points: List[Dict[str, Any]]) -> None:
    echo_heading("Current Session")
    if not points:
        typer.echo("No session recorded.")
        return
    for point in points:
        typer.echo(
            f"  - {point.get('created_at')}: {point.get('latitude')}, {point.get('longitude')}"
        )


def render_summary(payload: Dict[str, Any]) -> None:
    for metric, stats in (payload.get("summary") or {}).items():
        render_stats({"metric": metric, **stats})
        typer.echo()
    echo_heading("Recent Locations")
    locations = payload.get("locationData") or []
    if not locations:
        typer.echo("No located readings.")
    for reading in locations:
        typer.echo(
            f"  - {reading.get('created_at')}: {reading.get('latitude')}, {reading.get('longitude')}"
        )


def render_link(payload: Dict[str, Any]) -> None:
    echo_heading("Sensor Link")
    echo_key_values(
        [
            ("device", payload.get("device")),
            ("state", payload.get("state")),
            ("last_error", payload.get("last_error")),
        ]
    )
    counters = payload.get("counters") or {}
    if counters:
        typer.echo("counters:")
        for name, count in counters.items():
            typer.echo(f"  - {name}: {count}")


def _with_unit(metric: str, value: Any) -> Any:
    if value is None:
        return None
    unit = _UNITS.get(metric)
    return f"{value} {unit}" if unit else value
