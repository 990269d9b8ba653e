from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_latest, render_link, render_session, render_stats, render_summary

METRICS = ("temperature", "humidity", "pressure", "air_quality")


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying the sensor telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    render_latest(state.client.latest())


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    metric: str = typer.Argument(..., help=f"One of: {', '.join(METRICS)}."),
    minutes: Optional[float] = typer.Option(
        None, "--minutes", "-m", help="Only readings from the last N minutes."
    ),
) -> None:
    """Show min/max/mean/latest for a metric."""
    if metric not in METRICS:
        raise typer.BadParameter(f"Unknown metric {metric!r}.", param_hint="metric")
    state = _get_state(ctx)
    render_stats(state.client.stats(metric, minutes))


@app.command("session")
def session_command(
    ctx: typer.Context,
    gap_minutes: Optional[float] = typer.Option(None, "--gap", help="Gap threshold in minutes."),
    max_points: Optional[int] = typer.Option(None, "--max-points", help="Cap on path points."),
) -> None:
    """Show the path of the current session."""
    state = _get_state(ctx)
    render_session(state.client.session(gap_minutes, max_points))


@app.command("summary")
def summary_command(ctx: typer.Context) -> None:
    """Show per-metric aggregates and recent locations."""
    state = _get_state(ctx)
    render_summary(state.client.summary())


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Path = typer.Argument(Path("sensor_data.csv"), dir_okay=False, help="Destination CSV."),
    day: Optional[str] = typer.Option(None, "--date", help="Only readings from this day (YYYY-MM-DD)."),
    hour: Optional[int] = typer.Option(None, "--hour", min=0, max=23, help="Hour of that day."),
) -> None:
    """Download buffered readings as CSV."""
    state = _get_state(ctx)
    body = state.client.export_csv(day=day, hour=hour)
    output.write_text(body, encoding="utf-8")
    rows = max(len(body.splitlines()) - 1, 0)
    typer.secho(f"Wrote {rows} readings to {output}", fg=typer.colors.GREEN)


@app.command("link")
def link_command(
    ctx: typer.Context,
    action: Optional[str] = typer.Argument(None, help="start or stop; omit for status."),
) -> None:
    """Show or change the sensor link state."""
    if action is not None and action not in {"start", "stop"}:
        raise typer.BadParameter("Action must be 'start' or 'stop'.", param_hint="action")
    state = _get_state(ctx)
    render_link(state.client.link(action))
