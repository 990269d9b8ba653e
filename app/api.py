"""HTTP route definitions for the service."""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from app.schemas import (
    ChartPointOut,
    ChartSeriesOut,
    ComfortProfileOut,
    FeedStatus,
    LatestResponse,
    LinkStatusOut,
    MetricScoreOut,
    MetricStatsOut,
    PipelineCountersOut,
    ReadingOut,
    RelayAccepted,
    SummaryOut,
)
from models.errors import PersistError, QueryError, RadioUnavailable
from services.dashboard import DashboardService
from services.export import readings_to_csv
from services.pipeline import TelemetryPipeline, build_default_pipeline
from settings import get_settings

router = APIRouter()


def get_pipeline() -> TelemetryPipeline:
    return build_default_pipeline()


def get_dashboard(pipeline: TelemetryPipeline = Depends(get_pipeline)) -> DashboardService:
    settings = get_settings()
    return DashboardService(
        store=pipeline.store,
        session_gap_minutes=settings.session_gap_minutes,
        session_max_points=settings.session_max_points,
    )


def _bad_request(exc: QueryError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _readings_out(readings) -> List[ReadingOut]:
    return [ReadingOut.model_validate(reading) for reading in readings]


@router.get(
    "/readings/latest",
    response_model=LatestResponse,
    summary="Most recent reading, or an explicit awaiting-sensor state.",
)
async def latest_reading(dashboard: DashboardService = Depends(get_dashboard)) -> LatestResponse:
    reading = dashboard.latest()
    if reading is None:
        return LatestResponse(status=FeedStatus.awaiting_sensor)
    return LatestResponse(status=FeedStatus.ok, reading=ReadingOut.model_validate(reading))


@router.get(
    "/readings",
    response_model=List[ReadingOut],
    summary="Buffered readings ordered by time.",
)
async def list_readings(
    limit: Optional[int] = Query(None, ge=0),
    order: str = Query("desc"),
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[ReadingOut]:
    try:
        return _readings_out(dashboard.store.query(limit=limit, order=order))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/readings/remote",
    response_model=List[ReadingOut],
    summary="Newest rows read straight from the remote table.",
)
async def remote_readings(
    limit: int = Query(100, ge=1, le=1000),
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[ReadingOut]:
    try:
        return _readings_out(await dashboard.store.fetch_remote(limit))
    except PersistError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.get(
    "/readings/window",
    response_model=List[ReadingOut],
    summary="Readings created within the last N minutes.",
)
async def window_readings(
    minutes: float = Query(..., description="Window length in minutes."),
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[ReadingOut]:
    try:
        return _readings_out(dashboard.window(minutes))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/readings/session",
    response_model=List[ReadingOut],
    summary="Path of the most recent contiguous session, oldest first.",
)
async def session_readings(
    gap_minutes: Optional[float] = Query(None),
    max_points: Optional[int] = Query(None),
    dashboard: DashboardService = Depends(get_dashboard),
) -> List[ReadingOut]:
    try:
        return _readings_out(dashboard.session_path(gap_minutes, max_points))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/readings/export.csv",
    response_class=PlainTextResponse,
    summary="Download buffered readings as CSV, optionally for one day and hour.",
)
async def export_readings(
    day: Optional[date] = Query(None, alias="date"),
    hour: Optional[int] = Query(None),
    dashboard: DashboardService = Depends(get_dashboard),
) -> PlainTextResponse:
    try:
        readings = dashboard.filtered(day=day, hour=hour)
    except QueryError as exc:
        raise _bad_request(exc) from exc
    return PlainTextResponse(
        readings_to_csv(readings),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="sensor_data.csv"'},
    )


@router.get(
    "/metrics/{metric}/stats",
    response_model=MetricStatsOut,
    summary="Min, max, mean and latest value of one metric.",
)
async def metric_stats(
    metric: str,
    minutes: Optional[float] = Query(None, description="Restrict to the last N minutes."),
    dashboard: DashboardService = Depends(get_dashboard),
) -> MetricStatsOut:
    try:
        readings = None if minutes is None else dashboard.window(minutes)
        return MetricStatsOut.model_validate(dashboard.stats(metric, readings))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/metrics/{metric}/chart",
    response_model=ChartSeriesOut,
    summary="Time series relative to now for one metric.",
)
async def metric_chart(
    metric: str,
    minutes: float = Query(60),
    dashboard: DashboardService = Depends(get_dashboard),
) -> ChartSeriesOut:
    try:
        series = dashboard.chart(metric, minutes)
    except QueryError as exc:
        raise _bad_request(exc) from exc
    return ChartSeriesOut(
        metric=series.metric,
        points=[ChartPointOut(x=point.x, y=point.y) for point in series.points],
        domain=list(series.domain) if series.domain is not None else None,
    )


@router.get(
    "/metrics/{metric}/classify",
    response_model=MetricScoreOut,
    summary="Display band and comfort score for a raw value.",
)
async def classify_value(
    metric: str,
    value: float = Query(...),
    dashboard: DashboardService = Depends(get_dashboard),
) -> MetricScoreOut:
    try:
        return MetricScoreOut.model_validate(dashboard.classify(metric, value))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/comfort",
    response_model=ComfortProfileOut,
    summary="Comfort scores of per-metric averages.",
)
async def comfort_profile(
    minutes: Optional[float] = Query(None),
    dashboard: DashboardService = Depends(get_dashboard),
) -> ComfortProfileOut:
    try:
        readings = None if minutes is None else dashboard.window(minutes)
        return ComfortProfileOut.model_validate(dashboard.comfort(readings))
    except QueryError as exc:
        raise _bad_request(exc) from exc


@router.get(
    "/summary",
    response_model=SummaryOut,
    response_model_by_alias=True,
    summary="Aggregates and recent located readings for the summarization collaborator.",
)
async def summary(dashboard: DashboardService = Depends(get_dashboard)) -> SummaryOut:
    result = dashboard.summarize()
    return SummaryOut(
        summary={
            metric.value: MetricStatsOut.model_validate(stats)
            for metric, stats in result.summary.items()
        },
        location_data=_readings_out(result.location_data),
    )


def _link_status(pipeline: TelemetryPipeline) -> LinkStatusOut:
    last_error = pipeline.link.last_error
    return LinkStatusOut(
        state=pipeline.link_state,
        device=pipeline.link.target.name,
        counters=PipelineCountersOut.model_validate(pipeline.counters),
        last_error=str(last_error) if last_error is not None else None,
    )


@router.get("/link", response_model=LinkStatusOut, summary="Link state and ingest counters.")
async def link_status(pipeline: TelemetryPipeline = Depends(get_pipeline)) -> LinkStatusOut:
    return _link_status(pipeline)


@router.post("/link/start", response_model=LinkStatusOut, summary="Start discovery.")
async def link_start(pipeline: TelemetryPipeline = Depends(get_pipeline)) -> LinkStatusOut:
    try:
        await pipeline.link.start()
    except RadioUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return _link_status(pipeline)


@router.post("/link/stop", response_model=LinkStatusOut, summary="Stop the link.")
async def link_stop(pipeline: TelemetryPipeline = Depends(get_pipeline)) -> LinkStatusOut:
    await pipeline.link.stop()
    return _link_status(pipeline)


@router.post(
    "/sensor-data",
    response_model=RelayAccepted,
    summary="Relay a sensor packet posted over HTTP into the ingest path.",
)
async def relay_packet(
    packet: Dict[str, Any] = Body(...),
    pipeline: TelemetryPipeline = Depends(get_pipeline),
) -> RelayAccepted:
    task = pipeline.handle_payload(json.dumps(packet))
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Packet is missing numeric temperature, humidity, pressure or air_quality.",
        )
    await task
    return RelayAccepted()


@router.get(
    "/sensor-data",
    response_model=List[ReadingOut],
    summary="Live feed of buffered readings, oldest first.",
)
async def relay_feed(dashboard: DashboardService = Depends(get_dashboard)) -> List[ReadingOut]:
    return _readings_out(dashboard.store.query(order="asc"))


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
