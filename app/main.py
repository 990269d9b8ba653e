from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from models.errors import RadioUnavailable
from services.pipeline import build_default_pipeline
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    pipeline = build_default_pipeline()
    try:
        await pipeline.start(connect=get_settings().link_autostart)
    except RadioUnavailable as exc:
        # keep serving the polled history; /link/start retries on demand
        logger.error("Sensor link not started", extra={"reason": str(exc)})
    try:
        yield
    finally:
        await pipeline.stop()
        build_default_pipeline.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Engine",
        description="Ingests BLE environmental sensor readings and serves derived views.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
