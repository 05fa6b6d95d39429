from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api import readings_router, router
from app.weather import router as weather_router
from errors import InternalError
from logging_config import configure_logging
from services.fanout import build_default_stats_service
from services.readings import build_default_service


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    stats_service = build_default_stats_service()
    try:
        yield
    finally:
        stats_service.shutdown()
        build_default_stats_service.cache_clear()
        build_default_service.cache_clear()


async def _internal_error_handler(_request: Request, exc: InternalError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": exc.message},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Phasor Telemetry",
        description="Time-windowed inspection of phasor measurements from monitoring devices.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(InternalError, _internal_error_handler)
    app.include_router(router)
    app.include_router(readings_router)
    app.include_router(weather_router)
    return app

app = create_app()
