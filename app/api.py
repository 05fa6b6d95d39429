"""HTTP route definitions for the service."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from app.schemas import (
    DeviceLatestResponse,
    DeviceOut,
    DeviceReadingsResponse,
    DeviceStatsOut,
    DeviceViewResponse,
    MessageResponse,
    ReadingCreate,
    ReadingOut,
    ReadingUpdate,
)
from datastore.registry import DeviceRegistry, build_default_registry
from errors import DeviceNotFoundError, NotFoundError, ValidationError
from services.fanout import DeviceStatsService, build_default_stats_service
from services.readings import ReadingService, build_default_service

logger = logging.getLogger(__name__)

CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_SECONDS = 0.1

router = APIRouter()
readings_router = APIRouter(prefix="/api/sensor-data", tags=["sensor data"])


def get_service() -> ReadingService:
    return build_default_service()


def get_stats_service() -> DeviceStatsService:
    return build_default_stats_service()


def get_registry() -> DeviceRegistry:
    return build_default_registry()


def get_now() -> datetime:
    return datetime.now(timezone.utc)


@readings_router.get(
    "/",
    response_model=List[ReadingOut],
    summary="List readings newest first, optionally for a single device.",
)
async def list_readings(
    device_id: Optional[str] = Query(None),
    limit: int = Query(100),
    skip: int = Query(0),
    service: ReadingService = Depends(get_service),
) -> List[ReadingOut]:
    try:
        records = service.query_readings(device_id=device_id, limit=limit, skip=skip)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return [ReadingOut.from_record(record) for record in records]


@readings_router.get(
    "/devices/stats",
    response_model=List[DeviceStatsOut],
    summary="Reading count, latest reading and online flag for every device.",
)
async def device_stats(
    request: Request,
    fail_fast: bool = Query(False, description="Fail the request if any device lookup fails."),
    registry: DeviceRegistry = Depends(get_registry),
    stats_service: DeviceStatsService = Depends(get_stats_service),
    now: datetime = Depends(get_now),
):
    devices = registry.list_devices()
    collect = asyncio.create_task(stats_service.collect(devices, now, fail_fast=fail_fast))
    disconnected = asyncio.Event()
    watcher = asyncio.create_task(_cancel_on_disconnect(request, collect, disconnected))
    try:
        stats = await collect
    except asyncio.CancelledError:
        if not disconnected.is_set():
            raise
        logger.info(
            "Client disconnected; device stats cancelled",
            extra={"device_count": len(devices)},
        )
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    finally:
        watcher.cancel()
    return [DeviceStatsOut.from_domain(item) for item in stats]


@readings_router.get(
    "/device/{device_id}",
    response_model=DeviceReadingsResponse,
    summary="Device metadata with its newest readings.",
)
async def device_readings(
    device_id: str,
    limit: int = Query(100),
    skip: int = Query(0),
    service: ReadingService = Depends(get_service),
) -> DeviceReadingsResponse:
    try:
        result = service.device_readings(device_id, limit=limit, skip=skip)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return DeviceReadingsResponse(
        device=DeviceOut.model_validate(result.device),
        sensor_data=[ReadingOut.from_record(record) for record in result.records],
        total_records=result.total_records,
    )


@readings_router.get(
    "/device/{device_id}/latest",
    response_model=DeviceLatestResponse,
    summary="Device metadata with its single most recent reading.",
)
async def device_latest(
    device_id: str,
    service: ReadingService = Depends(get_service),
) -> DeviceLatestResponse:
    try:
        result = service.device_latest(device_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return DeviceLatestResponse(
        device=DeviceOut.model_validate(result.device),
        latest_reading=(
            ReadingOut.from_domain(result.latest) if result.latest is not None else None
        ),
        has_data=result.has_data,
    )


@readings_router.get(
    "/device/{device_id}/view",
    response_model=DeviceViewResponse,
    summary="Chart series, paged table and summary for a time range.",
)
async def device_view(
    device_id: str,
    range_token: str = Query("1w", alias="range", description="1h, 6h, 1d, 1w, 1m or custom."),
    page: int = Query(1, description="1-based page, clamped into the available pages."),
    page_size: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None, description="Custom range start."),
    end: Optional[datetime] = Query(None, description="Custom range end."),
    service: ReadingService = Depends(get_service),
    now: datetime = Depends(get_now),
) -> DeviceViewResponse:
    try:
        view = service.device_view(
            device_id,
            range_token,
            now,
            page=page,
            page_size=page_size,
            start=start,
            end=end,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return DeviceViewResponse.from_domain(view)


@readings_router.get(
    "/{reading_id}",
    response_model=ReadingOut,
    summary="Fetch a single reading.",
)
async def get_reading(
    reading_id: str,
    service: ReadingService = Depends(get_service),
) -> ReadingOut:
    try:
        record = service.get_reading(reading_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ReadingOut.from_record(record)


@readings_router.post(
    "/",
    response_model=ReadingOut,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest a reading for a registered device.",
)
async def create_reading(
    payload: ReadingCreate,
    service: ReadingService = Depends(get_service),
    now: datetime = Depends(get_now),
) -> ReadingOut:
    try:
        record = service.create_reading(
            payload.device_id,
            payload.measurements.to_domain(),
            now,
            timestamp=payload.timestamp,
        )
    except (DeviceNotFoundError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ReadingOut.from_record(record)


@readings_router.put(
    "/{reading_id}",
    response_model=ReadingOut,
    summary="Replace every field of an existing reading.",
)
async def update_reading(
    reading_id: str,
    payload: ReadingUpdate,
    service: ReadingService = Depends(get_service),
) -> ReadingOut:
    try:
        record = service.update_reading(
            reading_id,
            payload.device_id,
            payload.measurements.to_domain(),
            payload.timestamp,
        )
    except (DeviceNotFoundError, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ReadingOut.from_record(record)


@readings_router.delete(
    "/{reading_id}",
    response_model=MessageResponse,
    summary="Delete a single reading.",
)
async def delete_reading(
    reading_id: str,
    service: ReadingService = Depends(get_service),
) -> MessageResponse:
    try:
        service.delete_reading(reading_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return MessageResponse(message="Sensor data deleted successfully!")


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


async def _cancel_on_disconnect(
    request: Request, task: asyncio.Task, disconnected: asyncio.Event
) -> None:
    while not task.done():
        if await request.is_disconnected():
            disconnected.set()
            task.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)
