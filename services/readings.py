"""Reading queries, ingestion and the per-device inspection pipeline."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Iterator, Optional, Union
from uuid import uuid4

from datastore.readings import ReadingStore, build_default_store
from datastore.registry import DeviceRegistry, build_default_registry
from errors import (
    DeviceNotFoundError,
    InternalError,
    ReadingNotFoundError,
    ValidationError,
)
from models.records import Device, DeviceSummary, Measurements, Reading, ReadingRecord
from services.aggregator import Aggregator, ReadingSummary
from services.series import (
    ChartPoint,
    Page,
    ascending,
    chart_points,
    descending,
    downsample,
    filter_readings,
    max_points_for,
    paginate,
)
from services.time_range import RangeToken, TimeWindow, parse_range_token, resolve_time_range
from settings import get_settings

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 1000


@dataclass(frozen=True)
class DeviceReadings:
    device: Device
    records: list[ReadingRecord]

    @property
    def total_records(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class DeviceLatest:
    device: Device
    latest: Optional[Reading]

    @property
    def has_data(self) -> bool:
        return self.latest is not None


@dataclass(frozen=True)
class DeviceView:
    """Everything a device inspection screen needs for one range selection."""

    device: Device
    range: Optional[RangeToken]
    window: Optional[TimeWindow]
    total_readings: int
    filtered_count: int
    max_points: int
    chart: tuple[ChartPoint, ...]
    page: Page
    summary: ReadingSummary


def _check_window(limit: int, skip: int) -> None:
    if not 1 <= limit <= MAX_QUERY_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_QUERY_LIMIT}.")
    if skip < 0:
        raise ValidationError("skip must not be negative.")


class ReadingService:
    """Coordinates the device registry, the reading store, and the aggregator."""

    def __init__(
        self,
        registry: DeviceRegistry,
        store: ReadingStore,
        aggregator: Aggregator,
        page_size: int = 20,
    ) -> None:
        self.registry = registry
        self.store = store
        self.aggregator = aggregator
        self.page_size = page_size

    def query_readings(
        self, device_id: Optional[str] = None, limit: int = 100, skip: int = 0
    ) -> list[ReadingRecord]:
        _check_window(limit, skip)
        with self._store_guard("query readings", device_id=device_id):
            readings = self.store.query_readings(device_id=device_id, limit=limit, skip=skip)
        return [self._join(reading) for reading in readings]

    def get_reading(self, reading_id: str) -> ReadingRecord:
        with self._store_guard("get reading", reading_id=reading_id):
            reading = self.store.get_reading(reading_id)
        if reading is None:
            raise ReadingNotFoundError(reading_id)
        return self._join(reading)

    def create_reading(
        self,
        device_id: str,
        measurements: Measurements,
        now: datetime,
        timestamp: Optional[datetime] = None,
    ) -> ReadingRecord:
        """Persist a new reading; ``timestamp`` defaults to ``now``."""
        self._require_device(device_id)
        reading = Reading(
            id=uuid4().hex,
            device_id=device_id,
            timestamp=timestamp if timestamp is not None else now,
            measurements=measurements,
        )
        with self._store_guard("create reading", device_id=device_id):
            self.store.add_reading(reading)
        logger.info(
            "Stored reading", extra={"device_id": device_id, "reading_id": reading.id}
        )
        return self._join(reading)

    def update_reading(
        self,
        reading_id: str,
        device_id: str,
        measurements: Measurements,
        timestamp: datetime,
    ) -> ReadingRecord:
        """Replace every field of an existing reading."""
        with self._store_guard("get reading", reading_id=reading_id):
            existing = self.store.get_reading(reading_id)
        if existing is None:
            raise ReadingNotFoundError(reading_id)
        self._require_device(device_id)

        replacement = Reading(
            id=reading_id,
            device_id=device_id,
            timestamp=timestamp,
            measurements=measurements,
        )
        with self._store_guard("update reading", reading_id=reading_id):
            replaced = self.store.replace_reading(replacement)
        if not replaced:
            raise ReadingNotFoundError(reading_id)
        logger.info(
            "Replaced reading", extra={"device_id": device_id, "reading_id": reading_id}
        )
        return self._join(replacement)

    def delete_reading(self, reading_id: str) -> None:
        with self._store_guard("delete reading", reading_id=reading_id):
            deleted = self.store.delete_reading(reading_id)
        if not deleted:
            raise ReadingNotFoundError(reading_id)
        logger.info("Deleted reading", extra={"reading_id": reading_id})

    def device_readings(
        self, device_id: str, limit: int = 100, skip: int = 0
    ) -> DeviceReadings:
        _check_window(limit, skip)
        device = self._require_device(device_id)
        with self._store_guard("query readings", device_id=device_id):
            readings = self.store.query_readings(device_id=device_id, limit=limit, skip=skip)
        summary = DeviceSummary.of(device)
        return DeviceReadings(
            device=device,
            records=[ReadingRecord(reading=reading, device=summary) for reading in readings],
        )

    def device_latest(self, device_id: str) -> DeviceLatest:
        device = self._require_device(device_id)
        with self._store_guard("latest reading", device_id=device_id):
            latest = self.store.latest_reading(device_id)
        return DeviceLatest(device=device, latest=latest)

    def device_view(
        self,
        device_id: str,
        range_token: Union[str, RangeToken, None],
        now: datetime,
        page: int = 1,
        page_size: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> DeviceView:
        token = parse_range_token(range_token)
        window = resolve_time_range(token, now, start=start, end=end)
        size = self.page_size if page_size is None else page_size
        if size < 1:
            raise ValidationError("Page size must be at least 1.")

        device = self._require_device(device_id)
        with self._store_guard("device readings", device_id=device_id):
            readings = self.store.readings_for_device(device_id)

        filtered = filter_readings(readings, window)
        limit = max_points_for(token)
        chart = chart_points(downsample(ascending(filtered), limit))
        table = paginate(descending(filtered), page, size)
        summary = self.aggregator.aggregate(filtered)

        logger.debug(
            "Built device view",
            extra={
                "device_id": device_id,
                "range": token.value if token is not None else None,
                "page": table.page,
            },
        )
        return DeviceView(
            device=device,
            range=token,
            window=window,
            total_readings=len(readings),
            filtered_count=len(filtered),
            max_points=limit,
            chart=chart,
            page=table,
            summary=summary,
        )

    def _require_device(self, device_id: str) -> Device:
        device = self.registry.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def _join(self, reading: Reading) -> ReadingRecord:
        device = self.registry.get_device(reading.device_id)
        summary = DeviceSummary.of(device) if device is not None else None
        return ReadingRecord(reading=reading, device=summary)

    @contextmanager
    def _store_guard(self, operation: str, **context: Optional[str]) -> Iterator[None]:
        try:
            yield
        except OSError as exc:
            logger.exception(
                "Store failure during %s", operation, extra={**context, "reason": str(exc)}
            )
            raise InternalError() from exc


@lru_cache
def build_default_service() -> ReadingService:
    """Factory that wires the service with the default stores."""
    settings = get_settings()
    return ReadingService(
        registry=build_default_registry(),
        store=build_default_store(),
        aggregator=Aggregator(),
        page_size=settings.page_size,
    )
