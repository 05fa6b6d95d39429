from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from datastore.readings import ReadingStore
from datastore.registry import DeviceRegistry
from errors import DeviceNotFoundError, InternalError, ReadingNotFoundError, ValidationError
from models.records import Device, Location, Measurements, Phasor
from services.aggregator import Aggregator
from services.readings import ReadingService
from services.time_range import RangeToken

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _measurements(frequency: float = 50.0) -> Measurements:
    return Measurements(
        voltage_phasors=(Phasor("VA", 230.0, 0.0), Phasor("VB", 231.0, -120.0)),
        current_phasors=(Phasor("IA", 10.0, -30.0),),
        frequency=frequency,
    )


@pytest.fixture()
def service() -> ReadingService:
    registry = DeviceRegistry()
    registry.put_device(
        Device(
            id="dev-1",
            name="PMU North",
            substation="North",
            location=Location(longitude=10.0, latitude=50.0),
            created_at=NOW - timedelta(days=1),
        )
    )
    return ReadingService(
        registry=registry, store=ReadingStore(), aggregator=Aggregator(), page_size=20
    )


def _ingest(service: ReadingService, minutes_ago: float, frequency: float = 50.0):
    return service.create_reading(
        "dev-1",
        _measurements(frequency),
        NOW,
        timestamp=NOW - timedelta(minutes=minutes_ago),
    )


def test_create_reading_defaults_timestamp_to_now(service: ReadingService) -> None:
    record = service.create_reading("dev-1", _measurements(), NOW)

    assert record.reading.timestamp == NOW
    assert record.device is not None
    assert record.device.name == "PMU North"
    assert service.get_reading(record.reading.id) == record


def test_create_reading_for_unknown_device_fails(service: ReadingService) -> None:
    with pytest.raises(DeviceNotFoundError) as excinfo:
        service.create_reading("ghost", _measurements(), NOW)

    assert "ghost" in str(excinfo.value)
    assert service.store.query_readings() == []


def test_query_joins_device_summary_and_keeps_orphans(service: ReadingService) -> None:
    _ingest(service, 2)
    _ingest(service, 1)

    records = service.query_readings(device_id="dev-1")
    assert [r.reading.timestamp for r in records] == [
        NOW - timedelta(minutes=1),
        NOW - timedelta(minutes=2),
    ]
    assert all(r.device is not None and r.device.substation == "North" for r in records)

    service.registry.delete_device("dev-1")
    orphans = service.query_readings()
    assert len(orphans) == 2
    assert all(r.device is None for r in orphans)


@pytest.mark.parametrize(("limit", "skip"), [(0, 0), (1001, 0), (10, -1)])
def test_query_rejects_out_of_range_windows(service: ReadingService, limit: int, skip: int) -> None:
    with pytest.raises(ValidationError):
        service.query_readings(limit=limit, skip=skip)


def test_get_missing_reading(service: ReadingService) -> None:
    with pytest.raises(ReadingNotFoundError):
        service.get_reading("missing")


def test_update_replaces_the_whole_reading(service: ReadingService) -> None:
    created = _ingest(service, 5)
    replacement = Measurements(frequency=49.95)

    updated = service.update_reading(created.reading.id, "dev-1", replacement, NOW)

    assert updated.reading.id == created.reading.id
    assert updated.reading.timestamp == NOW
    assert updated.reading.measurements.voltage_phasors == ()
    assert service.get_reading(created.reading.id).reading.measurements.frequency == 49.95


def test_update_errors(service: ReadingService) -> None:
    created = _ingest(service, 5)

    with pytest.raises(ReadingNotFoundError):
        service.update_reading("missing", "dev-1", _measurements(), NOW)
    with pytest.raises(DeviceNotFoundError):
        service.update_reading(created.reading.id, "ghost", _measurements(), NOW)


def test_delete_removes_exactly_one_reading(service: ReadingService) -> None:
    first = _ingest(service, 2)
    _ingest(service, 1)

    service.delete_reading(first.reading.id)

    assert len(service.query_readings()) == 1
    with pytest.raises(ReadingNotFoundError):
        service.delete_reading(first.reading.id)


def test_device_readings_and_latest(service: ReadingService) -> None:
    _ingest(service, 3, frequency=49.9)
    _ingest(service, 1, frequency=50.1)

    listing = service.device_readings("dev-1", limit=1)
    latest = service.device_latest("dev-1")

    assert listing.total_records == 1
    assert listing.records[0].reading.measurements.frequency == 50.1
    assert latest.has_data is True
    assert latest.latest is not None
    assert latest.latest.measurements.frequency == 50.1

    with pytest.raises(DeviceNotFoundError):
        service.device_latest("ghost")


def test_device_latest_without_data(service: ReadingService) -> None:
    latest = service.device_latest("dev-1")

    assert latest.has_data is False
    assert latest.latest is None


def test_device_view_filters_downsamples_pages_and_aggregates(service: ReadingService) -> None:
    for minute in range(25):
        _ingest(service, minute, frequency=50.0 + minute / 100)
    _ingest(service, 120, frequency=45.0)

    view = service.device_view("dev-1", "1h", NOW, page=2)

    assert view.range is RangeToken.hour
    assert view.window is not None
    assert view.total_readings == 26
    assert view.filtered_count == 25
    assert view.max_points == 60
    assert len(view.chart) == 25
    assert [p.timestamp for p in view.chart] == sorted(p.timestamp for p in view.chart)
    assert view.page.page == 2
    assert len(view.page.items) == 5
    assert view.page.items[0].timestamp == NOW - timedelta(minutes=20)
    assert view.summary.reading_count == 25
    assert view.summary.min_frequency == pytest.approx(50.0)
    assert view.summary.latest is not None
    assert view.summary.latest.timestamp == NOW


def test_device_view_chart_is_capped_but_summary_is_not(service: ReadingService) -> None:
    for second in range(0, 80 * 30, 30):
        service.create_reading(
            "dev-1", _measurements(), NOW, timestamp=NOW - timedelta(seconds=second)
        )

    view = service.device_view("dev-1", RangeToken.hour, NOW, page=99, page_size=50)

    assert len(view.chart) == 60
    assert view.chart[-1].timestamp == NOW
    assert view.summary.reading_count == 80
    assert view.page.page == 2
    assert len(view.page.items) == 30


def test_device_view_custom_without_bounds_is_unfiltered(service: ReadingService) -> None:
    _ingest(service, 1)
    _ingest(service, 60 * 24 * 90)

    view = service.device_view("dev-1", "custom", NOW, start=NOW - timedelta(hours=1))

    assert view.window is None
    assert view.filtered_count == 2
    assert view.max_points == 500


def test_device_view_unknown_device(service: ReadingService) -> None:
    with pytest.raises(DeviceNotFoundError):
        service.device_view("ghost", "1h", NOW)


def test_device_view_rejects_bad_page_size(service: ReadingService) -> None:
    with pytest.raises(ValidationError):
        service.device_view("dev-1", "1h", NOW, page_size=0)


def test_store_failures_surface_as_internal_errors(service: ReadingService, caplog) -> None:
    class FailingStore(ReadingStore):
        def readings_for_device(self, device_id: str):
            raise OSError("disk detached")

    service.store = FailingStore()

    with caplog.at_level(logging.ERROR):
        with pytest.raises(InternalError) as excinfo:
            service.device_view("dev-1", "1d", NOW)

    assert "disk" not in str(excinfo.value)
    records = [record for record in caplog.records if record.name == "services.readings"]
    assert any(getattr(record, "device_id", None) == "dev-1" for record in records)
