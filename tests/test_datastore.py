"""Unit tests for the registry and reading store implementations."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

from datastore.readings import ReadingStore
from datastore.registry import DeviceRegistry
from models.records import Device, Location, Measurements, Phasor, Reading

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _device(device_id: str, hours_ago: int = 0) -> Device:
    return Device(
        id=device_id,
        name=f"PMU {device_id}",
        substation="Riverside",
        location=Location(longitude=-0.12, latitude=51.5),
        created_at=NOW - timedelta(hours=hours_ago),
    )


def _reading(reading_id: str, device_id: str = "dev-1", minutes_ago: int = 0) -> Reading:
    return Reading(
        id=reading_id,
        device_id=device_id,
        timestamp=NOW - timedelta(minutes=minutes_ago),
        measurements=Measurements(
            voltage_phasors=(Phasor("VA", 230.5, 0.0), Phasor("VB", 229.8, -120.0)),
            current_phasors=(Phasor("IA", 10.1, -25.0),),
            frequency=50.01,
        ),
    )


def test_registry_lists_newest_devices_first() -> None:
    registry = DeviceRegistry()
    registry.put_device(_device("old", hours_ago=5))
    registry.put_device(_device("new", hours_ago=1))
    registry.put_device(_device("mid", hours_ago=3))

    assert [device.id for device in registry.list_devices()] == ["new", "mid", "old"]
    assert registry.get_device("mid") == _device("mid", hours_ago=3)
    assert registry.get_device("missing") is None


def test_registry_persists_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "devices.json"
    registry = DeviceRegistry(persistence_path=path)
    device = _device("dev-1")

    registry.put_device(device)

    payload = json.loads(path.read_text())
    assert payload["dev-1"]["location"] == {"longitude": -0.12, "latitude": 51.5}

    reloaded = DeviceRegistry(persistence_path=path)
    assert reloaded.get_device("dev-1") == device


def test_deleting_a_device_leaves_its_readings() -> None:
    registry = DeviceRegistry()
    store = ReadingStore()
    registry.put_device(_device("dev-1"))
    store.add_reading(_reading("r1"))

    assert registry.delete_device("dev-1") is True
    assert registry.delete_device("dev-1") is False
    assert store.count_readings("dev-1") == 1


def test_query_orders_newest_first_and_pages() -> None:
    store = ReadingStore()
    for minutes_ago in (5, 1, 3, 2, 4):
        store.add_reading(_reading(f"r{minutes_ago}", minutes_ago=minutes_ago))
    store.add_reading(_reading("other", device_id="dev-2", minutes_ago=0))

    assert [r.id for r in store.query_readings(device_id="dev-1")] == ["r1", "r2", "r3", "r4", "r5"]
    assert [r.id for r in store.query_readings(device_id="dev-1", limit=2, skip=1)] == ["r2", "r3"]
    assert store.query_readings(limit=1)[0].id == "other"


def test_count_and_latest_are_per_device() -> None:
    store = ReadingStore()
    store.add_reading(_reading("r1", minutes_ago=10))
    store.add_reading(_reading("r2", minutes_ago=2))
    store.add_reading(_reading("x1", device_id="dev-2", minutes_ago=0))

    assert store.count_readings("dev-1") == 2
    assert store.latest_reading("dev-1").id == "r2"  # type: ignore[union-attr]
    assert store.count_readings("dev-3") == 0
    assert store.latest_reading("dev-3") is None


def test_replace_and_delete_report_missing_readings() -> None:
    store = ReadingStore()

    assert store.replace_reading(_reading("missing")) is False
    assert store.delete_reading("missing") is False

    store.add_reading(_reading("r1", minutes_ago=5))
    assert store.replace_reading(_reading("r1", minutes_ago=1)) is True
    assert store.get_reading("r1").timestamp == NOW - timedelta(minutes=1)  # type: ignore[union-attr]
    assert store.delete_reading("r1") is True
    assert store.get_reading("r1") is None


def test_store_persists_measurements_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "readings.json"
    store = ReadingStore(persistence_path=path)
    reading = _reading("r1", minutes_ago=3)

    store.add_reading(reading)

    payload = json.loads(path.read_text())
    assert payload["r1"]["measurements"]["voltage_phasors"][1]["channel"] == "VB"

    reloaded = ReadingStore(persistence_path=path).get_reading("r1")
    assert reloaded == reading
    assert reloaded.measurements.voltage("VB").angle == -120.0  # type: ignore[union-attr]
    assert reloaded.measurements.current("IB") is None  # type: ignore[union-attr]


def test_store_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "readings.json"
    path.write_text("{not json")

    store = ReadingStore(persistence_path=path)

    assert store.query_readings() == []


def test_store_skips_entries_that_fail_validation(tmp_path: Path, caplog) -> None:
    path = tmp_path / "readings.json"
    ReadingStore(persistence_path=path).add_reading(_reading("good", minutes_ago=1))
    payload = json.loads(path.read_text())
    bad = json.loads(json.dumps(payload["good"]))
    bad["id"] = "bad"
    bad["measurements"]["voltage_phasors"][0]["channel"] = "VX"
    payload["bad"] = bad
    path.write_text(json.dumps(payload))

    with caplog.at_level(logging.WARNING):
        store = ReadingStore(persistence_path=path)

    assert [r.id for r in store.query_readings()] == ["good"]
    assert any(getattr(record, "reading_id", None) == "bad" for record in caplog.records)


def test_registry_skips_devices_that_fail_validation(tmp_path: Path, caplog) -> None:
    path = tmp_path / "devices.json"
    DeviceRegistry(persistence_path=path).put_device(_device("dev-1"))
    payload = json.loads(path.read_text())
    bad = dict(payload["dev-1"], id="dev-2", location={"longitude": 200.0, "latitude": 0.0})
    payload["dev-2"] = bad
    path.write_text(json.dumps(payload))

    with caplog.at_level(logging.WARNING):
        registry = DeviceRegistry(persistence_path=path)

    assert [device.id for device in registry.list_devices()] == ["dev-1"]
    assert any(getattr(record, "device_id", None) == "dev-2" for record in caplog.records)
