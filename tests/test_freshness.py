from __future__ import annotations

from datetime import datetime, timedelta, timezone

from models.records import Measurements, Reading
from services.freshness import ONLINE_THRESHOLD, is_online

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _reading_aged(age: timedelta) -> Reading:
    return Reading(
        id="r1",
        device_id="dev-1",
        timestamp=NOW - age,
        measurements=Measurements(frequency=50.0),
    )


def test_threshold_is_five_minutes() -> None:
    assert ONLINE_THRESHOLD == timedelta(minutes=5)


def test_recent_reading_is_online() -> None:
    assert is_online(_reading_aged(timedelta(minutes=4, seconds=59)), NOW) is True


def test_stale_reading_is_offline() -> None:
    assert is_online(_reading_aged(timedelta(minutes=5, seconds=1)), NOW) is False


def test_exactly_five_minutes_is_offline() -> None:
    assert is_online(_reading_aged(timedelta(minutes=5)), NOW) is False


def test_no_reading_is_offline() -> None:
    assert is_online(None, NOW) is False
