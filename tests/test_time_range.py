"""Unit tests for range token resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from errors import ValidationError
from services.time_range import RangeToken, TimeWindow, parse_range_token, resolve_time_range

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("token", "duration"),
    [
        ("1h", timedelta(hours=1)),
        ("6h", timedelta(hours=6)),
        ("1d", timedelta(days=1)),
        ("1w", timedelta(days=7)),
        ("1m", timedelta(days=30)),
    ],
)
def test_named_tokens_end_at_reference_instant(token: str, duration: timedelta) -> None:
    window = resolve_time_range(token, NOW)

    assert window == TimeWindow(start=NOW - duration, end=NOW)


def test_enum_tokens_are_accepted() -> None:
    window = resolve_time_range(RangeToken.six_hours, NOW)

    assert window is not None
    assert window.end - window.start == timedelta(hours=6)


def test_custom_range_uses_caller_bounds() -> None:
    start = datetime(2024, 5, 1, tzinfo=timezone.utc)
    end = datetime(2024, 5, 2, tzinfo=timezone.utc)

    window = resolve_time_range("custom", NOW, start=start, end=end)

    assert window == TimeWindow(start=start, end=end)


@pytest.mark.parametrize(
    ("start", "end"),
    [
        (None, datetime(2024, 5, 2, tzinfo=timezone.utc)),
        (datetime(2024, 5, 1, tzinfo=timezone.utc), None),
        (None, None),
    ],
)
def test_custom_range_missing_a_bound_means_no_filter(start, end) -> None:
    assert resolve_time_range("custom", NOW, start=start, end=end) is None


def test_custom_range_with_inverted_bounds_is_rejected() -> None:
    with pytest.raises(ValidationError):
        resolve_time_range(
            "custom",
            NOW,
            start=datetime(2024, 5, 2, tzinfo=timezone.utc),
            end=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )


@pytest.mark.parametrize("token", ["2h", "", "ALL", None])
def test_unknown_tokens_mean_no_filter(token) -> None:
    assert parse_range_token(token) is None
    assert resolve_time_range(token, NOW) is None


def test_naive_instants_are_treated_as_utc() -> None:
    naive_now = datetime(2024, 6, 1, 12, 0)

    window = resolve_time_range("1h", naive_now)

    assert window is not None
    assert window.end == NOW
    assert window.end.tzinfo is not None


def test_window_bounds_are_inclusive() -> None:
    window = TimeWindow(start=NOW - timedelta(hours=1), end=NOW)

    assert window.contains(NOW)
    assert window.contains(NOW - timedelta(hours=1))
    assert not window.contains(NOW + timedelta(microseconds=1))
