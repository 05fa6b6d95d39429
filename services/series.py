"""Pure transformations over fetched readings: filter, order, downsample, page.

Every function returns a fresh tuple and leaves its input untouched, so the
chart view and the table view derived from one filtered set never share
mutable state.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from errors import ValidationError
from models.records import CURRENT_CHANNELS, VOLTAGE_CHANNELS, Reading
from services.time_range import RangeToken, TimeWindow, parse_range_token

DEFAULT_MAX_POINTS = 500
MAX_POINTS_BY_RANGE = {
    RangeToken.hour: 60,
    RangeToken.six_hours: 100,
}


def _chronological(reading: Reading) -> tuple:
    return (reading.timestamp, reading.id)


def filter_readings(
    readings: Iterable[Reading], window: Optional[TimeWindow]
) -> tuple[Reading, ...]:
    if window is None:
        return tuple(readings)
    return tuple(reading for reading in readings if window.contains(reading.timestamp))


def ascending(readings: Iterable[Reading]) -> tuple[Reading, ...]:
    return tuple(sorted(readings, key=_chronological))


def descending(readings: Iterable[Reading]) -> tuple[Reading, ...]:
    return tuple(sorted(readings, key=_chronological, reverse=True))


def max_points_for(token: Optional[RangeToken | str]) -> int:
    parsed = parse_range_token(token)
    return MAX_POINTS_BY_RANGE.get(parsed, DEFAULT_MAX_POINTS)


def downsample(ordered: Sequence[Reading], limit: int) -> tuple[Reading, ...]:
    """Keep the trailing ``limit`` points of an ascending sequence."""
    if limit < 1:
        raise ValidationError("Downsample limit must be at least 1.")
    if len(ordered) <= limit:
        return tuple(ordered)
    return tuple(ordered[-limit:])


@dataclass(frozen=True)
class Page:
    items: tuple[Reading, ...]
    page: int
    page_size: int
    total_items: int
    total_pages: int


def paginate(ordered: Sequence[Reading], page: int, page_size: int) -> Page:
    """Slice one page out of ``ordered``, clamping ``page`` into ``[1, total_pages]``."""
    if page_size < 1:
        raise ValidationError("Page size must be at least 1.")

    total_items = len(ordered)
    total_pages = math.ceil(total_items / page_size)
    current = min(max(page, 1), max(total_pages, 1))
    offset = (current - 1) * page_size
    return Page(
        items=tuple(ordered[offset : offset + page_size]),
        page=current,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
    )


@dataclass(frozen=True)
class ChartPoint:
    """One renderer-ready sample; absent channels stay ``None``."""

    timestamp: datetime
    frequency: float
    magnitudes: dict[str, Optional[float]]


def chart_points(ordered: Iterable[Reading]) -> tuple[ChartPoint, ...]:
    points = []
    for reading in ordered:
        measurements = reading.measurements
        magnitudes: dict[str, Optional[float]] = {}
        for channel in VOLTAGE_CHANNELS:
            phasor = measurements.voltage(channel)
            magnitudes[channel] = phasor.magnitude if phasor is not None else None
        for channel in CURRENT_CHANNELS:
            phasor = measurements.current(channel)
            magnitudes[channel] = phasor.magnitude if phasor is not None else None
        points.append(
            ChartPoint(
                timestamp=reading.timestamp,
                frequency=measurements.frequency,
                magnitudes=magnitudes,
            )
        )
    return tuple(points)
