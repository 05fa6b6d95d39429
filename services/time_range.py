"""Resolution of human-facing range tokens into concrete time windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Union

from errors import ValidationError
from models.records import as_utc


class RangeToken(str, Enum):
    hour = "1h"
    six_hours = "6h"
    day = "1d"
    week = "1w"
    month = "1m"
    custom = "custom"


RANGE_DURATIONS = {
    RangeToken.hour: timedelta(hours=1),
    RangeToken.six_hours: timedelta(hours=6),
    RangeToken.day: timedelta(days=1),
    RangeToken.week: timedelta(days=7),
    RangeToken.month: timedelta(days=30),
}


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval ``[start, end]``."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def parse_range_token(raw: Union[str, RangeToken, None]) -> Optional[RangeToken]:
    """Map a raw token onto the closed set; unknown values yield ``None``."""
    if raw is None or isinstance(raw, RangeToken):
        return raw
    try:
        return RangeToken(raw.strip())
    except ValueError:
        return None


def resolve_time_range(
    token: Union[str, RangeToken, None],
    now: datetime,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Optional[TimeWindow]:
    """Resolve ``token`` against ``now``.

    Returns ``None`` ("no filter") for unknown tokens and for a custom range
    missing either bound. A custom range whose start falls after its end is
    rejected with :class:`ValidationError`.
    """
    parsed = parse_range_token(token)
    if parsed is None:
        return None

    if parsed is RangeToken.custom:
        if start is None or end is None:
            return None
        window_start, window_end = as_utc(start), as_utc(end)
        if window_start > window_end:
            raise ValidationError("Custom range start must not be after its end.")
        return TimeWindow(start=window_start, end=window_end)

    reference = as_utc(now)
    return TimeWindow(start=reference - RANGE_DURATIONS[parsed], end=reference)
