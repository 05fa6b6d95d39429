"""Online/offline classification from data freshness."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from models.records import Reading, as_utc

ONLINE_THRESHOLD = timedelta(seconds=300)


def is_online(latest: Optional[Reading], now: datetime) -> bool:
    """A device is online when its newest reading is strictly younger than the threshold."""
    if latest is None:
        return False
    return as_utc(now) - latest.timestamp < ONLINE_THRESHOLD
