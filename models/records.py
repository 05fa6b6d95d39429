"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from errors import ValidationError

VOLTAGE_CHANNELS = ("VA", "VB", "VC")
CURRENT_CHANNELS = ("IA", "IB", "IC")


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_channels(phasors: Iterable["Phasor"], allowed: tuple[str, ...], kind: str) -> None:
    seen: set[str] = set()
    for phasor in phasors:
        if phasor.channel not in allowed:
            raise ValidationError(
                f"Unknown {kind} channel {phasor.channel!r}; expected one of {', '.join(allowed)}."
            )
        if phasor.channel in seen:
            raise ValidationError(f"Duplicate {kind} channel {phasor.channel!r}.")
        seen.add(phasor.channel)


@dataclass(frozen=True)
class Phasor:
    channel: str
    magnitude: float
    angle: float


@dataclass(frozen=True)
class Measurements:
    """One measurement bundle; any channel may be absent."""

    voltage_phasors: tuple[Phasor, ...] = ()
    current_phasors: tuple[Phasor, ...] = ()
    frequency: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "voltage_phasors", tuple(self.voltage_phasors))
        object.__setattr__(self, "current_phasors", tuple(self.current_phasors))
        check_channels(self.voltage_phasors, VOLTAGE_CHANNELS, "voltage")
        check_channels(self.current_phasors, CURRENT_CHANNELS, "current")

    def voltage(self, channel: str) -> Optional[Phasor]:
        return _find_channel(self.voltage_phasors, channel)

    def current(self, channel: str) -> Optional[Phasor]:
        return _find_channel(self.current_phasors, channel)


def _find_channel(phasors: tuple[Phasor, ...], channel: str) -> Optional[Phasor]:
    for phasor in phasors:
        if phasor.channel == channel:
            return phasor
    return None


@dataclass(frozen=True)
class Location:
    longitude: float
    latitude: float

    def __post_init__(self) -> None:
        if not -180.0 <= self.longitude <= 180.0:
            raise ValidationError(f"Longitude {self.longitude} outside [-180, 180].")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValidationError(f"Latitude {self.latitude} outside [-90, 90].")


@dataclass(frozen=True)
class Device:
    """A registered monitoring endpoint."""

    id: str
    name: str
    substation: str
    location: Location
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "created_at", as_utc(self.created_at))


@dataclass(frozen=True)
class Reading:
    """One timestamped measurement bundle from a device."""

    id: str
    device_id: str
    timestamp: datetime
    measurements: Measurements

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))


@dataclass(frozen=True)
class DeviceSummary:
    """Device projection joined onto readings handed back to callers."""

    id: str
    name: str
    substation: str
    location: Location

    @classmethod
    def of(cls, device: Device) -> "DeviceSummary":
        return cls(
            id=device.id,
            name=device.name,
            substation=device.substation,
            location=device.location,
        )


@dataclass(frozen=True)
class ReadingRecord:
    """A reading joined with its device summary (``None`` once the device is gone)."""

    reading: Reading
    device: Optional[DeviceSummary]
