"""Aggregation logic for phasor readings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from models.records import Reading


@dataclass
class ReadingSummary:
    """Computed statistics for a filtered set of readings."""

    reading_count: int = 0
    avg_frequency: float | None = None
    min_frequency: float | None = None
    max_frequency: float | None = None
    avg_voltage: float | None = None
    avg_current: float | None = None
    latest: Reading | None = None


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, readings: Iterable[Reading]) -> ReadingSummary:
        summary = ReadingSummary()
        frequency_total = 0.0
        voltage_total = 0.0
        voltage_count = 0
        current_total = 0.0
        current_count = 0

        for reading in readings:
            summary.reading_count += 1
            measurements = reading.measurements
            frequency = measurements.frequency
            frequency_total += frequency

            if summary.min_frequency is None or frequency < summary.min_frequency:
                summary.min_frequency = frequency
            if summary.max_frequency is None or frequency > summary.max_frequency:
                summary.max_frequency = frequency

            # Averages run over every phasor entry, not per channel.
            for phasor in measurements.voltage_phasors:
                voltage_total += phasor.magnitude
                voltage_count += 1
            for phasor in measurements.current_phasors:
                current_total += phasor.magnitude
                current_count += 1

            if summary.latest is None or (reading.timestamp, reading.id) > (
                summary.latest.timestamp,
                summary.latest.id,
            ):
                summary.latest = reading

        if summary.reading_count:
            summary.avg_frequency = frequency_total / summary.reading_count
        if voltage_count:
            summary.avg_voltage = voltage_total / voltage_count
        if current_count:
            summary.avg_current = current_total / current_count

        return summary
