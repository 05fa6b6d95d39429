from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import TypeAdapter

from models.records import Reading
from settings import get_settings

logger = logging.getLogger(__name__)

_READING_ADAPTER = TypeAdapter(Reading)


def _newest_first(reading: Reading) -> tuple:
    return (reading.timestamp, reading.id)


class ReadingStore:
    """Append-mostly reading table with per-device lookups.

    Readings are frozen dataclasses, so handing them out without copying
    cannot leak mutations back into the table.
    """

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._readings: Dict[str, Reading] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def add_reading(self, reading: Reading) -> None:
        with self._lock:
            self._readings[reading.id] = reading
            self._persist()

    def replace_reading(self, reading: Reading) -> bool:
        with self._lock:
            if reading.id not in self._readings:
                return False
            self._readings[reading.id] = reading
            self._persist()
            return True

    def delete_reading(self, reading_id: str) -> bool:
        with self._lock:
            removed = self._readings.pop(reading_id, None)
            if removed is not None:
                self._persist()
            return removed is not None

    def get_reading(self, reading_id: str) -> Optional[Reading]:
        with self._lock:
            return self._readings.get(reading_id)

    def query_readings(
        self,
        device_id: Optional[str] = None,
        limit: int = 100,
        skip: int = 0,
    ) -> list[Reading]:
        """Return readings newest first, optionally restricted to one device."""

        with self._lock:
            candidates = [
                reading
                for reading in self._readings.values()
                if device_id is None or reading.device_id == device_id
            ]
        candidates.sort(key=_newest_first, reverse=True)
        return candidates[skip : skip + limit]

    def readings_for_device(self, device_id: str) -> list[Reading]:
        with self._lock:
            return [r for r in self._readings.values() if r.device_id == device_id]

    def count_readings(self, device_id: str) -> int:
        with self._lock:
            return sum(1 for r in self._readings.values() if r.device_id == device_id)

    def latest_reading(self, device_id: str) -> Optional[Reading]:
        readings = self.readings_for_device(device_id)
        if not readings:
            return None
        return max(readings, key=_newest_first)

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            reading_id: _READING_ADAPTER.dump_python(reading, mode="json")
            for reading_id, reading in self._readings.items()
        }
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            data = {}
        if not isinstance(data, dict):
            data = {}

        for reading_id, payload in data.items():
            try:
                self._readings[reading_id] = _READING_ADAPTER.validate_python(payload)
            except ValueError as exc:
                # pydantic validation errors are ValueErrors too.
                logger.warning(
                    "Skipping invalid stored reading",
                    extra={"reading_id": reading_id, "reason": type(exc).__name__},
                )


@lru_cache
def build_default_store(path: Optional[str] = None) -> ReadingStore:
    settings = get_settings()
    store_path = settings.readings_persistence_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return ReadingStore(persistence_path=persistence)
