from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

from pydantic import TypeAdapter

from models.records import Device
from settings import get_settings

logger = logging.getLogger(__name__)

_DEVICE_ADAPTER = TypeAdapter(Device)


class DeviceRegistry:
    """Device metadata keyed by identifier, optionally persisted as JSON."""

    def __init__(self, persistence_path: Optional[Path] = None) -> None:
        self._devices: Dict[str, Device] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_device(self, device: Device) -> None:
        with self._lock:
            self._devices[device.id] = device
            self._persist()

    def get_device(self, device_id: str) -> Optional[Device]:
        with self._lock:
            return self._devices.get(device_id)

    def list_devices(self) -> list[Device]:
        """Return every device, most recently created first."""

        with self._lock:
            devices = list(self._devices.values())
        return sorted(devices, key=lambda device: device.created_at, reverse=True)

    def delete_device(self, device_id: str) -> bool:
        # Readings referencing the device are intentionally left in place.
        with self._lock:
            removed = self._devices.pop(device_id, None)
            if removed is not None:
                self._persist()
            return removed is not None

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            device_id: _DEVICE_ADAPTER.dump_python(device, mode="json")
            for device_id, device in self._devices.items()
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

        for device_id, payload in data.items():
            try:
                self._devices[device_id] = _DEVICE_ADAPTER.validate_python(payload)
            except ValueError as exc:
                logger.warning(
                    "Skipping invalid stored device",
                    extra={"device_id": device_id, "reason": type(exc).__name__},
                )


@lru_cache
def build_default_registry(path: Optional[str] = None) -> DeviceRegistry:
    settings = get_settings()
    registry_path = settings.registry_persistence_path if path is None else path
    persistence = Path(registry_path) if registry_path else None
    return DeviceRegistry(persistence_path=persistence)
