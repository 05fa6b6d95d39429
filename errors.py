"""Error taxonomy shared by the service, datastore and HTTP layers."""

from __future__ import annotations

from typing import Optional


class ValidationError(ValueError):
    """Input rejected at the boundary before any store access."""


class NotFoundError(KeyError):
    """An identifier did not resolve to a stored entity."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class DeviceNotFoundError(NotFoundError):
    def __init__(self, device_id: str) -> None:
        super().__init__(f"Device {device_id!r} not found.")
        self.device_id = device_id


class ReadingNotFoundError(NotFoundError):
    def __init__(self, reading_id: str) -> None:
        super().__init__(f"Reading {reading_id!r} not found.")
        self.reading_id = reading_id


class UpstreamError(RuntimeError):
    """A collaborator outside this service failed or is not configured."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code or 502


class InternalError(RuntimeError):
    """Unexpected store failure; the message is safe to show to callers."""

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
        self.message = message
