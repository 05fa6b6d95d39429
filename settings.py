from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_REGISTRY_PATH_ENV = "REGISTRY_PERSISTENCE_PATH"
_READINGS_PATH_ENV = "READINGS_PERSISTENCE_PATH"
_PAGE_SIZE_ENV = "READINGS_PAGE_SIZE"
_FANOUT_CONCURRENCY_ENV = "FANOUT_CONCURRENCY"
_FANOUT_TIMEOUT_ENV = "FANOUT_TIMEOUT_SECONDS"
_WEATHER_API_KEY_ENV = "OPENWEATHER_API_KEY"
_WEATHER_BASE_URL_ENV = "WEATHER_BASE_URL"
_WEATHER_TIMEOUT_ENV = "WEATHER_TIMEOUT_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    registry_persistence_path: Optional[str]
    readings_persistence_path: Optional[str]
    page_size: int
    fanout_concurrency: int
    fanout_timeout: float
    weather_api_key: Optional[str]
    weather_base_url: str
    weather_timeout: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        registry_persistence_path=_read_optional_env(_REGISTRY_PATH_ENV, "./tmp/devices.json"),
        readings_persistence_path=_read_optional_env(_READINGS_PATH_ENV, "./tmp/readings.json"),
        page_size=_read_positive_int(_PAGE_SIZE_ENV, 20),
        fanout_concurrency=_read_positive_int(_FANOUT_CONCURRENCY_ENV, 8),
        fanout_timeout=_read_positive_float(_FANOUT_TIMEOUT_ENV, 2.0),
        weather_api_key=_read_optional_env(_WEATHER_API_KEY_ENV, None),
        weather_base_url=_read_str_env(
            _WEATHER_BASE_URL_ENV, "https://api.openweathermap.org/data/2.5"
        ).rstrip("/"),
        weather_timeout=_read_positive_float(_WEATHER_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
