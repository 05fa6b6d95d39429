"""Thin client for the external weather provider used on device detail pages."""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from errors import UpstreamError, ValidationError
from settings import get_settings

logger = logging.getLogger(__name__)

MAX_FORECAST_DAYS = 5


@dataclass(frozen=True)
class CurrentWeather:
    temperature: int
    feels_like: int
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction: Optional[int]
    cloudiness: int
    visibility_km: Optional[float]
    description: str
    icon: str
    location: str
    country: str


@dataclass(frozen=True)
class DailyForecast:
    day: date
    description: str
    temperature_min: int
    temperature_max: int
    humidity: int
    wind_speed: float
    cloudiness: int

    @property
    def day_of_week(self) -> str:
        return self.day.strftime("%A")


@dataclass(frozen=True)
class Forecast:
    location: str
    country: str
    days: List[DailyForecast]


def parse_coordinates(latitude: Optional[str], longitude: Optional[str]) -> tuple[float, float]:
    """Validate raw query values before any upstream call is made."""
    if latitude is None or longitude is None or not latitude.strip() or not longitude.strip():
        raise ValidationError("Latitude and longitude are required")
    try:
        lat = float(latitude)
        lon = float(longitude)
    except ValueError as exc:
        raise ValidationError("Invalid latitude or longitude values") from exc
    if math.isnan(lat) or math.isnan(lon):
        raise ValidationError("Invalid latitude or longitude values")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise ValidationError("Latitude or longitude out of range")
    return lat, lon


class WeatherClient:
    """Fetches current conditions and daily forecasts; failures are never retried."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def current(self, latitude: float, longitude: float) -> CurrentWeather:
        payload = await self._get("/weather", latitude, longitude)
        try:
            return _current_from_payload(payload)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Malformed conditions from weather provider", extra={"reason": str(exc)})
            raise UpstreamError("Invalid response from weather provider", status_code=502) from exc

    async def forecast(self, latitude: float, longitude: float, days: int = MAX_FORECAST_DAYS) -> Forecast:
        if not 1 <= days <= MAX_FORECAST_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_FORECAST_DAYS}")
        payload = await self._get("/forecast", latitude, longitude)
        city = payload.get("city", {})
        try:
            daily = _group_by_day(payload.get("list", []))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Malformed forecast from weather provider", extra={"reason": str(exc)})
            raise UpstreamError("Invalid response from weather provider", status_code=502) from exc
        return Forecast(
            location=city.get("name", ""),
            country=city.get("country", ""),
            days=daily[:days],
        )

    async def _get(self, path: str, latitude: float, longitude: float) -> Dict[str, Any]:
        if not self.api_key:
            raise UpstreamError("Weather API key not configured", status_code=500)

        params = {
            "lat": latitude,
            "lon": longitude,
            "appid": self.api_key,
            "units": "metric",
        }
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                response = await client.get(path, params=params)
            except httpx.HTTPError as exc:
                logger.warning("Weather provider unreachable", extra={"reason": str(exc)})
                raise UpstreamError("Weather provider unreachable", status_code=502) from exc

        if response.is_error:
            message = _upstream_message(response)
            logger.warning(
                "Weather provider returned an error",
                extra={"status": response.status_code, "reason": message},
            )
            raise UpstreamError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning(
                "Weather provider returned a non-JSON body",
                extra={"status": response.status_code},
            )
            raise UpstreamError("Invalid response from weather provider", status_code=502) from exc
        if not isinstance(payload, dict):
            raise UpstreamError("Invalid response from weather provider", status_code=502)
        return payload


def _current_from_payload(payload: Dict[str, Any]) -> CurrentWeather:
    main = payload.get("main", {})
    wind = payload.get("wind", {})
    condition = (payload.get("weather") or [{}])[0]
    visibility = payload.get("visibility")
    return CurrentWeather(
        temperature=round(main.get("temp", 0.0)),
        feels_like=round(main.get("feels_like", 0.0)),
        humidity=int(main.get("humidity", 0)),
        pressure=int(main.get("pressure", 0)),
        wind_speed=float(wind.get("speed", 0.0)),
        wind_direction=wind.get("deg"),
        cloudiness=int(payload.get("clouds", {}).get("all", 0)),
        visibility_km=visibility / 1000 if visibility else None,
        description=condition.get("description", ""),
        icon=condition.get("icon", ""),
        location=payload.get("name", ""),
        country=payload.get("sys", {}).get("country", ""),
    )


def _upstream_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return "Failed to fetch weather data"


def _group_by_day(entries: List[Dict[str, Any]]) -> List[DailyForecast]:
    buckets: Dict[date, List[Dict[str, Any]]] = {}
    for entry in entries:
        day = datetime.fromtimestamp(entry["dt"], tz=timezone.utc).date()
        buckets.setdefault(day, []).append(entry)

    forecasts: List[DailyForecast] = []
    for day, items in buckets.items():
        mains = [item.get("main", {}) for item in items]
        descriptions = Counter(
            (item.get("weather") or [{}])[0].get("description", "") for item in items
        )
        forecasts.append(
            DailyForecast(
                day=day,
                description=descriptions.most_common(1)[0][0],
                temperature_min=round(min(m.get("temp_min", m.get("temp", 0.0)) for m in mains)),
                temperature_max=round(max(m.get("temp_max", m.get("temp", 0.0)) for m in mains)),
                humidity=round(sum(m.get("humidity", 0) for m in mains) / len(mains)),
                wind_speed=round(
                    sum(item.get("wind", {}).get("speed", 0.0) for item in items) / len(items), 1
                ),
                cloudiness=round(
                    sum(item.get("clouds", {}).get("all", 0) for item in items) / len(items)
                ),
            )
        )
    return forecasts


def build_default_weather_client() -> WeatherClient:
    settings = get_settings()
    return WeatherClient(
        api_key=settings.weather_api_key,
        base_url=settings.weather_base_url,
        timeout=settings.weather_timeout,
    )
