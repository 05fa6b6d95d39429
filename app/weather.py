"""Weather lookups for device locations, proxied to the external provider."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import ForecastOut, ForecastResponse, WeatherResponse
from errors import UpstreamError, ValidationError
from services.weather import (
    MAX_FORECAST_DAYS,
    WeatherClient,
    build_default_weather_client,
    parse_coordinates,
)

router = APIRouter(prefix="/api/weather", tags=["weather"])


def get_weather_client() -> WeatherClient:
    return build_default_weather_client()


@router.get(
    "",
    response_model=WeatherResponse,
    summary="Current conditions at a coordinate.",
)
async def current_weather(
    lat: Optional[str] = Query(None, description="Latitude in degrees."),
    lon: Optional[str] = Query(None, description="Longitude in degrees."),
    client: WeatherClient = Depends(get_weather_client),
) -> WeatherResponse:
    try:
        latitude, longitude = parse_coordinates(lat, lon)
        weather = await client.current(latitude, longitude)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UpstreamError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return WeatherResponse.from_domain(weather)


@router.get(
    "/forecast",
    response_model=ForecastResponse,
    summary="Daily forecast at a coordinate.",
)
async def weather_forecast(
    lat: Optional[str] = Query(None, description="Latitude in degrees."),
    lon: Optional[str] = Query(None, description="Longitude in degrees."),
    days: int = Query(MAX_FORECAST_DAYS, description="Number of days, 1 to 5."),
    client: WeatherClient = Depends(get_weather_client),
) -> ForecastResponse:
    try:
        latitude, longitude = parse_coordinates(lat, lon)
        forecast = await client.forecast(latitude, longitude, days=days)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UpstreamError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return ForecastResponse(data=ForecastOut.from_domain(forecast))
