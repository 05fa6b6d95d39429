"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models.records import (
    CURRENT_CHANNELS,
    VOLTAGE_CHANNELS,
    Device,
    DeviceSummary,
    Measurements,
    Phasor,
    Reading,
    ReadingRecord,
    check_channels,
)
from services.aggregator import ReadingSummary
from services.fanout import DeviceStats
from services.readings import DeviceView
from services.series import ChartPoint
from services.weather import CurrentWeather, DailyForecast, Forecast


class PhasorModel(BaseModel):
    """One ``{channel, magnitude, angle}`` phasor."""

    model_config = ConfigDict(from_attributes=True)

    channel: str = Field(..., min_length=1)
    magnitude: float
    angle: float


class MeasurementsModel(BaseModel):
    """Measurement bundle; channels may be omitted but not repeated."""

    model_config = ConfigDict(from_attributes=True)

    voltage_phasors: List[PhasorModel] = Field(default_factory=list)
    current_phasors: List[PhasorModel] = Field(default_factory=list)
    frequency: float

    @model_validator(mode="after")
    def _check_channels(self) -> "MeasurementsModel":
        check_channels(self.voltage_phasors, VOLTAGE_CHANNELS, "voltage")
        check_channels(self.current_phasors, CURRENT_CHANNELS, "current")
        return self

    def to_domain(self) -> Measurements:
        return Measurements(
            voltage_phasors=tuple(Phasor(**p.model_dump()) for p in self.voltage_phasors),
            current_phasors=tuple(Phasor(**p.model_dump()) for p in self.current_phasors),
            frequency=self.frequency,
        )


class ReadingCreate(BaseModel):
    device_id: str = Field(..., min_length=1)
    measurements: MeasurementsModel
    timestamp: Optional[datetime] = Field(
        default=None, description="Defaults to the ingestion time when omitted."
    )


class ReadingUpdate(BaseModel):
    """Full replacement of a reading; there is no partial update."""

    device_id: str = Field(..., min_length=1)
    measurements: MeasurementsModel
    timestamp: datetime


class LocationModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    longitude: float = Field(..., ge=-180, le=180)
    latitude: float = Field(..., ge=-90, le=90)


class DeviceSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    substation: str
    location: LocationModel


class DeviceOut(DeviceSummaryOut):
    created_at: datetime


class ReadingOut(BaseModel):
    id: str
    device_id: str
    timestamp: datetime
    measurements: MeasurementsModel
    device: Optional[DeviceSummaryOut] = None

    @classmethod
    def from_domain(
        cls, reading: Reading, device: Optional[DeviceSummary] = None
    ) -> "ReadingOut":
        return cls(
            id=reading.id,
            device_id=reading.device_id,
            timestamp=reading.timestamp,
            measurements=MeasurementsModel.model_validate(reading.measurements),
            device=DeviceSummaryOut.model_validate(device) if device is not None else None,
        )

    @classmethod
    def from_record(cls, record: ReadingRecord) -> "ReadingOut":
        return cls.from_domain(record.reading, record.device)


class DeviceReadingsResponse(BaseModel):
    device: DeviceOut
    sensor_data: List[ReadingOut]
    total_records: int = Field(..., ge=0)


class DeviceLatestResponse(BaseModel):
    device: DeviceOut
    latest_reading: Optional[ReadingOut] = None
    has_data: bool


class DeviceStatsOut(DeviceOut):
    reading_count: int = Field(..., ge=0)
    latest_timestamp: Optional[datetime] = None
    latest_frequency: Optional[float] = None
    is_online: bool
    degraded: bool = Field(
        default=False, description="True when the device's lookup failed or timed out."
    )

    @classmethod
    def from_domain(cls, stats: DeviceStats) -> "DeviceStatsOut":
        device: Device = stats.device
        return cls(
            id=device.id,
            name=device.name,
            substation=device.substation,
            location=LocationModel.model_validate(device.location),
            created_at=device.created_at,
            reading_count=stats.reading_count,
            latest_timestamp=stats.latest_timestamp,
            latest_frequency=stats.latest_frequency,
            is_online=stats.is_online,
            degraded=stats.degraded,
        )


class ChartPointOut(BaseModel):
    timestamp: datetime
    frequency: float
    va: Optional[float] = None
    vb: Optional[float] = None
    vc: Optional[float] = None
    ia: Optional[float] = None
    ib: Optional[float] = None
    ic: Optional[float] = None

    @classmethod
    def from_domain(cls, point: ChartPoint) -> "ChartPointOut":
        channels = {channel.lower(): value for channel, value in point.magnitudes.items()}
        return cls(timestamp=point.timestamp, frequency=point.frequency, **channels)


class SummaryOut(BaseModel):
    """Statistics over the whole filtered set; every field is null when it is empty."""

    reading_count: int = Field(..., ge=0)
    avg_frequency: Optional[float] = None
    min_frequency: Optional[float] = None
    max_frequency: Optional[float] = None
    avg_voltage: Optional[float] = None
    avg_current: Optional[float] = None
    latest_reading: Optional[ReadingOut] = None

    @classmethod
    def from_domain(cls, summary: ReadingSummary) -> "SummaryOut":
        return cls(
            reading_count=summary.reading_count,
            avg_frequency=summary.avg_frequency,
            min_frequency=summary.min_frequency,
            max_frequency=summary.max_frequency,
            avg_voltage=summary.avg_voltage,
            avg_current=summary.avg_current,
            latest_reading=(
                ReadingOut.from_domain(summary.latest) if summary.latest is not None else None
            ),
        )


class PageOut(BaseModel):
    items: List[ReadingOut]
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class DeviceViewResponse(BaseModel):
    device: DeviceOut
    range: Optional[str] = Field(
        default=None, description="Parsed range token; null when the token was not recognised."
    )
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    total_readings: int = Field(..., ge=0)
    filtered_count: int = Field(..., ge=0)
    max_points: int = Field(..., ge=1)
    chart: List[ChartPointOut]
    table: PageOut
    summary: SummaryOut

    @classmethod
    def from_domain(cls, view: DeviceView) -> "DeviceViewResponse":
        return cls(
            device=DeviceOut.model_validate(view.device),
            range=view.range.value if view.range is not None else None,
            window_start=view.window.start if view.window is not None else None,
            window_end=view.window.end if view.window is not None else None,
            total_readings=view.total_readings,
            filtered_count=view.filtered_count,
            max_points=view.max_points,
            chart=[ChartPointOut.from_domain(point) for point in view.chart],
            table=PageOut(
                items=[ReadingOut.from_domain(reading) for reading in view.page.items],
                page=view.page.page,
                page_size=view.page.page_size,
                total_items=view.page.total_items,
                total_pages=view.page.total_pages,
            ),
            summary=SummaryOut.from_domain(view.summary),
        )


class MessageResponse(BaseModel):
    message: str


class CurrentWeatherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    temperature: int
    feels_like: int
    humidity: int
    pressure: int
    wind_speed: float
    wind_direction: Optional[int] = None
    cloudiness: int
    visibility_km: Optional[float] = None
    description: str
    icon: str
    location: str
    country: str


class DailyForecastOut(BaseModel):
    day: date
    day_of_week: str
    description: str
    temperature_min: int
    temperature_max: int
    humidity: int
    wind_speed: float
    cloudiness: int

    @classmethod
    def from_domain(cls, forecast: DailyForecast) -> "DailyForecastOut":
        return cls(
            day=forecast.day,
            day_of_week=forecast.day_of_week,
            description=forecast.description,
            temperature_min=forecast.temperature_min,
            temperature_max=forecast.temperature_max,
            humidity=forecast.humidity,
            wind_speed=forecast.wind_speed,
            cloudiness=forecast.cloudiness,
        )


class ForecastOut(BaseModel):
    location: str
    country: str
    forecasts: List[DailyForecastOut]

    @classmethod
    def from_domain(cls, forecast: Forecast) -> "ForecastOut":
        return cls(
            location=forecast.location,
            country=forecast.country,
            forecasts=[DailyForecastOut.from_domain(day) for day in forecast.days],
        )


class WeatherResponse(BaseModel):
    success: bool = True
    data: CurrentWeatherOut

    @classmethod
    def from_domain(cls, weather: CurrentWeather) -> "WeatherResponse":
        return cls(data=CurrentWeatherOut.model_validate(weather))


class ForecastResponse(BaseModel):
    success: bool = True
    data: ForecastOut
