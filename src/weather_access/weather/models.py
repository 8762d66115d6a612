"""Typed models for locations and normalized weather snapshots."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors.models import ErrorRecord
from ..validation import validate_coordinates

COORDINATE_PRECISION = 4

# WMO weather interpretation codes as reported by Open-Meteo.
WEATHER_CODE_DESCRIPTIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Rime fog",
    51: "Light drizzle",
    53: "Drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Rain showers",
    81: "Rain showers",
    82: "Heavy rain showers",
    85: "Snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with hail",
    99: "Heavy thunderstorm",
}


def describe_weather_code(code: int | float | None) -> str:
    if code is None:
        return "Unknown"
    return WEATHER_CODE_DESCRIPTIONS.get(int(code), "Unknown")


class ViewKind(StrEnum):
    """UI views that consume snapshots."""

    CURRENT = "current"
    HOURLY = "hourly"
    DAILY = "daily"
    HISTORICAL = "historical"
    MARINE = "marine"


SectionStatus = Literal["present", "absent", "failed", "not_requested"]


def location_key(latitude: float, longitude: float) -> str:
    """Stable identity key: coordinates rounded to a fixed precision."""
    # -0.0 + 0.0 is 0.0: values rounding to zero from either side share a key.
    lat = round(latitude, COORDINATE_PRECISION) + 0.0
    lon = round(longitude, COORDINATE_PRECISION) + 0.0
    return f"{lat:.{COORDINATE_PRECISION}f},{lon:.{COORDINATE_PRECISION}f}"


class Location(BaseModel):
    """Canonical, immutable location record."""

    model_config = ConfigDict(frozen=True)

    name: str
    country: str | None = None
    admin_region: str | None = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timezone: str | None = None

    @property
    def key(self) -> str:
        return location_key(self.latitude, self.longitude)

    @property
    def label(self) -> str:
        parts = [self.name]
        if self.admin_region and self.admin_region != self.name:
            parts.append(self.admin_region)
        if self.country:
            parts.append(self.country)
        return ", ".join(parts)

    @classmethod
    def from_coordinates(
        cls, latitude: float, longitude: float, *, name: str = "My Location"
    ) -> Location:
        """Build a location from raw coordinates (e.g. device geolocation)."""
        validate_coordinates(latitude, longitude)
        return cls(name=name, latitude=float(latitude), longitude=float(longitude))


class TimeSeries(BaseModel):
    """Parallel arrays sharing one time index."""

    model_config = ConfigDict(frozen=True)

    time: list[datetime]
    series: dict[str, list[float | str | None]] = Field(default_factory=dict)
    units: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_alignment(self) -> TimeSeries:
        expected = len(self.time)
        for name, values in self.series.items():
            if len(values) != expected:
                raise ValueError(
                    f"Series '{name}' has {len(values)} values; expected {expected}."
                )
        return self

    def __len__(self) -> int:
        return len(self.time)

    def column(self, name: str) -> list[float | str | None]:
        return list(self.series.get(name, [None] * len(self.time)))

    def row(self, index: int) -> dict[str, Any]:
        row: dict[str, Any] = {"time": self.time[index]}
        for name, values in self.series.items():
            row[name] = values[index]
        return row


class CurrentReading(BaseModel):
    """Latest observation for a location."""

    model_config = ConfigDict(frozen=True)

    time: datetime
    temperature: float | None = None
    apparent_temperature: float | None = None
    relative_humidity: float | None = None
    is_day: bool | None = None
    precipitation: float | None = None
    weather_code: int | None = None
    cloud_cover: float | None = None
    wind_speed: float | None = None
    wind_direction: float | None = None
    pressure_msl: float | None = None
    visibility: float | None = None
    uv_index: float | None = None
    units: dict[str, str] = Field(default_factory=dict)

    @property
    def condition(self) -> str:
        return describe_weather_code(self.weather_code)


class MarineReading(BaseModel):
    """Wave height/period/direction series for a coastal location."""

    model_config = ConfigDict(frozen=True)

    hourly: TimeSeries
    daily: TimeSeries | None = None


class HistoricalReading(BaseModel):
    """Observed weather for a past date range."""

    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    hourly: TimeSeries
    daily: TimeSeries


class ForecastBundle(BaseModel):
    """Normalized forecast collaborator response."""

    model_config = ConfigDict(frozen=True)

    current: CurrentReading
    hourly: TimeSeries
    daily: TimeSeries
    timezone: str | None = None


class WeatherSnapshot(BaseModel):
    """Merged result of one orchestration cycle for a location."""

    model_config = ConfigDict(frozen=True)

    location: Location
    views: list[ViewKind]
    current: CurrentReading
    hourly: TimeSeries
    daily: TimeSeries
    marine: MarineReading | None = None
    marine_status: SectionStatus = "not_requested"
    historical: HistoricalReading | None = None
    historical_status: SectionStatus = "not_requested"
    partial_errors: list[ErrorRecord] = Field(default_factory=list)
    timezone: str | None = None
    fetched_at: datetime
