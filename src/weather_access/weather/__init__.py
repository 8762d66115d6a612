"""Upstream weather sources, location resolution and snapshot fetching."""

from .client import WeatherClient, normalize_views
from .models import (
    CurrentReading,
    ForecastBundle,
    HistoricalReading,
    Location,
    MarineReading,
    TimeSeries,
    ViewKind,
    WeatherSnapshot,
    describe_weather_code,
    location_key,
)
from .open_meteo import ForecastSource, GeocodingSource, HistoricalSource, MarineSource
from .resolver import DebouncedSearch, LocationResolver

__all__ = [
    "CurrentReading",
    "DebouncedSearch",
    "ForecastBundle",
    "ForecastSource",
    "GeocodingSource",
    "HistoricalReading",
    "HistoricalSource",
    "Location",
    "LocationResolver",
    "MarineReading",
    "MarineSource",
    "TimeSeries",
    "ViewKind",
    "WeatherClient",
    "WeatherSnapshot",
    "describe_weather_code",
    "location_key",
]
