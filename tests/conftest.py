"""Shared Open-Meteo payloads and settings for weather access tests."""

from __future__ import annotations

from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest

GEOCODING_URL = "https://geocoding.test/v1/search"
FORECAST_URL = "https://forecast.test/v1/forecast"
HISTORICAL_URL = "https://historical.test/v1/forecast"
MARINE_URL = "https://marine.test/v1/marine"


def make_settings(**overrides: Any) -> Any:
    defaults = {
        "geocoding_base_url": GEOCODING_URL,
        "forecast_base_url": FORECAST_URL,
        "historical_base_url": HISTORICAL_URL,
        "marine_base_url": MARINE_URL,
        "open_meteo_api_key": None,
        "http_user_agent": "weather-access-tests/0.1",
        "request_timeout_seconds": 5.0,
        "retry_max_attempts": 3,
        "retry_base_delay_seconds": 1.0,
        "weather_cache_ttl_seconds": 600,
        "weather_stale_after_seconds": 300,
        "location_cache_ttl_seconds": 86400,
        "location_stale_after_seconds": 43200,
        "cache_max_entries": 256,
        "query_max_length": 100,
        "query_min_length": 2,
        "search_debounce_seconds": 0.3,
        "geocoding_result_count": 5,
        "geocoding_language": "en",
        "forecast_days": 7,
        "historical_days": 7,
        "error_feed_max_events": 50,
        "log_level": "INFO",
        "log_format": "json",
    }
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def geocoding_payload() -> dict[str, Any]:
    return {
        "results": [
            {
                "id": 4250542,
                "name": "Springfield",
                "latitude": 39.80172,
                "longitude": -89.64371,
                "country": "United States",
                "admin1": "Illinois",
                "timezone": "America/Chicago",
            },
            {
                "id": 4409896,
                "name": "Springfield",
                "latitude": 37.21533,
                "longitude": -93.29824,
                "country": "United States",
                "admin1": "Missouri",
                "timezone": "America/Chicago",
            },
            {
                "id": 4951788,
                "name": "Springfield",
                "latitude": 42.10148,
                "longitude": -72.58981,
                "country": "United States",
                "admin1": "Massachusetts",
                "timezone": "America/New_York",
            },
        ],
        "generationtime_ms": 0.9,
    }


def forecast_payload(temperature: float = 14.2) -> dict[str, Any]:
    return {
        "latitude": 39.8,
        "longitude": -89.64,
        "timezone": "America/Chicago",
        "utc_offset_seconds": -18000,
        "current_units": {
            "time": "iso8601",
            "interval": "seconds",
            "temperature_2m": "°C",
            "relative_humidity_2m": "%",
            "wind_speed_10m": "km/h",
        },
        "current": {
            "time": "2026-10-19T12:00",
            "interval": 900,
            "temperature_2m": temperature,
            "relative_humidity_2m": 61,
            "apparent_temperature": 13.1,
            "is_day": 1,
            "precipitation": 0.0,
            "weather_code": 2,
            "cloud_cover": 40,
            "wind_speed_10m": 12.5,
            "wind_direction_10m": 220,
            "pressure_msl": 1016.3,
            "visibility": 24140.0,
            "uv_index": 3.1,
        },
        "hourly_units": {"time": "iso8601", "temperature_2m": "°C"},
        "hourly": {
            "time": ["2026-10-19T00:00", "2026-10-19T01:00", "2026-10-19T02:00"],
            "temperature_2m": [10.1, 9.8, 9.5],
            "weather_code": [0, 1, 2],
            "is_day": [0, 0, 0],
            "precipitation_probability": [0, 5, 10],
            "wind_speed_10m": [5.0, 4.8, 4.2],
        },
        "daily_units": {"time": "iso8601", "temperature_2m_max": "°C"},
        "daily": {
            "time": ["2026-10-19", "2026-10-20"],
            "weather_code": [2, 61],
            "temperature_2m_max": [16.0, 13.4],
            "temperature_2m_min": [8.1, 7.0],
            "sunrise": ["2026-10-19T07:12", "2026-10-20T07:13"],
            "sunset": ["2026-10-19T18:14", "2026-10-20T18:12"],
            "precipitation_sum": [0.0, 4.2],
            "wind_speed_10m_max": [15.1, 20.3],
            "uv_index_max": [3.5, 2.1],
        },
    }


def marine_payload() -> dict[str, Any]:
    return {
        "latitude": 42.1,
        "longitude": -70.2,
        "timezone": "America/New_York",
        "utc_offset_seconds": -14400,
        "hourly_units": {"time": "iso8601", "wave_height": "m"},
        "hourly": {
            "time": ["2026-10-19T00:00", "2026-10-19T01:00"],
            "wave_height": [1.2, 1.3],
            "wave_direction": [180, 185],
            "wave_period": [7.5, 7.8],
            "wind_wave_height": [0.4, 0.5],
            "swell_wave_height": [1.0, 1.1],
        },
        "daily": {
            "time": ["2026-10-19"],
            "wave_height_max": [1.6],
            "wave_direction_dominant": [182],
            "wave_period_max": [8.1],
        },
    }


def inland_marine_payload() -> dict[str, Any]:
    payload = marine_payload()
    payload["hourly"] = {
        "time": ["2026-10-19T00:00", "2026-10-19T01:00"],
        "wave_height": [None, None],
        "wave_direction": [None, None],
        "wave_period": [None, None],
        "wind_wave_height": [None, None],
        "swell_wave_height": [None, None],
    }
    payload.pop("daily")
    return payload


def historical_payload() -> dict[str, Any]:
    days = [f"2026-10-{day:02d}" for day in range(12, 19)]
    return {
        "timezone": "America/Chicago",
        "utc_offset_seconds": -18000,
        "hourly": {
            "time": ["2026-10-12T00:00", "2026-10-12T01:00"],
            "temperature_2m": [9.0, 8.7],
            "relative_humidity_2m": [80, 82],
            "precipitation": [0.0, 0.1],
            "weather_code": [3, 51],
            "wind_speed_10m": [7.0, 6.5],
        },
        "daily": {
            "time": days,
            "temperature_2m_max": [15.0, 16.2, 14.1, 12.9, 13.3, 17.0, 18.4],
            "temperature_2m_min": [6.0, 7.1, 5.5, 4.2, 5.0, 8.3, 9.9],
            "precipitation_sum": [0.0, 0.0, 2.1, 5.4, 0.0, 0.0, 0.3],
            "weather_code": [1, 2, 61, 63, 3, 0, 51],
        },
    }


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Any:
    return make_settings()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def payloads() -> SimpleNamespace:
    builders: dict[str, Callable[..., dict[str, Any]]] = {
        "geocoding": geocoding_payload,
        "forecast": forecast_payload,
        "marine": marine_payload,
        "inland_marine": inland_marine_payload,
        "historical": historical_payload,
    }
    return SimpleNamespace(**builders)
