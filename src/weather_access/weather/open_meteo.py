"""Open-Meteo geocoding, forecast, historical and marine sources."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from ..exceptions import SchemaError, UpstreamRequestError
from .base import UpstreamSource
from .models import (
    CurrentReading,
    ForecastBundle,
    HistoricalReading,
    Location,
    MarineReading,
    TimeSeries,
)

CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "apparent_temperature",
    "is_day",
    "precipitation",
    "weather_code",
    "cloud_cover",
    "wind_speed_10m",
    "wind_direction_10m",
    "pressure_msl",
    "visibility",
    "uv_index",
)
FORECAST_HOURLY_FIELDS = (
    "temperature_2m",
    "weather_code",
    "is_day",
    "precipitation_probability",
    "wind_speed_10m",
)
FORECAST_DAILY_FIELDS = (
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "sunrise",
    "sunset",
    "precipitation_sum",
    "wind_speed_10m_max",
    "uv_index_max",
)
HISTORICAL_HOURLY_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation",
    "weather_code",
    "wind_speed_10m",
)
HISTORICAL_DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "weather_code",
)
MARINE_HOURLY_FIELDS = (
    "wave_height",
    "wave_direction",
    "wave_period",
    "wind_wave_height",
    "swell_wave_height",
)
MARINE_DAILY_FIELDS = (
    "wave_height_max",
    "wave_direction_dominant",
    "wave_period_max",
)

# Upstream variable name -> CurrentReading attribute.
_CURRENT_ATTRS = {
    "temperature_2m": "temperature",
    "relative_humidity_2m": "relative_humidity",
    "apparent_temperature": "apparent_temperature",
    "is_day": "is_day",
    "precipitation": "precipitation",
    "weather_code": "weather_code",
    "cloud_cover": "cloud_cover",
    "wind_speed_10m": "wind_speed",
    "wind_direction_10m": "wind_direction",
    "pressure_msl": "pressure_msl",
    "visibility": "visibility",
    "uv_index": "uv_index",
}

# Keys inside a data block that are not series.
_NON_SERIES_KEYS = {"time", "interval"}


def _as_str(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _utc_offset(payload: dict[str, Any]) -> timezone:
    offset = payload.get("utc_offset_seconds", 0)
    if not isinstance(offset, (int, float)) or isinstance(offset, bool):
        offset = 0
    return timezone(timedelta(seconds=int(offset)))


def _parse_time(value: Any, tz: timezone, *, endpoint: str) -> datetime:
    """Parse Open-Meteo's local ISO8601 timestamps (e.g. 2024-07-01T13:00)."""
    if not isinstance(value, str):
        raise SchemaError(f"Expected ISO8601 time string, got {value!r}.", endpoint=endpoint)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise SchemaError(f"Unparseable time value {value!r}.", endpoint=endpoint) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _required_block(payload: dict[str, Any], name: str, *, endpoint: str) -> dict[str, Any]:
    block = payload.get(name)
    if not isinstance(block, dict):
        raise SchemaError(f"Missing '{name}' block in response.", endpoint=endpoint)
    return block


def _units(payload: dict[str, Any], name: str) -> dict[str, str]:
    raw = payload.get(f"{name}_units")
    if not isinstance(raw, dict):
        return {}
    return {
        key: value
        for key, value in raw.items()
        if key not in _NON_SERIES_KEYS and isinstance(value, str)
    }


def _time_series(
    block: dict[str, Any],
    units: dict[str, str],
    tz: timezone,
    *,
    endpoint: str,
    label: str,
) -> TimeSeries:
    times = block.get("time")
    if not isinstance(times, list):
        raise SchemaError(f"'{label}.time' must be a list.", endpoint=endpoint)
    series: dict[str, Any] = {}
    for name, values in block.items():
        if name in _NON_SERIES_KEYS:
            continue
        if not isinstance(values, list):
            raise SchemaError(f"'{label}.{name}' must be a list.", endpoint=endpoint)
        series[name] = values
    try:
        return TimeSeries(
            time=[_parse_time(value, tz, endpoint=endpoint) for value in times],
            series=series,
            units=units,
        )
    except ValidationError as exc:
        raise SchemaError(
            f"Invalid '{label}' series: {exc.errors()[0].get('msg', 'validation failed')}",
            endpoint=endpoint,
        ) from exc


def location_params(location: Location) -> dict[str, Any]:
    return {"latitude": location.latitude, "longitude": location.longitude}


class GeocodingSource(UpstreamSource):
    """Name search -> ordered candidate locations."""

    source_name = "geocoding"

    @staticmethod
    def params_for(query: str, *, count: int = 5, language: str = "en") -> dict[str, Any]:
        return {"name": query, "count": count, "language": language, "format": "json"}

    def normalize(self, payload: dict[str, Any]) -> list[Location]:
        """Return candidates in upstream order; an empty list means no match.

        Any candidate missing `name`, `latitude` or `longitude` rejects the
        whole response.
        """
        results = payload.get("results")
        if results is None:
            return []
        if not isinstance(results, list):
            raise SchemaError("'results' must be a list.", endpoint=self.endpoint)

        locations: list[Location] = []
        for index, item in enumerate(results):
            if not isinstance(item, dict):
                raise SchemaError(f"results[{index}] is not an object.", endpoint=self.endpoint)
            name = _as_str(item.get("name"))
            latitude = item.get("latitude")
            longitude = item.get("longitude")
            if name is None or latitude is None or longitude is None:
                raise SchemaError(
                    f"results[{index}] is missing name/latitude/longitude.",
                    endpoint=self.endpoint,
                )
            try:
                locations.append(
                    Location(
                        name=name,
                        country=_as_str(item.get("country")),
                        admin_region=_as_str(item.get("admin1")),
                        latitude=latitude,
                        longitude=longitude,
                        timezone=_as_str(item.get("timezone")),
                    )
                )
            except ValidationError as exc:
                raise SchemaError(
                    f"results[{index}] has invalid coordinates.", endpoint=self.endpoint
                ) from exc
        return locations


class ForecastSource(UpstreamSource):
    """Current conditions plus hourly and daily forecast."""

    source_name = "forecast"

    @staticmethod
    def params_for(location: Location, *, forecast_days: int = 7) -> dict[str, Any]:
        return {
            **location_params(location),
            "current": ",".join(CURRENT_FIELDS),
            "hourly": ",".join(FORECAST_HOURLY_FIELDS),
            "daily": ",".join(FORECAST_DAILY_FIELDS),
            "timezone": "auto",
            "forecast_days": forecast_days,
        }

    def normalize(self, payload: dict[str, Any]) -> ForecastBundle:
        tz = _utc_offset(payload)
        current_block = _required_block(payload, "current", endpoint=self.endpoint)
        hourly_block = _required_block(payload, "hourly", endpoint=self.endpoint)
        daily_block = _required_block(payload, "daily", endpoint=self.endpoint)

        current_units = _units(payload, "current")
        try:
            current = CurrentReading(
                time=_parse_time(current_block.get("time"), tz, endpoint=self.endpoint),
                units={
                    _CURRENT_ATTRS[key]: unit
                    for key, unit in current_units.items()
                    if key in _CURRENT_ATTRS
                },
                **{
                    attr: current_block.get(key)
                    for key, attr in _CURRENT_ATTRS.items()
                    if key in current_block
                },
            )
        except ValidationError as exc:
            raise SchemaError(
                f"Invalid 'current' block: {exc.errors()[0].get('msg', 'validation failed')}",
                endpoint=self.endpoint,
            ) from exc

        hourly = _time_series(
            hourly_block, _units(payload, "hourly"), tz, endpoint=self.endpoint, label="hourly"
        )
        daily = _time_series(
            daily_block, _units(payload, "daily"), tz, endpoint=self.endpoint, label="daily"
        )
        if len(daily) == 0:
            raise SchemaError("'daily' block has no entries.", endpoint=self.endpoint)
        return ForecastBundle(
            current=current,
            hourly=hourly,
            daily=daily,
            timezone=_as_str(payload.get("timezone")),
        )


class HistoricalSource(UpstreamSource):
    """Observed hourly/daily weather for a past date range."""

    source_name = "historical"

    @staticmethod
    def params_for(location: Location, start: date, end: date) -> dict[str, Any]:
        return {
            **location_params(location),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "hourly": ",".join(HISTORICAL_HOURLY_FIELDS),
            "daily": ",".join(HISTORICAL_DAILY_FIELDS),
            "timezone": "auto",
        }

    def normalize(self, payload: dict[str, Any]) -> HistoricalReading:
        tz = _utc_offset(payload)
        hourly = _time_series(
            _required_block(payload, "hourly", endpoint=self.endpoint),
            _units(payload, "hourly"),
            tz,
            endpoint=self.endpoint,
            label="hourly",
        )
        daily = _time_series(
            _required_block(payload, "daily", endpoint=self.endpoint),
            _units(payload, "daily"),
            tz,
            endpoint=self.endpoint,
            label="daily",
        )
        if len(daily) == 0:
            raise SchemaError("'daily' block has no entries.", endpoint=self.endpoint)
        return HistoricalReading(
            start_date=daily.time[0].date(),
            end_date=daily.time[-1].date(),
            hourly=hourly,
            daily=daily,
        )


class MarineSource(UpstreamSource):
    """Wave data; returns None for locations without marine coverage."""

    source_name = "marine"

    @staticmethod
    def params_for(location: Location, *, forecast_days: int = 7) -> dict[str, Any]:
        return {
            **location_params(location),
            "hourly": ",".join(MARINE_HOURLY_FIELDS),
            "daily": ",".join(MARINE_DAILY_FIELDS),
            "timezone": "auto",
            "forecast_days": forecast_days,
        }

    @staticmethod
    def is_no_data_error(exc: BaseException) -> bool:
        """True for an upstream 400 explaining there is no marine data here."""
        if not isinstance(exc, UpstreamRequestError) or exc.status_code != 400:
            return False
        reason = (exc.reason or "").lower()
        return "no data" in reason

    def normalize(self, payload: dict[str, Any]) -> MarineReading | None:
        hourly_block = payload.get("hourly")
        if hourly_block is None:
            return None
        if not isinstance(hourly_block, dict):
            raise SchemaError("'hourly' must be an object.", endpoint=self.endpoint)

        tz = _utc_offset(payload)
        hourly = _time_series(
            hourly_block, _units(payload, "hourly"), tz, endpoint=self.endpoint, label="hourly"
        )
        if len(hourly) == 0 or all(
            value is None for values in hourly.series.values() for value in values
        ):
            return None

        daily: TimeSeries | None = None
        daily_block = payload.get("daily")
        if daily_block is not None:
            if not isinstance(daily_block, dict):
                raise SchemaError("'daily' must be an object.", endpoint=self.endpoint)
            daily = _time_series(
                daily_block, _units(payload, "daily"), tz, endpoint=self.endpoint, label="daily"
            )
        return MarineReading(hourly=hourly, daily=daily)
