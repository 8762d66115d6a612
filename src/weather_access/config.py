"""Typed settings loader for the weather access layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    geocoding_base_url: str = Field(
        default="https://geocoding-api.open-meteo.com/v1/search",
        alias="GEOCODING_BASE_URL",
    )
    forecast_base_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="FORECAST_BASE_URL",
    )
    historical_base_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="HISTORICAL_BASE_URL",
    )
    marine_base_url: str = Field(
        default="https://marine-api.open-meteo.com/v1/marine",
        alias="MARINE_BASE_URL",
    )
    open_meteo_api_key: str | None = Field(default=None, alias="OPEN_METEO_API_KEY", repr=False)
    http_user_agent: str = Field(default="weather-access/0.1", alias="HTTP_USER_AGENT")
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")

    retry_max_attempts: int = Field(default=3, alias="RETRY_MAX_ATTEMPTS")
    retry_base_delay_seconds: float = Field(default=1.0, alias="RETRY_BASE_DELAY_SECONDS")

    weather_cache_ttl_seconds: int = Field(default=600, alias="WEATHER_CACHE_TTL_SECONDS")
    weather_stale_after_seconds: int = Field(default=300, alias="WEATHER_STALE_AFTER_SECONDS")
    location_cache_ttl_seconds: int = Field(default=86400, alias="LOCATION_CACHE_TTL_SECONDS")
    location_stale_after_seconds: int = Field(
        default=43200,
        alias="LOCATION_STALE_AFTER_SECONDS",
    )
    cache_max_entries: int = Field(default=256, alias="CACHE_MAX_ENTRIES")

    query_max_length: int = Field(default=100, alias="QUERY_MAX_LENGTH")
    query_min_length: int = Field(default=2, alias="QUERY_MIN_LENGTH")
    search_debounce_seconds: float = Field(default=0.3, alias="SEARCH_DEBOUNCE_SECONDS")
    geocoding_result_count: int = Field(default=5, alias="GEOCODING_RESULT_COUNT")
    geocoding_language: str = Field(default="en", alias="GEOCODING_LANGUAGE")

    forecast_days: int = Field(default=7, alias="FORECAST_DAYS")
    historical_days: int = Field(default=7, alias="HISTORICAL_DAYS")

    error_feed_max_events: int = Field(default=50, alias="ERROR_FEED_MAX_EVENTS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: Literal["json", "rich"] = Field(default="json", alias="LOG_FORMAT")

    @field_validator("open_meteo_api_key", mode="before")
    @classmethod
    def empty_string_to_none(cls, value: Any) -> Any:
        """Treat an empty env-string API key as unset."""
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator(
        "geocoding_base_url",
        "forecast_base_url",
        "historical_base_url",
        "marine_base_url",
        mode="after",
    )
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return value.strip().rstrip("/")

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @model_validator(mode="after")
    def validate_limits(self) -> Settings:
        """Validate numeric limits and cross-field constraints."""
        for name, url in (
            ("GEOCODING_BASE_URL", self.geocoding_base_url),
            ("FORECAST_BASE_URL", self.forecast_base_url),
            ("HISTORICAL_BASE_URL", self.historical_base_url),
            ("MARINE_BASE_URL", self.marine_base_url),
        ):
            if not url.startswith(("http://", "https://")):
                raise ValueError(f"{name} must be an http(s) URL.")
        if not self.http_user_agent.strip():
            raise ValueError("HTTP_USER_AGENT must not be empty.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.retry_max_attempts <= 0:
            raise ValueError("RETRY_MAX_ATTEMPTS must be > 0.")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if self.weather_cache_ttl_seconds <= 0:
            raise ValueError("WEATHER_CACHE_TTL_SECONDS must be > 0.")
        if not (0 < self.weather_stale_after_seconds < self.weather_cache_ttl_seconds):
            raise ValueError(
                "WEATHER_STALE_AFTER_SECONDS must be > 0 and less than "
                "WEATHER_CACHE_TTL_SECONDS."
            )
        if self.location_cache_ttl_seconds <= 0:
            raise ValueError("LOCATION_CACHE_TTL_SECONDS must be > 0.")
        if not (0 < self.location_stale_after_seconds < self.location_cache_ttl_seconds):
            raise ValueError(
                "LOCATION_STALE_AFTER_SECONDS must be > 0 and less than "
                "LOCATION_CACHE_TTL_SECONDS."
            )
        if self.cache_max_entries <= 0:
            raise ValueError("CACHE_MAX_ENTRIES must be > 0.")
        if self.query_max_length <= 0:
            raise ValueError("QUERY_MAX_LENGTH must be > 0.")
        if not (1 <= self.query_min_length <= self.query_max_length):
            raise ValueError("QUERY_MIN_LENGTH must be between 1 and QUERY_MAX_LENGTH.")
        if self.search_debounce_seconds < 0:
            raise ValueError("SEARCH_DEBOUNCE_SECONDS must be >= 0.")
        if not (1 <= self.geocoding_result_count <= 100):
            raise ValueError("GEOCODING_RESULT_COUNT must be between 1 and 100.")
        if not (1 <= self.forecast_days <= 16):
            raise ValueError("FORECAST_DAYS must be between 1 and 16.")
        if self.historical_days <= 0:
            raise ValueError("HISTORICAL_DAYS must be > 0.")
        if self.error_feed_max_events <= 0:
            raise ValueError("ERROR_FEED_MAX_EVENTS must be > 0.")
        return self

    def safe_summary(self) -> dict[str, Any]:
        """Return config summary safe for logging (no credentials)."""
        return {
            "geocoding_base_url": self.geocoding_base_url,
            "forecast_base_url": self.forecast_base_url,
            "historical_base_url": self.historical_base_url,
            "marine_base_url": self.marine_base_url,
            "api_key_configured": self.open_meteo_api_key is not None,
            "request_timeout_seconds": self.request_timeout_seconds,
            "retry_max_attempts": self.retry_max_attempts,
            "retry_base_delay_seconds": self.retry_base_delay_seconds,
            "weather_cache_ttl_seconds": self.weather_cache_ttl_seconds,
            "weather_stale_after_seconds": self.weather_stale_after_seconds,
            "location_cache_ttl_seconds": self.location_cache_ttl_seconds,
            "cache_max_entries": self.cache_max_entries,
        }


def load_settings() -> Settings:
    """Load and validate settings, raising ConfigError on failure."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed reading environment/.env: {exc}") from exc
