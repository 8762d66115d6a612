"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from weather_access.config import Settings, load_settings
from weather_access.exceptions import ConfigError


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "OPEN_METEO_API_KEY",
        "FORECAST_BASE_URL",
        "WEATHER_CACHE_TTL_SECONDS",
        "WEATHER_STALE_AFTER_SECONDS",
        "RETRY_MAX_ATTEMPTS",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults_point_at_open_meteo() -> None:
    settings = Settings(_env_file=None)
    assert settings.geocoding_base_url == "https://geocoding-api.open-meteo.com/v1/search"
    assert settings.forecast_base_url == "https://api.open-meteo.com/v1/forecast"
    assert settings.marine_base_url == "https://marine-api.open-meteo.com/v1/marine"
    assert settings.open_meteo_api_key is None
    assert settings.retry_max_attempts == 3
    assert settings.retry_base_delay_seconds == 1.0
    assert settings.weather_cache_ttl_seconds == 600
    assert settings.weather_stale_after_seconds == 300
    assert settings.query_max_length == 100


def test_env_overrides_and_normalization(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORECAST_BASE_URL", "https://forecast.test/v1/forecast/")
    monkeypatch.setenv("OPEN_METEO_API_KEY", "   ")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)
    assert settings.forecast_base_url == "https://forecast.test/v1/forecast"
    assert settings.open_meteo_api_key is None
    assert settings.log_level == "DEBUG"


def test_stale_window_must_be_inside_ttl(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEATHER_CACHE_TTL_SECONDS", "600")
    monkeypatch.setenv("WEATHER_STALE_AFTER_SECONDS", "900")

    with pytest.raises(ConfigError, match="WEATHER_STALE_AFTER_SECONDS"):
        load_settings()


def test_invalid_retry_attempts_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "0")
    with pytest.raises(ConfigError, match="RETRY_MAX_ATTEMPTS"):
        load_settings()


def test_safe_summary_never_contains_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPEN_METEO_API_KEY", "commercial-key-123")

    settings = load_settings()
    summary = settings.safe_summary()

    assert settings.open_meteo_api_key == "commercial-key-123"
    assert summary["api_key_configured"] is True
    assert "commercial-key-123" not in str(summary)
    assert "commercial-key-123" not in repr(settings)
