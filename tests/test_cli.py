"""CLI tests with the orchestrator replaced by a scripted fake."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from weather_access import cli
from weather_access.errors import ErrorClassifier
from weather_access.exceptions import InputValidationError, LocationNotFoundError
from weather_access.orchestrator import FetchState, SnapshotUpdate
from weather_access.weather.models import (
    CurrentReading,
    Location,
    TimeSeries,
    ViewKind,
    WeatherSnapshot,
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("RETRY_MAX_ATTEMPTS", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


def _snapshot(name: str = "Springfield") -> WeatherSnapshot:
    observed = datetime(2026, 10, 19, 17, 0, tzinfo=UTC)
    return WeatherSnapshot(
        location=Location(
            name=name,
            country="United States",
            admin_region="Illinois",
            latitude=39.80172,
            longitude=-89.64371,
        ),
        views=[ViewKind.CURRENT],
        current=CurrentReading(
            time=observed, temperature=14.2, weather_code=2, units={"temperature": "°C"}
        ),
        hourly=TimeSeries(time=[observed], series={"temperature_2m": [14.2]}),
        daily=TimeSeries(time=[observed], series={"weather_code": [2]}),
        fetched_at=observed,
    )


def _fake_orchestrator(updates: list[SnapshotUpdate]) -> type:
    class _FakeOrchestrator:
        targets: list[Any] = []
        closed = False

        @classmethod
        def create(cls, settings: Any, logger: Any = None) -> _FakeOrchestrator:
            return cls()

        async def subscribe(self, target: Any, view: Any, callback: Any) -> None:
            type(self).targets.append((target, view))
            for update in updates:
                callback(update)

        async def aclose(self) -> None:
            type(self).closed = True

    return _FakeOrchestrator


def _args(*argv: str) -> Any:
    return cli.parse_args(list(argv))


def test_validate_cli_input_accepts_query_or_coordinates() -> None:
    assert cli._validate_cli_input(_args("--query", "Springfield")) == "Springfield"
    location = cli._validate_cli_input(_args("--lat", "42.06", "--lon", "-70.18"))
    assert isinstance(location, Location)
    assert location.name == "My Location"
    assert location.latitude == 42.06


@pytest.mark.parametrize(
    ("argv", "match"),
    [
        ([], "Missing location input"),
        (["--lat", "42.0"], "Missing location input"),
        (["--query", "Paris", "--lat", "1", "--lon", "2"], "either --query"),
        (["--query", "Paris", "--max-rows", "0"], "--max-rows"),
        (["--lat", "91", "--lon", "0"], "[Ll]atitude"),
    ],
)
def test_validate_cli_input_rejects_bad_combinations(argv: list[str], match: str) -> None:
    with pytest.raises(InputValidationError, match=match):
        cli._validate_cli_input(_args(*argv))


def test_main_returns_2_on_bad_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RETRY_MAX_ATTEMPTS", "0")
    assert cli.main(["--query", "Springfield"]) == 2


def test_main_returns_4_on_invalid_input() -> None:
    assert cli.main(["--max-rows", "0", "--query", "Springfield"]) == 4


def test_main_prints_current_view(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fake = _fake_orchestrator(
        [
            SnapshotUpdate(key="k", view=ViewKind.CURRENT, state=FetchState.LOADING),
            SnapshotUpdate(
                key="k", view=ViewKind.CURRENT, state=FetchState.SUCCESS, snapshot=_snapshot()
            ),
        ]
    )
    monkeypatch.setattr(cli, "DataOrchestrator", fake)

    assert cli.main(["--query", "Springfield", "--view", "current"]) == 0

    output = capsys.readouterr().out
    assert "Springfield, Illinois" in output
    assert "Current Conditions" in output
    assert "Partly cloudy" in output
    assert fake.targets == [("Springfield", ViewKind.CURRENT)]
    assert fake.closed is True


def test_main_marks_stale_output(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fake = _fake_orchestrator(
        [
            SnapshotUpdate(
                key="k",
                view=ViewKind.DAILY,
                state=FetchState.STALE,
                snapshot=_snapshot(),
                stale=True,
            )
        ]
    )
    monkeypatch.setattr(cli, "DataOrchestrator", fake)

    assert cli.main(["--lat", "39.8", "--lon", "-89.6", "--view", "daily"]) == 0
    output = capsys.readouterr().out
    assert "out of date" in output
    assert "Forecast" in output


def test_main_returns_4_with_user_message_on_failure(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    record = ErrorClassifier().classify(LocationNotFoundError("none", query="Atlantis"))
    fake = _fake_orchestrator(
        [SnapshotUpdate(key=None, view=ViewKind.CURRENT, state=FetchState.FAILED, error=record)]
    )
    monkeypatch.setattr(cli, "DataOrchestrator", fake)

    assert cli.main(["--query", "Atlantis"]) == 4
    assert "Location not found." in capsys.readouterr().out


def test_main_prints_location_names_containing_markup_literally(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    fake = _fake_orchestrator(
        [
            SnapshotUpdate(
                key="k",
                view=ViewKind.CURRENT,
                state=FetchState.SUCCESS,
                snapshot=_snapshot(name="Spring[/]field"),
            )
        ]
    )
    monkeypatch.setattr(cli, "DataOrchestrator", fake)

    assert cli.main(["--query", "Springfield"]) == 0
    assert "Spring[/]field" in capsys.readouterr().out
