"""Terminal consumer: resolve a location and print one weather view."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ConfigError, InputValidationError
from .log_setup import setup_logger
from .orchestrator import DataOrchestrator, FetchState, SnapshotUpdate
from .weather.models import (
    Location,
    TimeSeries,
    ViewKind,
    WeatherSnapshot,
    describe_weather_code,
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch weather for a place or coordinates.")
    parser.add_argument("--query", type=str, default=None, help="Place name to search for.")
    parser.add_argument("--lat", type=float, default=None, help="Latitude.")
    parser.add_argument("--lon", type=float, default=None, help="Longitude.")
    parser.add_argument(
        "--view",
        choices=[view.value for view in ViewKind],
        default=ViewKind.CURRENT.value,
        help="Which view to print.",
    )
    parser.add_argument(
        "--max-rows",
        type=int,
        default=12,
        help="Number of time series rows to print.",
    )
    return parser.parse_args(argv)


def _validate_cli_input(args: argparse.Namespace) -> str | Location:
    if args.max_rows <= 0:
        raise InputValidationError("--max-rows must be > 0.", reason="OutOfRange")
    if args.query is not None:
        if args.lat is not None or args.lon is not None:
            raise InputValidationError(
                "Use either --query or --lat/--lon, not both.", reason="EmptyInput"
            )
        return args.query
    if args.lat is None or args.lon is None:
        raise InputValidationError(
            "Missing location input: pass --query or both --lat and --lon.",
            reason="EmptyInput",
        )
    return Location.from_coordinates(args.lat, args.lon)


def _cell(value: object) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:g}"
    return escape(str(value))


def _print_series(console: Console, title: str, series: TimeSeries, max_rows: int) -> None:
    if len(series) == 0:
        console.print(f"No {title.lower()} data.")
        return
    table = Table(title=title)
    table.add_column("Time")
    names = list(series.series)
    for name in names:
        unit = series.units.get(name)
        table.add_column(f"{name} ({unit})" if unit else name, overflow="fold")
    for index in range(min(max_rows, len(series))):
        row = series.row(index)
        table.add_row(row["time"].isoformat(), *(_cell(row[name]) for name in names))
    console.print(table)


def _print_snapshot(
    console: Console, snapshot: WeatherSnapshot, view: ViewKind, max_rows: int
) -> None:
    console.print(
        f"Location={escape(snapshot.location.label)} "
        f"({snapshot.location.latitude:.4f}, {snapshot.location.longitude:.4f}) "
        f"timezone={escape(snapshot.timezone or '-')}"
    )
    if view is ViewKind.CURRENT:
        current = snapshot.current
        units = current.units
        table = Table(title="Current Conditions")
        table.add_column("Field")
        table.add_column("Value")
        table.add_row("Observed", current.time.isoformat())
        table.add_row("Condition", current.condition)
        for label, attr in (
            ("Temperature", "temperature"),
            ("Feels like", "apparent_temperature"),
            ("Humidity", "relative_humidity"),
            ("Precipitation", "precipitation"),
            ("Wind speed", "wind_speed"),
            ("Wind direction", "wind_direction"),
            ("Pressure", "pressure_msl"),
            ("Visibility", "visibility"),
            ("UV index", "uv_index"),
        ):
            value = getattr(current, attr)
            unit = units.get(attr, "")
            table.add_row(label, f"{_cell(value)} {unit}".strip() if value is not None else "-")
        console.print(table)
    elif view is ViewKind.HOURLY:
        _print_series(console, "Hourly Forecast", snapshot.hourly, max_rows)
    elif view is ViewKind.DAILY:
        _print_series(console, "7-Day Forecast", snapshot.daily, max_rows)
        codes = snapshot.daily.column("weather_code")
        if codes and codes[0] is not None:
            console.print(f"Today: {describe_weather_code(codes[0])}")
    elif view is ViewKind.MARINE:
        if snapshot.marine is None:
            console.print(f"Marine data {snapshot.marine_status}.")
        else:
            _print_series(console, "Marine Forecast", snapshot.marine.hourly, max_rows)
    elif view is ViewKind.HISTORICAL:
        if snapshot.historical is None:
            console.print(f"Historical data {snapshot.historical_status}.")
        else:
            _print_series(console, "Historical Daily", snapshot.historical.daily, max_rows)

    for record in snapshot.partial_errors:
        console.print(f"[yellow]{record.kind.value}[/yellow]: {escape(record.message)}")


async def _run(
    settings: Settings,
    target: str | Location,
    view: ViewKind,
    max_rows: int,
    console: Console,
    logger: logging.Logger,
) -> int:
    updates: list[SnapshotUpdate] = []
    orchestrator = DataOrchestrator.create(settings, logger=logger)
    try:
        await orchestrator.subscribe(target, view, updates.append)
    finally:
        await orchestrator.aclose()

    final = next(
        (update for update in reversed(updates) if update.state is not FetchState.LOADING), None
    )
    if final is None:
        console.print("No update received.")
        return 4
    if final.snapshot is not None:
        if final.stale:
            console.print("[yellow]Showing cached data; it may be out of date.[/yellow]")
        _print_snapshot(console, final.snapshot, view, max_rows)
        return 0
    console.print(escape(final.error.message) if final.error is not None else "Request failed.")
    return 4


def main(argv: Sequence[str] | None = None) -> int:
    """Fetch one view and print it; returns a process exit code."""
    args = parse_args(argv)
    console = Console()

    try:
        settings = load_settings()
    except ConfigError as exc:
        setup_logger().error("Configuration failure: %s", exc)
        return 2
    logger = setup_logger(level=settings.log_level, log_format=settings.log_format)
    logger.info("Loaded configuration: %s", settings.safe_summary())

    try:
        target = _validate_cli_input(args)
        return asyncio.run(
            _run(settings, target, ViewKind(args.view), args.max_rows, console, logger)
        )
    except InputValidationError as exc:
        logger.error("Invalid input: %s", exc)
        return 4
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected weather CLI failure: %s", exc)
        return 99


if __name__ == "__main__":
    sys.exit(main())
