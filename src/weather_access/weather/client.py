"""Fetch and merge the upstream collaborators for one location."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from typing import Any

from ..errors.classifier import log_error_record
from ..errors.models import ErrorRecord
from ..exceptions import ClassifiedError, InputValidationError, UpstreamRequestError
from ..retry import RetryPolicy
from ..validation import validate_date_range
from .models import (
    ForecastBundle,
    HistoricalReading,
    Location,
    MarineReading,
    SectionStatus,
    ViewKind,
    WeatherSnapshot,
)
from .open_meteo import ForecastSource, HistoricalSource, MarineSource


def normalize_views(views: Iterable[ViewKind | str]) -> list[ViewKind]:
    """Coerce to ViewKind, dropping duplicates while keeping order."""
    ordered: list[ViewKind] = []
    for view in views:
        kind = ViewKind(view)
        if kind not in ordered:
            ordered.append(kind)
    if not ordered:
        raise ValueError("At least one view is required.")
    return ordered


class WeatherClient:
    """Fetch forecast plus optional marine/historical data concurrently.

    The forecast is mandatory: its failure fails the whole fetch. Marine and
    historical failures are recorded on the snapshot instead.
    """

    def __init__(
        self,
        settings: Any,
        *,
        forecast: ForecastSource,
        marine: MarineSource,
        historical: HistoricalSource,
        retry: RetryPolicy,
        logger: logging.Logger | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.settings = settings
        self.forecast = forecast
        self.marine = marine
        self.historical = historical
        self.retry = retry
        self.logger = logger or logging.getLogger(__name__)
        self._today = today

    def historical_range(self, end: date | None = None) -> tuple[date, date]:
        """Window of `historical_days` ending on `end` (default: yesterday)."""
        if end is None:
            end = self._today() - timedelta(days=1)
        start = end - timedelta(days=self.settings.historical_days - 1)
        return start, end

    async def fetch_snapshot(
        self,
        location: Location,
        views: Iterable[ViewKind | str],
        *,
        historical_end: date | None = None,
    ) -> WeatherSnapshot:
        """Fetch every collaborator the views need and merge the results.

        Raises ClassifiedError when the forecast cannot be fetched.
        """
        active = normalize_views(views)
        want_marine = ViewKind.MARINE in active
        want_historical = ViewKind.HISTORICAL in active

        jobs: list[Any] = [self._fetch_forecast(location)]
        if want_marine:
            jobs.append(self._fetch_marine(location))
        if want_historical:
            jobs.append(self._fetch_historical(location, historical_end))
        results = await asyncio.gather(*jobs, return_exceptions=True)

        forecast_result = results[0]
        if isinstance(forecast_result, BaseException):
            raise forecast_result
        bundle: ForecastBundle = forecast_result

        partial_errors: list[ErrorRecord] = []
        marine: MarineReading | None = None
        marine_status: SectionStatus = "not_requested"
        historical: HistoricalReading | None = None
        historical_status: SectionStatus = "not_requested"

        index = 1
        if want_marine:
            outcome = results[index]
            index += 1
            if isinstance(outcome, BaseException):
                partial_errors.append(self._partial_failure(outcome, location))
                marine_status = "failed"
            elif outcome is None:
                marine_status = "absent"
            else:
                marine = outcome
                marine_status = "present"
        if want_historical:
            outcome = results[index]
            if isinstance(outcome, BaseException):
                partial_errors.append(self._partial_failure(outcome, location))
                historical_status = "failed"
            else:
                historical = outcome
                historical_status = "present"

        return WeatherSnapshot(
            location=location,
            views=active,
            current=bundle.current,
            hourly=bundle.hourly,
            daily=bundle.daily,
            marine=marine,
            marine_status=marine_status,
            historical=historical,
            historical_status=historical_status,
            partial_errors=partial_errors,
            timezone=bundle.timezone or location.timezone,
            fetched_at=datetime.now(UTC),
        )

    def _partial_failure(self, exc: BaseException, location: Location) -> ErrorRecord:
        if not isinstance(exc, ClassifiedError):
            raise exc
        log_error_record(self.logger, exc.record, cache_key=location.key)
        return exc.record

    async def _fetch_forecast(self, location: Location) -> ForecastBundle:
        params = ForecastSource.params_for(location, forecast_days=self.settings.forecast_days)
        return await self.retry.execute(
            lambda: self.forecast.fetch(params),
            endpoint=self.forecast.endpoint,
            params=params,
        )

    async def _fetch_marine(self, location: Location) -> MarineReading | None:
        params = MarineSource.params_for(location, forecast_days=self.settings.forecast_days)

        async def attempt() -> MarineReading | None:
            try:
                return await self.marine.fetch(params)
            except UpstreamRequestError as exc:
                if MarineSource.is_no_data_error(exc):
                    self.logger.info(
                        "No marine data for location",
                        extra={"endpoint": self.marine.endpoint, "cache_key": location.key},
                    )
                    return None
                raise

        return await self.retry.execute(attempt, endpoint=self.marine.endpoint, params=params)

    async def _fetch_historical(
        self, location: Location, end: date | None
    ) -> HistoricalReading:
        start, end = self.historical_range(end)
        try:
            validate_date_range(start, end, today=self._today())
        except InputValidationError as exc:
            record = self.retry.classifier.classify(exc, endpoint=self.historical.endpoint)
            raise ClassifiedError(record) from exc

        params = HistoricalSource.params_for(location, start, end)
        return await self.retry.execute(
            lambda: self.historical.fetch(params),
            endpoint=self.historical.endpoint,
            params=params,
        )
