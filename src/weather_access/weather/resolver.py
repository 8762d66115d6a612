"""Free-text location search with caching and caller-side debouncing."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from ..cache import CacheStore
from ..callbacks import invoke_callback
from ..errors.classifier import log_error_record
from ..errors.models import ErrorRecord
from ..exceptions import ClassifiedError, InputValidationError, LocationNotFoundError
from ..retry import RetryPolicy
from ..validation import normalize_query, sanitize_query
from .models import Location
from .open_meteo import GeocodingSource


def location_cache_key(normalized_query: str) -> str:
    return f"location:{normalized_query.casefold()}"


class LocationResolver:
    """Turn a search string into ranked candidate locations.

    Cached candidates older than the location stale window are still served,
    while one background re-geocode per query replaces them.
    """

    def __init__(
        self,
        settings: Any,
        geocoder: GeocodingSource,
        retry: RetryPolicy,
        cache: CacheStore,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.geocoder = geocoder
        self.retry = retry
        self.cache = cache
        self.logger = logger or logging.getLogger(__name__)
        self._refreshes: dict[str, asyncio.Task[None]] = {}

    async def resolve(self, query: str) -> list[Location]:
        """Return candidates in upstream order.

        Queries shorter than the configured minimum return [] without an
        upstream call. Failures raise ClassifiedError (NotFound for zero
        results, ValidationError for empty input).
        """
        endpoint = self.geocoder.endpoint
        try:
            normalized = normalize_query(query, max_length=self.settings.query_max_length)
        except InputValidationError as exc:
            record = self.retry.classifier.classify(exc, endpoint=endpoint)
            log_error_record(self.logger, record)
            raise ClassifiedError(record) from exc

        if len(normalized) < self.settings.query_min_length:
            return []

        key = location_cache_key(normalized)
        cached = self.cache.lookup(key)
        if cached is not None:
            self.logger.debug("Location cache hit", extra={"cache_key": key})
            if cached.stale and key not in self._refreshes:
                self._start_refresh(normalized, key)
            return list(cached.value)

        return await self._fetch_locations(normalized, key)

    async def drain(self) -> None:
        """Wait for background re-geocodes to finish."""
        while self._refreshes:
            await asyncio.gather(*list(self._refreshes.values()), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel background re-geocodes."""
        tasks = list(self._refreshes.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._refreshes.clear()

    def _start_refresh(self, normalized: str, key: str) -> None:
        self.logger.info(
            "Serving stale location candidates; refreshing in background",
            extra={"cache_key": key},
        )
        task = asyncio.get_running_loop().create_task(self._refresh(normalized, key))
        self._refreshes[key] = task

        def finished(done: asyncio.Task[None]) -> None:
            if self._refreshes.get(key) is done:
                del self._refreshes[key]

        task.add_done_callback(finished)

    async def _refresh(self, normalized: str, key: str) -> None:
        try:
            await self._fetch_locations(normalized, key)
        except ClassifiedError:
            # Already logged; the stale candidates stay cached until they expire.
            return

    async def _fetch_locations(self, normalized: str, key: str) -> list[Location]:
        endpoint = self.geocoder.endpoint
        params = GeocodingSource.params_for(
            normalized,
            count=self.settings.geocoding_result_count,
            language=self.settings.geocoding_language,
        )
        try:
            locations = await self.retry.execute(
                lambda: self.geocoder.fetch(params),
                endpoint=endpoint,
                params=params,
            )
        except ClassifiedError as exc:
            log_error_record(self.logger, exc.record, cache_key=key)
            raise

        if not locations:
            not_found = LocationNotFoundError(
                f"No locations match '{sanitize_query(normalized)}'.", query=normalized
            )
            record = self.retry.classifier.classify(not_found, endpoint=endpoint, params=params)
            log_error_record(self.logger, record, cache_key=key)
            raise ClassifiedError(record) from not_found

        self.cache.set(
            key,
            tuple(locations),
            ttl=self.settings.location_cache_ttl_seconds,
            stale_after=self.settings.location_stale_after_seconds,
        )
        self.logger.info(
            "Resolved %d location candidate(s)",
            len(locations),
            extra={"cache_key": key, "endpoint": endpoint},
        )
        return locations


class DebouncedSearch:
    """Run `resolver.resolve` only after input has been quiet for `delay_seconds`.

    Owns at most one pending task; every `submit` cancels the previous one.
    """

    def __init__(
        self,
        resolver: LocationResolver,
        *,
        on_results: Callable[[list[Location]], Any],
        on_error: Callable[[ErrorRecord], Any] | None = None,
        delay_seconds: float = 0.3,
        logger: logging.Logger | None = None,
    ) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.resolver = resolver
        self.on_results = on_results
        self.on_error = on_error
        self.delay_seconds = delay_seconds
        self.logger = logger or logging.getLogger(__name__)
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, text: str) -> asyncio.Task[None]:
        """Schedule a search for `text`, replacing any pending one."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(text))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def wait(self) -> None:
        """Wait for the pending search (if any) to finish."""
        task = self._task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self, text: str) -> None:
        await asyncio.sleep(self.delay_seconds)
        try:
            results = await self.resolver.resolve(text)
        except ClassifiedError as exc:
            if self.on_error is not None:
                await invoke_callback(self.on_error, exc.record, logger=self.logger)
            return
        await invoke_callback(self.on_results, results, logger=self.logger)
