"""Coordinates resolver, client and cache behind a subscription API."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

import httpx

from ..cache import CacheLookup, CacheStore, Clock
from ..callbacks import invoke_callback
from ..errors.classifier import ErrorClassifier, log_error_record
from ..errors.feed import ErrorFeed, FeedEntry
from ..errors.models import ErrorRecord
from ..exceptions import ClassifiedError, InputValidationError, LocationNotFoundError
from ..retry import RetryPolicy
from ..validation import validate_coordinates
from ..weather.client import WeatherClient
from ..weather.models import Location, ViewKind, WeatherSnapshot
from ..weather.open_meteo import ForecastSource, GeocodingSource, HistoricalSource, MarineSource
from ..weather.resolver import DebouncedSearch, LocationResolver
from .models import (
    PROFILE_VIEWS,
    VIEW_PROFILES,
    CachedSnapshot,
    FetchState,
    SnapshotUpdate,
    Subscription,
    snapshot_key,
)

UpdateCallback = Callable[[SnapshotUpdate], Any]


class DataOrchestrator:
    """Single read API for the UI layer.

    Each cache key moves through IDLE -> LOADING -> SUCCESS | STALE | FAILED.
    Every fetch is tagged with a per-key generation; a result is dropped if a
    newer generation is stored or the key was invalidated after it started.
    """

    def __init__(
        self,
        settings: Any,
        *,
        resolver: LocationResolver,
        client: WeatherClient,
        cache: CacheStore,
        classifier: ErrorClassifier,
        logger: logging.Logger | None = None,
        error_feed: ErrorFeed | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.client = client
        self.cache = cache
        self.classifier = classifier
        self.logger = logger or logging.getLogger(__name__)
        self.error_feed = error_feed or ErrorFeed(max_events=settings.error_feed_max_events)
        self._http_client = http_client

        self._states: dict[str, FetchState] = {}
        self._targets: dict[str, tuple[Location, ViewKind]] = {}
        self._generations: dict[str, int] = {}
        self._floors: dict[str, int] = {}
        self._inflight: dict[str, asyncio.Task[SnapshotUpdate]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()
        self._running: dict[str, int] = {}
        self._retired: set[str] = set()
        self._subscribers: dict[str, list[UpdateCallback]] = {}
        self._active_location: Location | None = None
        self._closed = False

    @classmethod
    def create(
        cls,
        settings: Any,
        logger: logging.Logger | None = None,
        http_client: httpx.AsyncClient | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        today: Callable[[], date] = date.today,
    ) -> DataOrchestrator:
        """Wire one shared cache, retry policy, resolver and client from settings.

        An HTTP client created here is closed by `aclose`; a passed-in one is not.
        """
        logger = logger or logging.getLogger("weather_access")
        owned_client: httpx.AsyncClient | None = None
        if http_client is None:
            owned_client = http_client = httpx.AsyncClient(
                timeout=settings.request_timeout_seconds,
                headers={
                    "Accept": "application/json",
                    "User-Agent": settings.http_user_agent,
                },
            )

        cache: CacheStore = CacheStore(
            default_ttl_seconds=settings.weather_cache_ttl_seconds,
            default_stale_after_seconds=settings.weather_stale_after_seconds,
            max_entries=settings.cache_max_entries,
            clock=clock,
            logger=logger,
        )
        classifier = ErrorClassifier()
        retry = RetryPolicy(
            classifier,
            logger,
            max_attempts=settings.retry_max_attempts,
            base_delay_seconds=settings.retry_base_delay_seconds,
            sleep=sleep,
        )
        source_kwargs = {
            "client": http_client,
            "logger": logger,
            "api_key": settings.open_meteo_api_key,
        }
        resolver = LocationResolver(
            settings,
            GeocodingSource(base_url=settings.geocoding_base_url, **source_kwargs),
            retry,
            cache,
            logger,
        )
        client = WeatherClient(
            settings,
            forecast=ForecastSource(base_url=settings.forecast_base_url, **source_kwargs),
            marine=MarineSource(base_url=settings.marine_base_url, **source_kwargs),
            historical=HistoricalSource(base_url=settings.historical_base_url, **source_kwargs),
            retry=retry,
            logger=logger,
            today=today,
        )
        return cls(
            settings,
            resolver=resolver,
            client=client,
            cache=cache,
            classifier=classifier,
            logger=logger,
            http_client=owned_client,
        )

    # -- read API -----------------------------------------------------------

    @property
    def active_location(self) -> Location | None:
        return self._active_location

    def state(self, key: str) -> FetchState:
        return self._states.get(key, FetchState.IDLE)

    def get_cached_snapshot(self, key: str) -> CachedSnapshot | None:
        lookup = self.cache.lookup(key)
        if lookup is None:
            return None
        return CachedSnapshot(
            snapshot=lookup.value, stale=lookup.stale, age_seconds=lookup.age_seconds
        )

    def recent_errors(self, *, newest_first: bool = True) -> list[FeedEntry]:
        return self.error_feed.snapshot(newest_first=newest_first)

    def debounced_search(
        self,
        on_results: Callable[[list[Location]], Any],
        on_error: Callable[[ErrorRecord], Any] | None = None,
    ) -> DebouncedSearch:
        """Search-as-you-type helper bound to this orchestrator's resolver."""
        return DebouncedSearch(
            self.resolver,
            on_results=on_results,
            on_error=on_error,
            delay_seconds=self.settings.search_debounce_seconds,
            logger=self.logger,
        )

    async def subscribe(
        self,
        query_or_location: str | Location,
        view: ViewKind | str,
        callback: UpdateCallback,
    ) -> Subscription:
        """Register `callback` for updates of `view` at the given location.

        A search string is resolved and its first candidate becomes the active
        location. Resolution failures are delivered to the callback as a
        FAILED update and the returned subscription is inactive.
        """
        view = ViewKind(view)
        if isinstance(query_or_location, Location):
            location = query_or_location
        else:
            try:
                location = await self._resolve_first(query_or_location)
            except ClassifiedError as exc:
                self.error_feed.add(exc.record)
                failed = SnapshotUpdate(
                    key=None, view=view, state=FetchState.FAILED, error=exc.record
                )
                await invoke_callback(callback, failed, logger=self.logger)
                return Subscription(key=None, view=view, location=None)

        self.select_location(location)
        key = snapshot_key(location, view)
        self._targets[key] = (location, view)
        callbacks = self._subscribers.setdefault(key, [])
        callbacks.append(callback)

        def detach() -> None:
            registered = self._subscribers.get(key, [])
            if callback in registered:
                registered.remove(callback)
            if not registered:
                self._subscribers.pop(key, None)
                self._prune(key)

        subscription = Subscription(key=key, view=view, location=location, _detach=detach)
        await self.request(location, view)
        return subscription

    async def request(
        self,
        location: Location,
        view: ViewKind | str,
        *,
        force: bool = False,
    ) -> SnapshotUpdate:
        """Serve `view` for `location` from cache or upstream."""
        view = ViewKind(view)
        try:
            validate_coordinates(location.latitude, location.longitude)
        except InputValidationError as exc:
            record = self.classifier.classify(exc)
            self._record_error(record)
            return SnapshotUpdate(key=None, view=view, state=FetchState.FAILED, error=record)

        key = snapshot_key(location, view)
        self._targets[key] = (location, view)
        self._retired.discard(key)
        return await self._request_key(key, view, force=force)

    async def request_refresh(self, key: str, force: bool = False) -> SnapshotUpdate:
        """Re-request a key previously seen by `request` or `subscribe`."""
        target = self._targets.get(key)
        if target is None:
            raise KeyError(f"Unknown snapshot key: {key}")
        return await self._request_key(key, target[1], force=force)

    # -- invalidation -------------------------------------------------------

    def select_location(self, location: Location) -> None:
        """Make `location` active, discarding state for the previous one."""
        previous = self._active_location
        self._active_location = location
        if previous is None or previous.key == location.key:
            return
        stale_keys = [
            key for key, (target, _) in self._targets.items() if target.key == previous.key
        ]
        for key in stale_keys:
            self.invalidate(key)
            self._retired.add(key)
            self._prune(key)
        purged = self.cache.purge_expired()
        self.logger.info(
            "Active location changed; invalidated %d key(s), purged %d expired entries",
            len(stale_keys),
            purged,
            extra={"cache_key": location.key},
        )

    def invalidate(self, key: str) -> None:
        """Drop the cached entry and in-flight result for `key`; state -> IDLE.

        An in-flight fetch keeps running but its result is discarded.
        """
        self._floors[key] = self._generations.get(key, 0)
        self.cache.invalidate(key)
        self._inflight.pop(key, None)
        self._states[key] = FetchState.IDLE

    async def drain(self) -> None:
        """Wait until no fetch (foreground or background) is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.resolver.drain()

    async def aclose(self) -> None:
        """Cancel outstanding fetches and close an owned HTTP client."""
        self._closed = True
        await self.resolver.aclose()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._inflight.clear()
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # -- internals ----------------------------------------------------------

    async def _resolve_first(self, query: str) -> Location:
        candidates = await self.resolver.resolve(query)
        if not candidates:
            not_found = LocationNotFoundError("Query too short to search.", query=query)
            raise ClassifiedError(
                self.classifier.classify(not_found, endpoint=self.resolver.geocoder.endpoint)
            ) from not_found
        return candidates[0]

    async def _request_key(self, key: str, view: ViewKind, *, force: bool) -> SnapshotUpdate:
        if self._closed:
            raise RuntimeError("DataOrchestrator is closed.")

        if force:
            prior = self.cache.lookup(key)
            self.invalidate(key)
            await self._set_loading(key, view)
            return await asyncio.shield(self._start_fetch(key, prior))

        lookup = self.cache.lookup(key)
        if lookup is not None and not lookup.stale:
            self._states[key] = FetchState.SUCCESS
            update = SnapshotUpdate(
                key=key, view=view, state=FetchState.SUCCESS, snapshot=lookup.value
            )
            await self._emit(update)
            return update

        if lookup is not None:
            self._states[key] = FetchState.STALE
            update = SnapshotUpdate(
                key=key, view=view, state=FetchState.STALE, snapshot=lookup.value, stale=True
            )
            await self._emit(update)
            if key not in self._inflight:
                self.logger.info(
                    "Serving stale snapshot; refreshing in background",
                    extra={"cache_key": key},
                )
                self._states[key] = FetchState.LOADING
                self._start_fetch(key, None)
            return update

        inflight = self._inflight.get(key)
        if inflight is not None:
            return await asyncio.shield(inflight)

        await self._set_loading(key, view)
        return await asyncio.shield(self._start_fetch(key, None))

    async def _set_loading(self, key: str, view: ViewKind) -> None:
        self._states[key] = FetchState.LOADING
        await self._emit(SnapshotUpdate(key=key, view=view, state=FetchState.LOADING))

    def _start_fetch(
        self, key: str, prior: CacheLookup[WeatherSnapshot] | None
    ) -> asyncio.Task[SnapshotUpdate]:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        task = asyncio.get_running_loop().create_task(self._fetch(key, generation, prior))
        self._inflight[key] = task
        self._tasks.add(task)
        self._running[key] = self._running.get(key, 0) + 1

        def finished(done: asyncio.Task[SnapshotUpdate]) -> None:
            self._tasks.discard(done)
            if self._inflight.get(key) is done:
                del self._inflight[key]
            remaining = self._running.get(key, 1) - 1
            if remaining:
                self._running[key] = remaining
            else:
                self._running.pop(key, None)
                self._prune(key)

        task.add_done_callback(finished)
        return task

    def _prune(self, key: str) -> None:
        """Forget a key retired by a location switch once nobody watches it.

        Keys with a running fetch keep their floor until that fetch finishes.
        """
        if key not in self._retired:
            return
        target = self._targets.get(key)
        active = self._active_location
        if target is None or (active is not None and target[0].key == active.key):
            self._retired.discard(key)
            return
        if key in self._subscribers or key in self._running:
            return
        self._retired.discard(key)
        self._targets.pop(key, None)
        self._states.pop(key, None)
        self._generations.pop(key, None)
        self._floors.pop(key, None)

    def _superseded(self, key: str, generation: int) -> bool:
        return generation <= self._floors.get(key, 0)

    def _discarded(self, key: str, view: ViewKind, generation: int) -> SnapshotUpdate:
        self.logger.debug(
            "Discarding superseded fetch result",
            extra={"cache_key": key, "generation": generation},
        )
        lookup = self.cache.lookup(key)
        return SnapshotUpdate(
            key=key,
            view=view,
            state=self.state(key),
            snapshot=lookup.value if lookup is not None else None,
            stale=lookup.stale if lookup is not None else False,
        )

    async def _fetch(
        self,
        key: str,
        generation: int,
        prior: CacheLookup[WeatherSnapshot] | None,
    ) -> SnapshotUpdate:
        location, view = self._targets[key]
        views = PROFILE_VIEWS[VIEW_PROFILES[view]]
        try:
            snapshot = await self.client.fetch_snapshot(location, views)
        except ClassifiedError as exc:
            return await self._handle_failure(key, view, generation, exc.record, prior)
        except Exception:
            # Unexpected failures are bugs: log them and let the key be retried.
            self.logger.exception(
                "Unexpected failure fetching snapshot",
                extra={"cache_key": key, "generation": generation},
            )
            if self._superseded(key, generation):
                return self._discarded(key, view, generation)
            self._states[key] = FetchState.IDLE
            update = SnapshotUpdate(key=key, view=view, state=FetchState.IDLE)
            await self._emit(update)
            return update

        if self._superseded(key, generation):
            return self._discarded(key, view, generation)
        written = self.cache.set(
            key,
            snapshot,
            ttl=self.settings.weather_cache_ttl_seconds,
            stale_after=self.settings.weather_stale_after_seconds,
            generation=generation,
        )
        if not written:
            return self._discarded(key, view, generation)

        for record in snapshot.partial_errors:
            self.error_feed.add(record)
        self._states[key] = FetchState.SUCCESS
        self.logger.info(
            "Snapshot fetched",
            extra={"cache_key": key, "generation": generation},
        )
        update = SnapshotUpdate(key=key, view=view, state=FetchState.SUCCESS, snapshot=snapshot)
        await self._emit(update)
        return update

    async def _handle_failure(
        self,
        key: str,
        view: ViewKind,
        generation: int,
        record: ErrorRecord,
        prior: CacheLookup[WeatherSnapshot] | None,
    ) -> SnapshotUpdate:
        if self._superseded(key, generation):
            return self._discarded(key, view, generation)
        self._record_error(record, cache_key=key)

        # A live cache entry is always served; a forced refresh's prior value
        # only covers transient failures.
        fallback = self.cache.lookup(key)
        if fallback is None and record.retryable:
            fallback = prior
        if fallback is not None:
            self._states[key] = FetchState.STALE
            update = SnapshotUpdate(
                key=key,
                view=view,
                state=FetchState.STALE,
                snapshot=fallback.value,
                stale=True,
                error=record,
            )
        else:
            self._states[key] = FetchState.FAILED
            update = SnapshotUpdate(key=key, view=view, state=FetchState.FAILED, error=record)
        await self._emit(update)
        return update

    def _record_error(self, record: ErrorRecord, *, cache_key: str | None = None) -> None:
        log_error_record(self.logger, record, cache_key=cache_key)
        self.error_feed.add(record)

    async def _emit(self, update: SnapshotUpdate) -> None:
        if update.key is None:
            return
        for callback in list(self._subscribers.get(update.key, [])):
            await invoke_callback(callback, update, logger=self.logger)
