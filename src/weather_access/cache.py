"""In-memory TTL cache with staleness classification."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """One cached value with absolute (clock-based) freshness boundaries."""

    key: Hashable
    value: V
    fetched_at: float
    expires_at: float
    stale_after: float
    generation: int = 0

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def is_stale(self, now: float) -> bool:
        return now >= self.stale_after


@dataclass(frozen=True, slots=True)
class CacheLookup(Generic[V]):
    """Result of a cache hit: the value and whether it may be outdated."""

    value: V
    stale: bool
    age_seconds: float
    generation: int


class CacheStore(Generic[V]):
    """Session-scoped key/value store.

    Entries are usable until `ttl` elapses and flagged stale after the
    shorter `stale_after` window. Expired entries are removed lazily on
    access. A single instance is shared by every component of one
    orchestrator.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float = 600,
        default_stale_after_seconds: float = 300,
        max_entries: int | None = None,
        clock: Clock = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self._check_windows(default_ttl_seconds, default_stale_after_seconds)
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be > 0 when set")
        self.default_ttl_seconds = default_ttl_seconds
        self.default_stale_after_seconds = default_stale_after_seconds
        self.max_entries = max_entries
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._entries: dict[Hashable, CacheEntry[V]] = {}

    @staticmethod
    def _check_windows(ttl: float, stale_after: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        if not (0 <= stale_after < ttl):
            raise ValueError("stale_after must be >= 0 and shorter than ttl")

    def set(
        self,
        key: Hashable,
        value: V,
        ttl: float | None = None,
        *,
        stale_after: float | None = None,
        generation: int | None = None,
    ) -> bool:
        """Store `value`; return False if a newer generation is already stored."""
        ttl = self.default_ttl_seconds if ttl is None else ttl
        if stale_after is None:
            stale_after = min(self.default_stale_after_seconds, ttl / 2)
        self._check_windows(ttl, stale_after)

        now = self._clock()
        existing = self._entries.get(key)
        if generation is None:
            generation = existing.generation + 1 if existing is not None else 0
        elif (
            existing is not None
            and not existing.is_expired(now)
            and generation < existing.generation
        ):
            self.logger.debug(
                "Discarding superseded cache write key=%s generation=%d current=%d",
                key,
                generation,
                existing.generation,
                extra={"cache_key": str(key), "generation": generation},
            )
            return False

        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            fetched_at=now,
            expires_at=now + ttl,
            stale_after=now + stale_after,
            generation=generation,
        )
        self._evict_overflow()
        return True

    def _live_entry(self, key: Hashable) -> CacheEntry[V] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def get(self, key: Hashable) -> V | None:
        """Return the cached value (fresh or stale) or None on miss/expiry."""
        entry = self._live_entry(key)
        return entry.value if entry is not None else None

    def lookup(self, key: Hashable) -> CacheLookup[V] | None:
        """Return the value tagged with its staleness, or None on miss/expiry."""
        entry = self._live_entry(key)
        if entry is None:
            return None
        now = self._clock()
        return CacheLookup(
            value=entry.value,
            stale=entry.is_stale(now),
            age_seconds=max(0.0, now - entry.fetched_at),
            generation=entry.generation,
        )

    def is_stale(self, key: Hashable) -> bool:
        """True only for a live entry past its staleness window."""
        entry = self._live_entry(key)
        return entry is not None and entry.is_stale(self._clock())

    def invalidate(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry now; return how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _evict_overflow(self) -> None:
        if self.max_entries is None:
            return
        while len(self._entries) > self.max_entries:
            oldest_key = min(self._entries, key=lambda k: self._entries[k].fetched_at)
            del self._entries[oldest_key]

    def __contains__(self, key: Hashable) -> bool:
        return self._live_entry(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
