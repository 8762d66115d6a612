"""Bounded error feed with repeat-deduplication for the UI error surface."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from .models import ErrorRecord


@dataclass(slots=True)
class FeedEntry:
    """One UI-visible error entry with repeat metadata."""

    record: ErrorRecord
    count: int = 1
    last_seen: datetime | None = None
    dedupe_key: str | None = None

    def __post_init__(self) -> None:
        if self.last_seen is None:
            self.last_seen = self.record.timestamp


class ErrorFeed:
    """Keep recent error records and collapse repeated warning/error lines."""

    def __init__(
        self,
        *,
        max_events: int = 50,
        dedupe_window_seconds: int = 30,
    ) -> None:
        self.max_events = max_events
        self.dedupe_window_seconds = dedupe_window_seconds
        self._entries: list[FeedEntry] = []
        self._dedupe_index: dict[str, FeedEntry] = {}

    def add(self, record: ErrorRecord) -> FeedEntry:
        now = record.timestamp
        now = now.replace(tzinfo=UTC) if now.tzinfo is None else now.astimezone(UTC)

        should_dedupe = record.severity in {"WARN", "ERROR"}
        dedupe_key = f"{record.kind.value}:{record.context.endpoint}" if should_dedupe else None
        if dedupe_key is not None:
            existing = self._dedupe_index.get(dedupe_key)
            if existing and existing.last_seen is not None:
                age_seconds = (now - existing.last_seen).total_seconds()
                if age_seconds <= self.dedupe_window_seconds:
                    existing.count += 1
                    existing.last_seen = now
                    return existing

        entry = FeedEntry(record=record, count=1, last_seen=now, dedupe_key=dedupe_key)
        self._entries.append(entry)
        if dedupe_key is not None:
            self._dedupe_index[dedupe_key] = entry

        while len(self._entries) > self.max_events:
            dropped = self._entries.pop(0)
            if dropped.dedupe_key:
                indexed = self._dedupe_index.get(dropped.dedupe_key)
                if indexed is dropped:
                    self._dedupe_index.pop(dropped.dedupe_key, None)
        return entry

    def snapshot(self, *, newest_first: bool = False) -> list[FeedEntry]:
        """Return a copy of tracked entries in display order."""
        items = list(self._entries)
        if newest_first:
            items.reverse()
        return items

    def clear(self) -> None:
        self._entries.clear()
        self._dedupe_index.clear()
