"""State, update and subscription types exposed by the orchestrator."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from ..errors.models import ErrorRecord
from ..weather.models import Location, ViewKind, WeatherSnapshot


class FetchState(StrEnum):
    """Per-key lifecycle."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    STALE = "stale"
    FAILED = "failed"


# Views with identical upstream requirements share one cache key.
VIEW_PROFILES: dict[ViewKind, str] = {
    ViewKind.CURRENT: "forecast",
    ViewKind.HOURLY: "forecast",
    ViewKind.DAILY: "forecast",
    ViewKind.MARINE: "marine",
    ViewKind.HISTORICAL: "historical",
}

PROFILE_VIEWS: dict[str, tuple[ViewKind, ...]] = {
    "forecast": (ViewKind.CURRENT, ViewKind.HOURLY, ViewKind.DAILY),
    "marine": (ViewKind.MARINE,),
    "historical": (ViewKind.HISTORICAL,),
}


def snapshot_key(location: Location, view: ViewKind | str) -> str:
    return f"snapshot:{location.key}:{VIEW_PROFILES[ViewKind(view)]}"


@dataclass(frozen=True, slots=True)
class SnapshotUpdate:
    """What subscribers receive whenever a key changes state."""

    key: str | None
    view: ViewKind
    state: FetchState
    snapshot: WeatherSnapshot | None = None
    stale: bool = False
    error: ErrorRecord | None = None


@dataclass(frozen=True, slots=True)
class CachedSnapshot:
    snapshot: WeatherSnapshot
    stale: bool
    age_seconds: float


@dataclass(slots=True)
class Subscription:
    """Handle returned by `subscribe`; call `unsubscribe()` to stop updates."""

    key: str | None
    view: ViewKind
    location: Location | None
    _detach: Callable[[], None] | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._detach is not None

    def unsubscribe(self) -> None:
        detach, self._detach = self._detach, None
        if detach is not None:
            detach()
