"""Data orchestrator: cache-aware, subscription-based access to weather snapshots."""

from .data_orchestrator import DataOrchestrator
from .models import CachedSnapshot, FetchState, SnapshotUpdate, Subscription, snapshot_key

__all__ = [
    "CachedSnapshot",
    "DataOrchestrator",
    "FetchState",
    "SnapshotUpdate",
    "Subscription",
    "snapshot_key",
]
