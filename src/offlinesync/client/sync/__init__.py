"""Offline-first sync engine.

Architecture:
    LocalStore queue → QueueDrainProcessor → RemoteStore
    LocalStore unsynced messages → UnsyncedRecordSweeper → RemoteStore
    RemoteStore → ReconciliationFetcher → LocalStore cache

Components:
- **QueueDrainProcessor**: Applies queued mutations in order, bounded retry
- **UnsyncedRecordSweeper**: Pushes offline-created messages (no ceiling)
- **ReconciliationFetcher**: Overwrites the cache with remote snapshots
- **SyncController**: Periodic loops, drain mutual exclusion, public API
- **OfflineStatus**: Read-only summary of pending work

All public symbols are re-exported here.
"""

from offlinesync.client.sync.controller import SyncController
from offlinesync.client.sync.drain import QueueDrainProcessor
from offlinesync.client.sync.fetcher import ReconciliationFetcher
from offlinesync.client.sync.status import OfflineStatus, collect_status
from offlinesync.client.sync.sweeper import UnsyncedRecordSweeper
from offlinesync.client.sync.types import (
    ControllerState,
    DrainResult,
    FetchResult,
    ItemDroppedCallback,
    OfflineError,
    QueueItem,
    QueueOperation,
    RemoteProtocol,
    SweepResult,
    SyncError,
    SyncStats,
)

__all__ = [
    # Types and dataclasses
    "ControllerState",
    "DrainResult",
    "FetchResult",
    "ItemDroppedCallback",
    "OfflineError",
    "OfflineStatus",
    "QueueItem",
    "QueueOperation",
    "RemoteProtocol",
    "SweepResult",
    "SyncError",
    "SyncStats",
    # Components
    "QueueDrainProcessor",
    "ReconciliationFetcher",
    "SyncController",
    "UnsyncedRecordSweeper",
    # Functions
    "collect_status",
]
