"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, OfflineError: Exception classes
- QueueOperation, QueueItem: Mutation queue model
- RemoteProtocol: Interface of the remote store
- DrainResult, SweepResult, FetchResult: Pass result dataclasses
- ControllerState, SyncStats: Lifecycle controller state
- Type aliases for callbacks
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto
from typing import Any, Protocol


class SyncError(Exception):
    """Base exception for sync errors."""


class OfflineError(SyncError):
    """Operation requires connectivity but the device is offline."""


# =============================================================================
# Mutation Queue Types
# =============================================================================


class QueueOperation(str, Enum):
    """Kind of mutation recorded in the queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class QueueItem:
    """A pending mutation awaiting application to the remote store.

    Items are processed in (enqueued_at, insertion) order. Removal from the
    queue is the only terminal state.

    Attributes:
        id: Local queue identifier (distinct from the entity id)
        operation: create, update or delete
        collection: Target collection name
        payload: Entity snapshot (create/update) or at least its id (delete)
        retry_count: Number of failed attempts so far
        enqueued_at: Unix timestamp when the item was queued
    """

    id: str
    operation: QueueOperation
    collection: str
    payload: dict[str, Any]
    retry_count: int = 0
    enqueued_at: float = field(default_factory=time.time)

    @classmethod
    def from_row(cls, row: Any) -> QueueItem:
        """Create QueueItem from a database row."""
        return cls(
            id=row["id"],
            operation=QueueOperation(row["operation"]),
            collection=row["collection"],
            payload=json.loads(row["payload"]),
            retry_count=row["retry_count"],
            enqueued_at=row["enqueued_at"],
        )

    @property
    def entity_id(self) -> Any:
        """Identifier of the entity this mutation targets, if present."""
        return self.payload.get("id")

    def __repr__(self) -> str:
        """Human-readable representation."""
        return (
            f"QueueItem({self.operation.value} {self.collection}, "
            f"id={self.id!r}, retries={self.retry_count})"
        )


# Type alias for dropped-item callback: (item, last error)
ItemDroppedCallback = Callable[[QueueItem, Exception], None]


class RemoteProtocol(Protocol):
    """Protocol for the remote authoritative store.

    RemoteStore implements it over HTTP; any object with these methods
    can be used by the sync components.
    """

    def insert(self, collection: str, record: dict[str, Any]) -> None: ...

    def update_by_id(
        self, collection: str, record_id: Any, record: dict[str, Any]
    ) -> None: ...

    def delete_by_id(self, collection: str, record_id: Any) -> None: ...

    def select_all(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...


# =============================================================================
# Pass Results
# =============================================================================


@dataclass
class SweepResult:
    """Result of one unsynced-message sweep."""

    synced: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class DrainResult:
    """Result of one queue drain pass.

    Attributes:
        synced: Queue ids applied remotely and removed
        failed: Queue ids that failed and stay queued for the next pass
        dropped: Queue ids removed after reaching the retry ceiling
        sweep: Result of the unsynced-message sweep run in the same pass
        fetch: Result of the fetch preceding the pass (force sync only)
    """

    synced: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    sweep: SweepResult | None = None
    fetch: FetchResult | None = None

    @property
    def processed(self) -> int:
        """Number of queue items attempted in this pass."""
        return len(self.synced) + len(self.failed) + len(self.dropped)


@dataclass
class FetchResult:
    """Result of one reconciliation fetch.

    Attributes:
        fetched: Collection name -> number of records cached
        failed: Collections whose fetch or cache write failed
    """

    fetched: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)


# =============================================================================
# Controller Types
# =============================================================================


class ControllerState(IntEnum):
    """State of the sync lifecycle controller."""

    STOPPED = auto()
    RUNNING = auto()


@dataclass
class SyncStats:
    """Statistics for the sync controller."""

    drain_passes: int = 0
    items_synced: int = 0
    items_failed: int = 0
    items_dropped: int = 0
    messages_synced: int = 0
    fetch_passes: int = 0
    fetch_errors: int = 0
    errors: int = 0
