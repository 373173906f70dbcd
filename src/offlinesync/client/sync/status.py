"""Read-only status summary of pending offline work."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from offlinesync.client.connectivity import Connectivity
    from offlinesync.client.state import LocalStore


@dataclass
class OfflineStatus:
    """Snapshot of connectivity and pending work.

    Attributes:
        is_online: Current answer of the connectivity signal.
        has_cached_data: Whether any tracked collection has cached records.
        pending_sync_count: Number of queue items waiting to be drained.
        unsynced_messages_count: Number of offline messages not yet pushed.
        last_sync_at: Unix timestamp of the last drain pass, if any.
    """

    is_online: bool
    has_cached_data: bool
    pending_sync_count: int
    unsynced_messages_count: int
    last_sync_at: float | None = None

    def to_dict(self) -> dict[str, bool | int | float | None]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "is_online": self.is_online,
            "has_cached_data": self.has_cached_data,
            "pending_sync_count": self.pending_sync_count,
            "unsynced_messages_count": self.unsynced_messages_count,
            "last_sync_at": self.last_sync_at,
        }


def has_cached_data(store: LocalStore, collections: Iterable[str]) -> bool:
    """Check whether any of the collections holds cached records."""
    return any(store.count_cached(name) > 0 for name in collections)


def collect_status(
    store: LocalStore,
    connectivity: Connectivity,
    collections: Iterable[str],
    messages_collection: str = "messages",
) -> OfflineStatus:
    """Build an OfflineStatus without mutating anything."""
    return OfflineStatus(
        is_online=connectivity.is_online(),
        has_cached_data=has_cached_data(store, collections),
        pending_sync_count=store.count_queue(),
        unsynced_messages_count=store.count_unsynced_messages(messages_collection),
        last_sync_at=store.get_last_sync_at(),
    )
