"""Shared configuration classes for offlinesync.

This module defines the remote connection settings and the tuning knobs of
the sync engine (periods, retry ceiling, tracked collections).
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Engine defaults
DEFAULT_SYNC_INTERVAL = 5.0  # seconds between queue drain passes
DEFAULT_FETCH_INTERVAL = 30.0  # seconds between reconciliation fetches
DEFAULT_MAX_RETRIES = 3  # attempts before a queue item is dropped
DEFAULT_MESSAGE_LIMIT = 500


@dataclass
class RemoteConfig:
    """Configuration for connecting to the remote data service.

    Attributes:
        url: Base URL of the service (e.g., "https://project.example.com").
        api_key: Key sent as ``apikey`` header and bearer token.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    url: str
    api_key: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize service URL."""
        self.url = self.url.rstrip("/")

    @property
    def rest_url(self) -> str:
        """Get the base URL of the REST collections endpoint."""
        return f"{self.url}/rest/v1"

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.url.startswith("https://")


@dataclass(frozen=True)
class CollectionSpec:
    """How a tracked collection is pulled during reconciliation.

    Attributes:
        name: Collection (table) name on the remote service.
        order_by: Column to order by, or None for server order.
        descending: Sort direction when order_by is set.
        limit: Maximum number of records to pull, or None for all.
    """

    name: str
    order_by: str | None = None
    descending: bool = True
    limit: int | None = None


DEFAULT_COLLECTIONS: tuple[CollectionSpec, ...] = (
    CollectionSpec("todos", order_by="created_at"),
    CollectionSpec("messages", order_by="created_at", limit=DEFAULT_MESSAGE_LIMIT),
    CollectionSpec("users"),
)


@dataclass
class SyncConfig:
    """Configuration for the sync engine.

    Attributes:
        sync_interval: Seconds between queue drain passes.
        fetch_interval: Seconds between reconciliation fetches.
        max_retries: Failed attempts after which a queue item is dropped.
        collections: Collections pulled by the reconciliation fetcher.
        messages_collection: Collection holding offline-created messages.
        scope_field: Field every scoped record should carry (None disables).
        scoped_collection: Collection whose creates are checked for scope_field.
        sweep_when_queue_empty: Run the unsynced-message sweep even when the
            queue is empty (by default an empty queue ends the pass).
    """

    sync_interval: float = DEFAULT_SYNC_INTERVAL
    fetch_interval: float = DEFAULT_FETCH_INTERVAL
    max_retries: int = DEFAULT_MAX_RETRIES
    collections: tuple[CollectionSpec, ...] = field(default=DEFAULT_COLLECTIONS)
    messages_collection: str = "messages"
    scope_field: str | None = "agency_id"
    scoped_collection: str = "todos"
    sweep_when_queue_empty: bool = False

    def __post_init__(self) -> None:
        """Validate intervals and retry ceiling."""
        if self.sync_interval <= 0 or self.fetch_interval <= 0:
            raise ValueError("Sync intervals must be positive")
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    @property
    def collection_names(self) -> list[str]:
        """Names of the tracked collections, in fetch order."""
        return [spec.name for spec in self.collections]
