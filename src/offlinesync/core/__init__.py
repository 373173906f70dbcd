"""Core module - Shared configuration."""

from offlinesync.core.config import (
    DEFAULT_COLLECTIONS,
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MESSAGE_LIMIT,
    DEFAULT_SYNC_INTERVAL,
    CollectionSpec,
    RemoteConfig,
    SyncConfig,
)

__all__ = [
    "DEFAULT_COLLECTIONS",
    "DEFAULT_FETCH_INTERVAL",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MESSAGE_LIMIT",
    "DEFAULT_SYNC_INTERVAL",
    "CollectionSpec",
    "RemoteConfig",
    "SyncConfig",
]
