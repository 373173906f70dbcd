"""Sweeper for messages created offline outside the mutation queue.

Offline-created messages are cached with ``synced = 0`` instead of being
queued. Each sweep inserts them remotely and marks the successful ones as
synced in a single batch. Failures stay unsynced and are retried on every
following sweep, with no ceiling and no ordering between messages.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from offlinesync.client.sync.types import SweepResult

if TYPE_CHECKING:
    from offlinesync.client.state import LocalStore
    from offlinesync.client.sync.types import RemoteProtocol

logger = logging.getLogger(__name__)


class UnsyncedRecordSweeper:
    """Pushes unsynced offline-created messages to the remote store."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteProtocol,
        collection: str = "messages",
    ) -> None:
        """Initialize the sweeper.

        Args:
            store: Local store holding the unsynced messages.
            remote: Remote store receiving the inserts.
            collection: Collection of the unsynced messages.
        """
        self._store = store
        self._remote = remote
        self._collection = collection

    def sweep(self) -> SweepResult:
        """Insert every unsynced message, marking successes as synced."""
        result = SweepResult()
        messages = self._store.read_unsynced_messages(self._collection)
        if not messages:
            return result

        logger.debug("Syncing %d unsynced messages", len(messages))

        for message in messages:
            message_id = str(message.get("id"))
            try:
                self._remote.insert(self._collection, message)
            except Exception as e:
                logger.error("Failed to sync message %s: %s", message_id, e)
                result.failed.append(message_id)
            else:
                result.synced.append(message_id)

        if result.synced:
            self._store.mark_messages_synced(result.synced, self._collection)
            logger.debug("Synced %d messages", len(result.synced))

        return result
