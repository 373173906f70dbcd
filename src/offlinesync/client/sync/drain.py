"""Queue drain processor.

This module provides:
- QueueDrainProcessor: Applies queued mutations to the remote store

Each pass reads the whole queue, oldest first, and applies items one at a
time so that a create always reaches the remote store before a later update
of the same entity:

    | Operation | Remote call                           |
    |-----------|---------------------------------------|
    | CREATE    | insert(collection, payload)           |
    | UPDATE    | update_by_id(collection, id, payload) |
    | DELETE    | delete_by_id(collection, id)          |

A successful item is removed from the queue. A failed item has its retry
count incremented and stays queued until the count reaches the ceiling, at
which point it is removed anyway (bounded retry, then drop). One failing
item never blocks the items behind it, whether the remote call or the local
bookkeeping fails. An item the remote accepted is never sent twice, even if
removing it from the queue fails.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from offlinesync.client.sync.types import (
    DrainResult,
    QueueItem,
    QueueOperation,
    SyncError,
)
from offlinesync.core.config import DEFAULT_MAX_RETRIES

if TYPE_CHECKING:
    from offlinesync.client.state import LocalStore
    from offlinesync.client.sync.types import ItemDroppedCallback, RemoteProtocol

logger = logging.getLogger(__name__)


class QueueDrainProcessor:
    """Applies pending queue items to the remote store, in order.

    Usage:
        processor = QueueDrainProcessor(store, remote)
        result = processor.drain()
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteProtocol,
        max_retries: int = DEFAULT_MAX_RETRIES,
        on_item_dropped: ItemDroppedCallback | None = None,
        scope_field: str | None = None,
        scoped_collection: str | None = None,
    ) -> None:
        """Initialize the processor.

        Args:
            store: Local store holding the queue.
            remote: Remote store receiving the mutations.
            max_retries: Failed attempts after which an item is dropped.
            on_item_dropped: Called with (item, error) when an item is dropped.
            scope_field: Field that creates in scoped_collection should carry.
            scoped_collection: Collection checked for scope_field.
        """
        self._store = store
        self._remote = remote
        self._max_retries = max_retries
        self._on_item_dropped = on_item_dropped
        self._scope_field = scope_field
        self._scoped_collection = scoped_collection

        # Queue ids applied remotely whose local removal failed
        self._applied: set[str] = set()

    def set_on_item_dropped(self, callback: ItemDroppedCallback | None) -> None:
        """Set callback for items dropped at the retry ceiling."""
        self._on_item_dropped = callback

    def drain(self) -> DrainResult:
        """Run one drain pass over a snapshot of the queue.

        Items enqueued while the pass runs are left for the next pass.
        """
        result = DrainResult()
        items = self._store.read_queue()
        if not items:
            return result

        logger.debug("Syncing %d queued operations", len(items))

        for item in items:
            if item.id in self._applied:
                # Already applied remotely; only the local removal is missing
                if self._remove_applied(item):
                    logger.debug("Removed previously applied %r", item)
                continue

            try:
                self.apply(item)
            except Exception as e:
                logger.error(
                    "Failed to sync %s %s (%s): %s",
                    item.operation.value,
                    item.collection,
                    item.id,
                    e,
                )
                try:
                    self._handle_failure(item, e, result)
                except Exception:
                    logger.exception("Error recording failed attempt for %r", item)
                    if item.id not in result.failed + result.dropped:
                        result.failed.append(item.id)
                continue

            result.synced.append(item.id)
            logger.debug(
                "Synced %s %s (%s)", item.operation.value, item.collection, item.id
            )
            self._applied.add(item.id)
            self._remove_applied(item)

        return result

    def _remove_applied(self, item: QueueItem) -> bool:
        """Remove an item the remote store already accepted.

        If the removal fails the item stays queued but is never sent again;
        later passes only retry the removal.
        """
        try:
            self._store.remove_queue_item(item.id)
        except Exception:
            logger.exception("Synced %r but could not remove it from the queue", item)
            return False
        self._applied.discard(item.id)
        return True

    def apply(self, item: QueueItem) -> None:
        """Dispatch a single item to the remote store.

        Raises:
            SyncError: If an update/delete payload carries no id.
            Exception: Whatever the remote store raises.
        """
        if item.operation == QueueOperation.CREATE:
            self._check_scope(item)
            self._remote.insert(item.collection, item.payload)
            return

        record_id = item.entity_id
        if record_id is None:
            raise SyncError(f"{item.operation.value} payload has no 'id'")

        if item.operation == QueueOperation.UPDATE:
            self._remote.update_by_id(item.collection, record_id, item.payload)
        elif item.operation == QueueOperation.DELETE:
            self._remote.delete_by_id(item.collection, record_id)

    def _check_scope(self, item: QueueItem) -> None:
        """Warn when a scoped create lacks its scope field."""
        if (
            self._scope_field
            and item.collection == self._scoped_collection
            and not item.payload.get(self._scope_field)
        ):
            logger.warning(
                "%s record %s missing %s - data isolation risk",
                item.collection,
                item.entity_id,
                self._scope_field,
            )

    def _handle_failure(
        self,
        item: QueueItem,
        error: Exception,
        result: DrainResult,
    ) -> None:
        """Count a failed attempt, dropping the item at the ceiling."""
        retries = self._store.increment_retry(item.id)
        if retries is None:
            # Removed by someone else while we were sending it
            result.failed.append(item.id)
            return

        if retries < self._max_retries:
            result.failed.append(item.id)
            return

        self._store.remove_queue_item(item.id)
        result.dropped.append(item.id)
        logger.error(
            "Max retries (%d) reached for %r, removed from queue",
            self._max_retries,
            item,
        )

        if self._on_item_dropped:
            item.retry_count = retries
            try:
                self._on_item_dropped(item, error)
            except Exception:
                logger.exception("Error in item dropped callback")
