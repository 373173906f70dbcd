"""Local durable store for the sync client.

This module provides:
- LocalStore: SQLite-based store holding the mutation queue, cached
  collection snapshots, and unsynced offline-created messages

Architecture:
    The application writes mutations to the queue (enqueue) and reads
    cached snapshots. The sync engine drains the queue, sweeps unsynced
    messages, and overwrites the cached snapshots on reconciliation.

    Both sides share one store; every method takes the lock and commits
    on its own, so the engine never assumes exclusive ownership. Removing
    or updating a queue item that vanished in the meantime is a no-op.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from offlinesync.client.sync.types import QueueItem, QueueOperation

logger = logging.getLogger(__name__)


def _record_id(record: dict[str, Any]) -> str:
    """Get the cache key of a record."""
    if record.get("id") is None:
        raise ValueError("Cached records must carry an 'id' field")
    return str(record["id"])


def _dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


class LocalStore:
    """SQLite-based local store for offline data.

    Tables:
        sync_queue: pending mutations, ordered by (enqueued_at, rowid)
        cached_records: collection snapshots with a per-record synced marker
        sync_state: key-value sync metadata (last sync/fetch timestamps)
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize local store database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Lock for thread-safe database access
        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS sync_queue (
                id TEXT PRIMARY KEY,
                operation TEXT NOT NULL,
                collection TEXT NOT NULL,
                payload TEXT NOT NULL,
                retry_count INTEGER NOT NULL DEFAULT 0,
                enqueued_at REAL NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_sync_queue_enqueued_at
            ON sync_queue(enqueued_at);

            CREATE TABLE IF NOT EXISTS cached_records (
                collection TEXT NOT NULL,
                record_id TEXT NOT NULL,
                data TEXT NOT NULL,
                synced INTEGER NOT NULL DEFAULT 1,
                PRIMARY KEY (collection, record_id)
            );

            -- Key-value sync state
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    @property
    def db_path(self) -> Path:
        """Path of the SQLite database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run several statements atomically."""
        with self._lock:
            self._conn.execute("BEGIN")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")

    # === Mutation queue ===

    def enqueue(
        self,
        operation: QueueOperation | str,
        collection: str,
        payload: dict[str, Any],
    ) -> QueueItem:
        """Append a mutation to the sync queue.

        Args:
            operation: create, update or delete.
            collection: Target collection name.
            payload: Entity snapshot, or at least {"id": ...} for deletes.

        Returns:
            The queued item.
        """
        operation = QueueOperation(operation)
        item = QueueItem(
            id=f"{collection}-{operation.value}-{uuid.uuid4().hex[:12]}",
            operation=operation,
            collection=collection,
            payload=dict(payload),
            retry_count=0,
            enqueued_at=time.time(),
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO sync_queue
                (id, operation, collection, payload, retry_count, enqueued_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    item.operation.value,
                    item.collection,
                    _dumps(item.payload),
                    item.retry_count,
                    item.enqueued_at,
                ),
            )
        logger.debug("Queued %r", item)
        return item

    def read_queue(self) -> list[QueueItem]:
        """Read the whole queue, oldest first."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM sync_queue ORDER BY enqueued_at, rowid"
            )
            rows = cursor.fetchall()
        return [QueueItem.from_row(row) for row in rows]

    def get_queue_item(self, item_id: str) -> QueueItem | None:
        """Get a queue item by its local id."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT * FROM sync_queue WHERE id = ?",
                (item_id,),
            )
            row = cursor.fetchone()
        return QueueItem.from_row(row) if row else None

    def remove_queue_item(self, item_id: str) -> bool:
        """Remove an item from the queue.

        Returns:
            True if the item existed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM sync_queue WHERE id = ?",
                (item_id,),
            )
        return cursor.rowcount > 0

    def increment_retry(self, item_id: str) -> int | None:
        """Increment the retry count of a queue item.

        Returns:
            The new retry count, or None if the item is no longer queued.
        """
        with self._lock:
            self._conn.execute(
                "UPDATE sync_queue SET retry_count = retry_count + 1 WHERE id = ?",
                (item_id,),
            )
            cursor = self._conn.execute(
                "SELECT retry_count FROM sync_queue WHERE id = ?",
                (item_id,),
            )
            row = cursor.fetchone()
        return row["retry_count"] if row else None

    def count_queue(self) -> int:
        """Number of pending queue items."""
        with self._lock:
            cursor = self._conn.execute("SELECT COUNT(*) AS count FROM sync_queue")
            return int(cursor.fetchone()["count"])

    def clear_queue(self) -> int:
        """Remove every pending queue item.

        Returns:
            Number of items removed.
        """
        with self._lock:
            cursor = self._conn.execute("DELETE FROM sync_queue")
        logger.info("Cleared %d items from sync queue", cursor.rowcount)
        return cursor.rowcount

    # === Cached collections ===

    def read_cached_collection(self, collection: str) -> list[dict[str, Any]]:
        """Read every cached record of a collection."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT data FROM cached_records WHERE collection = ? ORDER BY rowid",
                (collection,),
            )
            rows = cursor.fetchall()
        return [json.loads(row["data"]) for row in rows]

    def write_cached_collection(
        self,
        collection: str,
        records: Iterable[dict[str, Any]],
    ) -> int:
        """Overwrite the cached snapshot of a collection.

        Records are written as synced. Locally-created records that are
        still unsynced and absent from the new snapshot are kept, so a
        reconciliation never discards work not yet pushed.

        Returns:
            Number of records written.
        """
        rows = [(collection, _record_id(r), _dumps(r)) for r in records]
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM cached_records WHERE collection = ? AND synced = 1",
                (collection,),
            )
            conn.executemany(
                """
                INSERT OR REPLACE INTO cached_records
                (collection, record_id, data, synced) VALUES (?, ?, ?, 1)
                """,
                rows,
            )
        return len(rows)

    def save_record(
        self,
        collection: str,
        record: dict[str, Any],
        *,
        synced: bool = True,
    ) -> None:
        """Insert or replace a single cached record."""
        with self._lock:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO cached_records
                (collection, record_id, data, synced) VALUES (?, ?, ?, ?)
                """,
                (collection, _record_id(record), _dumps(record), int(synced)),
            )

    def get_record(self, collection: str, record_id: Any) -> dict[str, Any] | None:
        """Get a cached record by its entity id."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT data FROM cached_records WHERE collection = ? AND record_id = ?",
                (collection, str(record_id)),
            )
            row = cursor.fetchone()
        return json.loads(row["data"]) if row else None

    def delete_record(self, collection: str, record_id: Any) -> None:
        """Remove a cached record."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM cached_records WHERE collection = ? AND record_id = ?",
                (collection, str(record_id)),
            )

    def count_cached(self, collection: str) -> int:
        """Number of cached records in a collection."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT COUNT(*) AS count FROM cached_records WHERE collection = ?",
                (collection,),
            )
            return int(cursor.fetchone()["count"])

    # === Unsynced messages ===

    def save_message(
        self,
        record: dict[str, Any],
        *,
        synced: bool = False,
        collection: str = "messages",
    ) -> None:
        """Cache a message, unsynced by default (created while offline)."""
        self.save_record(collection, record, synced=synced)

    def read_unsynced_messages(self, collection: str = "messages") -> list[dict[str, Any]]:
        """Read messages created offline and not yet pushed."""
        with self._lock:
            cursor = self._conn.execute(
                """
                SELECT data FROM cached_records
                WHERE collection = ? AND synced = 0 ORDER BY rowid
                """,
                (collection,),
            )
            rows = cursor.fetchall()
        return [json.loads(row["data"]) for row in rows]

    def count_unsynced_messages(self, collection: str = "messages") -> int:
        """Number of messages waiting for the sweep."""
        with self._lock:
            cursor = self._conn.execute(
                """
                SELECT COUNT(*) AS count FROM cached_records
                WHERE collection = ? AND synced = 0
                """,
                (collection,),
            )
            return int(cursor.fetchone()["count"])

    def mark_messages_synced(
        self,
        record_ids: Iterable[Any],
        collection: str = "messages",
    ) -> None:
        """Mark messages as synced in one batch."""
        params = [(collection, str(record_id)) for record_id in record_ids]
        if not params:
            return
        with self._transaction() as conn:
            conn.executemany(
                "UPDATE cached_records SET synced = 1 WHERE collection = ? AND record_id = ?",
                params,
            )

    # === Sync state ===

    def get_state(self, key: str) -> str | None:
        """Get a sync state value."""
        with self._lock:
            cursor = self._conn.execute(
                "SELECT value FROM sync_state WHERE key = ?",
                (key,),
            )
            row = cursor.fetchone()
        return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Set a sync state value."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_last_sync_at(self) -> float | None:
        """Get timestamp of last completed drain pass."""
        value = self.get_state("last_sync_at")
        return float(value) if value else None

    def set_last_sync_at(self, timestamp: float) -> None:
        """Set timestamp of last completed drain pass."""
        self.set_state("last_sync_at", str(timestamp))

    def get_last_fetch_at(self) -> float | None:
        """Get timestamp of last reconciliation fetch."""
        value = self.get_state("last_fetch_at")
        return float(value) if value else None

    def set_last_fetch_at(self, timestamp: float) -> None:
        """Set timestamp of last reconciliation fetch."""
        self.set_state("last_fetch_at", str(timestamp))

    # === Maintenance ===

    def clear_all(self) -> None:
        """Remove queue, cached records and sync state."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM sync_queue")
            conn.execute("DELETE FROM cached_records")
            conn.execute("DELETE FROM sync_state")
        logger.info("Cleared all local offline data")
