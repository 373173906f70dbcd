"""Sync lifecycle controller.

This module provides:
- SyncController: Owns the periodic loops and the drain mutual exclusion

The controller is the public surface of the sync engine:

    | Operation              | Effect                                          |
    |------------------------|-------------------------------------------------|
    | start_periodic_sync()  | Start drain + fetch loops (idempotent)          |
    | stop_periodic_sync()   | Stop both loops, reset the drain guard          |
    | sync_offline_data()    | One drain pass + unsynced-message sweep         |
    | fetch_and_cache_data() | One reconciliation fetch                        |
    | has_offline_data()     | Any cached data in the tracked collections?     |
    | get_offline_status()   | Connectivity + pending work summary             |
    | force_sync_now()       | Fetch then drain; raises OfflineError if offline |

Two daemon threads run while the controller is RUNNING: the drain loop runs
one pass immediately and then every ``sync_interval`` seconds, the fetch
loop runs every ``fetch_interval`` seconds. Drain passes never overlap: the
guard is an atomic test-and-set under a lock, whichever thread calls
``sync_offline_data()``. Fetches are not guarded and may overlap a drain.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from offlinesync.client.sync.drain import QueueDrainProcessor
from offlinesync.client.sync.fetcher import ReconciliationFetcher
from offlinesync.client.sync.status import OfflineStatus, collect_status, has_cached_data
from offlinesync.client.sync.sweeper import UnsyncedRecordSweeper
from offlinesync.client.sync.types import (
    ControllerState,
    DrainResult,
    FetchResult,
    OfflineError,
    SyncStats,
)
from offlinesync.core.config import SyncConfig

if TYPE_CHECKING:
    from collections.abc import Callable

    from offlinesync.client.connectivity import Connectivity
    from offlinesync.client.state import LocalStore
    from offlinesync.client.sync.types import ItemDroppedCallback, RemoteProtocol

logger = logging.getLogger(__name__)


class SyncController:
    """Lifecycle controller and public API of the sync engine.

    Usage:
        controller = SyncController(store, remote, connectivity)

        # Start background syncing (safe to call from many places)
        controller.start_periodic_sync()

        # ... mutations are enqueued by the application ...

        # Stop when going offline or shutting down
        controller.stop_periodic_sync()
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteProtocol,
        connectivity: Connectivity,
        config: SyncConfig | None = None,
        on_item_dropped: ItemDroppedCallback | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            store: Local store (queue, cache, unsynced messages).
            remote: Remote authoritative store.
            connectivity: Online/offline signal checked before network work.
            config: Engine configuration (defaults to SyncConfig()).
            on_item_dropped: Called with (item, error) when a queue item is
                dropped at the retry ceiling.
        """
        self._store = store
        self._remote = remote
        self._connectivity = connectivity
        self._config = config or SyncConfig()

        self._drain = QueueDrainProcessor(
            store,
            remote,
            max_retries=self._config.max_retries,
            on_item_dropped=on_item_dropped,
            scope_field=self._config.scope_field,
            scoped_collection=self._config.scoped_collection,
        )
        self._sweeper = UnsyncedRecordSweeper(
            store, remote, collection=self._config.messages_collection
        )
        self._fetcher = ReconciliationFetcher(
            store, remote, collections=self._config.collections
        )

        # Lifecycle state
        self._lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._drain_thread: threading.Thread | None = None
        self._fetch_thread: threading.Thread | None = None
        self._initialized = False

        # Token of the drain pass holding the guard (None = no pass running)
        self._active_pass: object | None = None

        self._stats = SyncStats()
        self._stats_lock = threading.Lock()

    @property
    def config(self) -> SyncConfig:
        """Engine configuration."""
        return self._config

    @property
    def state(self) -> ControllerState:
        """Get current controller state."""
        if self._drain_thread is not None:
            return ControllerState.RUNNING
        return ControllerState.STOPPED

    @property
    def is_running(self) -> bool:
        """Check if the periodic loops are registered."""
        return self.state == ControllerState.RUNNING

    @property
    def is_syncing(self) -> bool:
        """Check if a drain pass holds the guard."""
        return self._active_pass is not None

    @property
    def initialized(self) -> bool:
        """Check if periodic sync was started at least once."""
        return self._initialized

    @property
    def stats(self) -> SyncStats:
        """Get controller statistics."""
        return self._stats

    def _count(self, **increments: int) -> None:
        """Add to stats counters; the drain and fetch loops both update them."""
        with self._stats_lock:
            for name, value in increments.items():
                setattr(self._stats, name, getattr(self._stats, name) + value)

    def set_on_item_dropped(self, callback: ItemDroppedCallback | None) -> None:
        """Set callback for queue items dropped at the retry ceiling."""
        self._drain.set_on_item_dropped(callback)

    # === Lifecycle ===

    def start_periodic_sync(self) -> None:
        """Start the drain and fetch loops.

        Calling it while already running is a no-op. The drain loop runs one
        pass right away so a reconnect is reflected without waiting a period.
        """
        with self._lock:
            if self._drain_thread is not None:
                return

            logger.info(
                "Starting periodic sync (drain every %.1fs, fetch every %.1fs)",
                self._config.sync_interval,
                self._config.fetch_interval,
            )
            self._initialized = True
            stop_event = threading.Event()
            self._stop_event = stop_event
            self._drain_thread = threading.Thread(
                target=self._run_periodic,
                args=(
                    "drain",
                    self.sync_offline_data,
                    self._config.sync_interval,
                    stop_event,
                    True,
                ),
                name="SyncDrainLoop",
                daemon=True,
            )
            self._fetch_thread = threading.Thread(
                target=self._run_periodic,
                args=(
                    "fetch",
                    self.fetch_and_cache_data,
                    self._config.fetch_interval,
                    stop_event,
                    False,
                ),
                name="SyncFetchLoop",
                daemon=True,
            )
            self._drain_thread.start()
            self._fetch_thread.start()

    def stop_periodic_sync(self, wait: bool = False, timeout: float = 5.0) -> None:
        """Stop both loops and reset the drain guard.

        A pass already in flight is not cancelled; only future scheduling
        stops.

        Args:
            wait: Join the loop threads before returning.
            timeout: Maximum seconds to wait per thread when wait is True.
        """
        with self._lock:
            threads = [t for t in (self._drain_thread, self._fetch_thread) if t]
            if self._stop_event is not None:
                self._stop_event.set()
            self._stop_event = None
            self._drain_thread = None
            self._fetch_thread = None
            self._active_pass = None

        if wait:
            current = threading.current_thread()
            for thread in threads:
                if thread is not current and thread.is_alive():
                    thread.join(timeout=timeout)

        logger.info("Stopped periodic sync")

    def _run_periodic(
        self,
        name: str,
        func: Callable[[], object],
        interval: float,
        stop_event: threading.Event,
        run_immediately: bool,
    ) -> None:
        """Loop body of a periodic thread."""
        logger.debug("%s loop started", name)
        if run_immediately:
            self._run_safely(name, func)
        while not stop_event.wait(interval):
            self._run_safely(name, func)
        logger.debug("%s loop ended", name)

    def _run_safely(self, name: str, func: Callable[[], object]) -> None:
        """Run one tick, never letting an exception kill the loop."""
        try:
            func()
        except Exception:
            logger.exception("Error in %s loop", name)
            self._count(errors=1)

    # === Drain guard ===

    def _try_begin_pass(self) -> object | None:
        """Atomically claim the drain guard.

        Returns:
            A token identifying the pass, or None if a pass is running.
        """
        with self._lock:
            if self._active_pass is not None:
                return None
            token = object()
            self._active_pass = token
            return token

    def _end_pass(self, token: object) -> None:
        """Release the guard if this pass still holds it."""
        with self._lock:
            if self._active_pass is token:
                self._active_pass = None

    # === Sync operations ===

    def sync_offline_data(self) -> DrainResult | None:
        """Drain the mutation queue, then sweep unsynced messages.

        Returns:
            The pass result, or None if skipped (offline, pass already
            running) or aborted by an unexpected error.
        """
        if self._active_pass is not None:
            return None

        if not self._connectivity.is_online():
            logger.debug("Cannot sync: offline")
            return None

        token = self._try_begin_pass()
        if token is None:
            return None

        try:
            return self._run_drain_pass()
        except Exception:
            logger.exception("Sync error")
            self._count(errors=1)
            return None
        finally:
            self._end_pass(token)

    def _run_drain_pass(self) -> DrainResult:
        self._count(drain_passes=1)
        result = self._drain.drain()

        self._count(
            items_synced=len(result.synced),
            items_failed=len(result.failed),
            items_dropped=len(result.dropped),
        )

        if result.processed or self._config.sweep_when_queue_empty:
            result.sweep = self._sweeper.sweep()
            self._count(messages_synced=len(result.sweep.synced))
            logger.debug(
                "Sync complete: %d synced, %d failed, %d dropped",
                len(result.synced),
                len(result.failed),
                len(result.dropped),
            )

        self._store.set_last_sync_at(time.time())
        return result

    def fetch_and_cache_data(self) -> FetchResult | None:
        """Refresh the local cache from the remote store.

        Returns:
            The fetch result, or None if offline or aborted.
        """
        if not self._connectivity.is_online():
            logger.debug("Cannot fetch: offline")
            return None

        try:
            result = self._fetcher.fetch()
            self._store.set_last_fetch_at(time.time())
        except Exception:
            logger.exception("Error fetching and caching data")
            self._count(errors=1)
            return None

        self._count(fetch_passes=1, fetch_errors=len(result.failed))
        return result

    def force_sync_now(self) -> DrainResult | None:
        """Fetch fresh data, then drain the queue.

        Returns:
            The pass result with the fetch result attached as ``fetch``
            (None there if the fetch was aborted), or None if the drain
            pass was skipped.

        Raises:
            OfflineError: If the device is offline. Nothing is attempted.
        """
        logger.debug("Force syncing")
        if not self._connectivity.is_online():
            raise OfflineError("Cannot sync while offline")

        fetch_result = self.fetch_and_cache_data()
        result = self.sync_offline_data()
        if result is not None:
            result.fetch = fetch_result
        return result

    # === Status ===

    def has_offline_data(self) -> bool:
        """Check if any tracked collection has cached data."""
        return has_cached_data(self._store, self._config.collection_names)

    def get_offline_status(self) -> OfflineStatus:
        """Summarize connectivity and pending offline work."""
        return collect_status(
            self._store,
            self._connectivity,
            self._config.collection_names,
            messages_collection=self._config.messages_collection,
        )
