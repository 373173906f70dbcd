"""Tests for the sync lifecycle controller."""

import sqlite3
import threading
import time
from unittest.mock import patch

import pytest

from offlinesync.client.connectivity import ManualConnectivity
from offlinesync.client.state import LocalStore
from offlinesync.client.sync import (
    ControllerState,
    OfflineError,
    QueueItem,
    SyncController,
)
from offlinesync.core.config import SyncConfig

# Long periods so that only the immediate drain pass runs during a test
SLOW = SyncConfig(sync_interval=60.0, fetch_interval=60.0)


@pytest.fixture
def controller(  # type: ignore[no-untyped-def]
    store: LocalStore, remote, connectivity: ManualConnectivity
):
    """Create a controller stopped after the test."""
    c = SyncController(store, remote, connectivity, config=SLOW)
    yield c
    c.stop_periodic_sync(wait=True)


class TestLifecycle:
    """Tests for starting and stopping the periodic loops."""

    def test_initial_state(self, controller: SyncController) -> None:
        """A new controller should be stopped and idle."""
        assert controller.state == ControllerState.STOPPED
        assert controller.is_running is False
        assert controller.is_syncing is False
        assert controller.initialized is False

    def test_start_drains_immediately(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote, wait_until
    ) -> None:
        """Starting should run one drain pass without waiting a period."""
        store.enqueue("create", "todos", {"id": "t1"})

        controller.start_periodic_sync()

        assert controller.is_running is True
        assert controller.initialized is True
        assert wait_until(lambda: store.count_queue() == 0)
        assert ("insert", "todos", "t1") in remote.calls

    def test_fetch_waits_for_its_period(  # type: ignore[no-untyped-def]
        self, controller: SyncController, remote, wait_until
    ) -> None:
        """The first fetch should only happen after fetch_interval."""
        controller.start_periodic_sync()

        assert wait_until(lambda: controller.stats.drain_passes == 1)
        assert [c for c in remote.calls if c[0] == "select"] == []

    def test_start_is_idempotent(  # type: ignore[no-untyped-def]
        self, controller: SyncController, wait_until
    ) -> None:
        """Repeated starts should not add loops."""
        controller.start_periodic_sync()
        controller.start_periodic_sync()
        controller.start_periodic_sync()

        assert wait_until(lambda: controller.stats.drain_passes >= 1)
        time.sleep(0.2)
        assert controller.stats.drain_passes == 1

    def test_stop(self, controller: SyncController) -> None:
        """Stopping should return the controller to STOPPED."""
        controller.start_periodic_sync()
        controller.stop_periodic_sync(wait=True)

        assert controller.state == ControllerState.STOPPED
        assert controller.initialized is True

    def test_stop_when_not_running(self, controller: SyncController) -> None:
        """Stopping a stopped controller should be a no-op."""
        controller.stop_periodic_sync()

        assert controller.is_running is False

    def test_restart_after_stop(  # type: ignore[no-untyped-def]
        self, controller: SyncController, wait_until
    ) -> None:
        """A stopped controller can be started again."""
        controller.start_periodic_sync()
        assert wait_until(lambda: controller.stats.drain_passes == 1)
        controller.stop_periodic_sync(wait=True)

        controller.start_periodic_sync()

        assert wait_until(lambda: controller.stats.drain_passes == 2)

    def test_periodic_drain(  # type: ignore[no-untyped-def]
        self, store: LocalStore, remote, connectivity: ManualConnectivity, wait_until
    ) -> None:
        """Items enqueued after start should be drained by later ticks."""
        controller = SyncController(
            store, remote, connectivity, config=SyncConfig(sync_interval=0.05)
        )
        controller.start_periodic_sync()
        try:
            assert wait_until(lambda: controller.stats.drain_passes >= 1)
            store.enqueue("create", "todos", {"id": "late"})
            assert wait_until(lambda: store.count_queue() == 0)
        finally:
            controller.stop_periodic_sync(wait=True)

        assert ("insert", "todos", "late") in remote.calls


class TestMutualExclusion:
    """Tests for the drain guard."""

    def test_overlapping_pass_is_skipped(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """A second pass while one is running should be a no-op."""
        remote.gate = threading.Event()
        store.enqueue("create", "todos", {"id": "t1"})
        worker = threading.Thread(target=controller.sync_offline_data)
        worker.start()
        assert remote.entered.wait(timeout=5.0)

        assert controller.is_syncing is True
        assert controller.sync_offline_data() is None

        remote.gate.set()
        worker.join(timeout=5.0)
        assert controller.is_syncing is False
        assert remote.writes() == [("insert", "todos", "t1")]

    def test_stop_resets_guard(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote, wait_until
    ) -> None:
        """After stop, a new pass may start even if the old one is still in flight."""
        remote.gate = threading.Event()
        store.enqueue("create", "todos", {"id": "t1"})
        first = threading.Thread(target=controller.sync_offline_data)
        first.start()
        assert remote.entered.wait(timeout=5.0)

        controller.stop_periodic_sync()
        assert controller.is_syncing is False

        second = threading.Thread(target=controller.sync_offline_data)
        second.start()
        assert wait_until(lambda: len(remote.writes()) == 2)

        remote.gate.set()
        first.join(timeout=5.0)
        second.join(timeout=5.0)
        assert controller.is_syncing is False

    def test_guard_released_after_error(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore
    ) -> None:
        """An unexpected error should end the pass and release the guard."""
        store.enqueue("create", "todos", {"id": "t1"})

        with patch.object(store, "read_queue", side_effect=RuntimeError("disk I/O error")):
            assert controller.sync_offline_data() is None

        assert controller.is_syncing is False
        assert controller.stats.errors == 1
        assert controller.sync_offline_data() is not None


class TestSyncOfflineData:
    """Tests for one drain pass through the controller."""

    def test_store_error_on_one_item_does_not_abort_pass(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """A local error on a failing item should not skip later items or the sweep."""
        remote.fail_ids.add("bad")
        store.enqueue("create", "todos", {"id": "bad"})
        store.enqueue("create", "todos", {"id": "good"})
        store.save_message({"id": "m1"})

        with patch.object(
            store, "increment_retry", side_effect=sqlite3.OperationalError("database is locked")
        ):
            result = controller.sync_offline_data()

        assert result is not None
        assert ("insert", "todos", "good") in remote.writes()
        assert [item.entity_id for item in store.read_queue()] == ["bad"]
        assert result.sweep is not None
        assert result.sweep.synced == ["m1"]

    def test_offline_is_noop(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote, connectivity
    ) -> None:
        """Offline passes should not touch the queue or the remote."""
        connectivity.set_online(False)
        store.enqueue("create", "todos", {"id": "t1"})
        store.save_message({"id": "m1"})

        assert controller.sync_offline_data() is None
        assert remote.calls == []
        assert store.count_queue() == 1
        assert store.get_last_sync_at() is None

    def test_drain_then_sweep(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """A non-empty queue should be drained, then messages swept."""
        store.enqueue("create", "todos", {"id": "t1", "agency_id": "a1"})
        store.save_message({"id": "m1"})

        result = controller.sync_offline_data()

        assert result is not None
        assert len(result.synced) == 1
        assert result.sweep is not None
        assert result.sweep.synced == ["m1"]
        assert remote.writes() == [("insert", "todos", "t1"), ("insert", "messages", "m1")]
        assert store.get_last_sync_at() is not None

    def test_empty_queue_skips_sweep(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """With nothing queued, the pass should end before the sweep."""
        store.save_message({"id": "m1"})

        result = controller.sync_offline_data()

        assert result is not None
        assert result.sweep is None
        assert remote.calls == []
        assert store.count_unsynced_messages() == 1

    def test_empty_queue_sweep_opt_in(  # type: ignore[no-untyped-def]
        self, store: LocalStore, remote, connectivity: ManualConnectivity
    ) -> None:
        """sweep_when_queue_empty should sweep even with an empty queue."""
        store.save_message({"id": "m1"})
        controller = SyncController(
            store, remote, connectivity, config=SyncConfig(sweep_when_queue_empty=True)
        )

        result = controller.sync_offline_data()

        assert result is not None
        assert result.sweep is not None
        assert store.count_unsynced_messages() == 0

    def test_stats(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """Stats should accumulate pass outcomes."""
        remote.fail_ids.add("bad")
        store.enqueue("create", "todos", {"id": "bad"})
        store.enqueue("create", "todos", {"id": "good"})
        store.save_message({"id": "m1"})

        controller.sync_offline_data()

        stats = controller.stats
        assert stats.drain_passes == 1
        assert stats.items_synced == 1
        assert stats.items_failed == 1
        assert stats.items_dropped == 0
        assert stats.messages_synced == 1

    def test_drop_callback_via_setter(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """set_on_item_dropped should reach the drain processor."""
        dropped: list[QueueItem] = []
        controller.set_on_item_dropped(lambda item, error: dropped.append(item))
        remote.fail_ids.add("t1")
        store.enqueue("update", "todos", {"id": "t1"})

        for _ in range(3):
            controller.sync_offline_data()

        assert [item.entity_id for item in dropped] == ["t1"]
        assert controller.stats.items_dropped == 1


class TestFetchAndForceSync:
    """Tests for reconciliation and force sync."""

    def test_fetch_and_cache(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """A fetch should refresh the cache and record its time."""
        remote.rows = {"todos": [{"id": "t1"}]}

        result = controller.fetch_and_cache_data()

        assert result is not None
        assert result.fetched["todos"] == 1
        assert controller.has_offline_data() is True
        assert store.get_last_fetch_at() is not None
        assert controller.stats.fetch_passes == 1

    def test_fetch_offline_is_noop(  # type: ignore[no-untyped-def]
        self, controller: SyncController, remote, connectivity
    ) -> None:
        """Offline fetches should not reach the remote."""
        connectivity.set_online(False)

        assert controller.fetch_and_cache_data() is None
        assert remote.calls == []

    def test_fetch_errors_counted(  # type: ignore[no-untyped-def]
        self, controller: SyncController, remote
    ) -> None:
        """Per-collection failures should show up in stats."""
        remote.fail_collections.update({"todos", "users"})

        result = controller.fetch_and_cache_data()

        assert result is not None
        assert sorted(result.failed) == ["todos", "users"]
        assert controller.stats.fetch_errors == 2

    def test_force_sync_offline_raises(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote, connectivity
    ) -> None:
        """force_sync_now should refuse to run offline."""
        connectivity.set_online(False)
        store.enqueue("create", "todos", {"id": "t1"})

        with pytest.raises(OfflineError, match="Cannot sync while offline"):
            controller.force_sync_now()

        assert remote.calls == []

    def test_force_sync_fetches_then_drains(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """force_sync_now should fetch first, then drain."""
        store.enqueue("create", "todos", {"id": "t1"})

        result = controller.force_sync_now()

        assert result is not None
        assert result.synced
        operations = [call[0] for call in remote.calls]
        assert operations.index("select") < operations.index("insert")

    def test_force_sync_reports_fetch_result(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, remote
    ) -> None:
        """The fetch outcome should be attached to the returned pass result."""
        remote.fail_collections.update({"todos", "messages", "users"})
        store.enqueue("create", "todos", {"id": "t1"})

        result = controller.force_sync_now()

        assert result is not None
        assert result.fetch is not None
        assert result.fetch.failed == ["todos", "messages", "users"]
        assert len(result.synced) == 1

    def test_plain_pass_has_no_fetch_result(self, controller: SyncController) -> None:
        """Only force_sync_now attaches a fetch result."""
        result = controller.sync_offline_data()

        assert result is not None
        assert result.fetch is None


class TestOfflineStatusApi:
    """Tests for the controller status queries."""

    def test_has_offline_data_empty(self, controller: SyncController) -> None:
        """An empty cache should report no offline data."""
        assert controller.has_offline_data() is False

    def test_status_counts(  # type: ignore[no-untyped-def]
        self, controller: SyncController, store: LocalStore, connectivity
    ) -> None:
        """Status should match the queue and unsynced messages exactly."""
        connectivity.set_online(False)
        store.enqueue("create", "todos", {"id": "t1"})
        store.enqueue("delete", "todos", {"id": "t0"})
        store.save_message({"id": "m1"})

        status = controller.get_offline_status()

        assert status.is_online is False
        assert status.pending_sync_count == 2
        assert status.unsynced_messages_count == 1
        assert status.has_cached_data is True


class TestStats:
    """Tests for stats updated from several threads."""

    def test_concurrent_updates_are_not_lost(self, controller: SyncController) -> None:
        """Counters bumped from many threads should add up exactly."""

        def bump() -> None:
            for _ in range(1000):
                controller._count(errors=1, fetch_errors=2)

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5.0)

        assert controller.stats.errors == 8000
        assert controller.stats.fetch_errors == 16000
