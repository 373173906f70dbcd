"""Shared fixtures for offlinesync tests."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from offlinesync.client.api import APIError
from offlinesync.client.connectivity import ManualConnectivity
from offlinesync.client.state import LocalStore


class FakeRemote:
    """In-memory remote store recording every call.

    Attributes:
        calls: (operation, collection, entity id) for every call, in order
        rows: Records inserted per collection (also served by select_all)
        fail_ids: Entity ids whose insert/update/delete raise APIError
        fail_collections: Collections whose select_all raises APIError
        gate: If set, insert/update/delete block until the event is set
        entered: Set as soon as a write call starts
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Any]] = []
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.fail_ids: set[Any] = set()
        self.fail_collections: set[str] = set()
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def _write(self, operation: str, collection: str, record_id: Any) -> None:
        self.calls.append((operation, collection, record_id))
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        if record_id in self.fail_ids:
            raise APIError(f"{operation} rejected", 400)

    def insert(self, collection: str, record: dict[str, Any]) -> None:
        self._write("insert", collection, record.get("id"))
        self.rows.setdefault(collection, []).append(dict(record))

    def update_by_id(self, collection: str, record_id: Any, record: dict[str, Any]) -> None:
        self._write("update", collection, record_id)

    def delete_by_id(self, collection: str, record_id: Any) -> None:
        self._write("delete", collection, record_id)

    def select_all(
        self,
        collection: str,
        order_by: str | None = None,
        descending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self.calls.append(("select", collection, None))
        if collection in self.fail_collections:
            raise APIError("select failed", 500)
        rows = list(self.rows.get(collection, []))
        return rows[:limit] if limit is not None else rows

    def writes(self) -> list[tuple[str, str, Any]]:
        """Calls other than select_all."""
        return [call for call in self.calls if call[0] != "select"]


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LocalStore]:
    """Create a LocalStore instance."""
    s = LocalStore(tmp_path / "offline.db")
    yield s
    s.close()


@pytest.fixture
def remote() -> FakeRemote:
    """Create an in-memory remote store."""
    return FakeRemote()


@pytest.fixture
def connectivity() -> ManualConnectivity:
    """Create an online connectivity signal."""
    return ManualConnectivity(online=True)


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a condition until it holds or the timeout expires."""

    def _wait(condition: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if condition():
                return True
            time.sleep(0.01)
        return condition()

    return _wait
