"""Reconciliation fetcher: pulls authoritative snapshots into the cache.

Each tracked collection is fetched and written independently. A failure on
one collection is logged and the remaining collections are still fetched;
no cross-collection atomicity is provided. The fetcher never touches the
mutation queue, so it may run while a drain pass is in flight.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from offlinesync.client.sync.types import FetchResult
from offlinesync.core.config import DEFAULT_COLLECTIONS

if TYPE_CHECKING:
    from collections.abc import Sequence

    from offlinesync.client.state import LocalStore
    from offlinesync.client.sync.types import RemoteProtocol
    from offlinesync.core.config import CollectionSpec

logger = logging.getLogger(__name__)


class ReconciliationFetcher:
    """Overwrites the local cache with the remote copy of each collection."""

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteProtocol,
        collections: Sequence[CollectionSpec] = DEFAULT_COLLECTIONS,
    ) -> None:
        self._store = store
        self._remote = remote
        self._collections = tuple(collections)

    @property
    def collections(self) -> tuple[CollectionSpec, ...]:
        """Collections pulled on each fetch."""
        return self._collections

    def fetch(self) -> FetchResult:
        """Fetch and cache every tracked collection."""
        result = FetchResult()
        for spec in self._collections:
            try:
                records = self._remote.select_all(
                    spec.name,
                    order_by=spec.order_by,
                    descending=spec.descending,
                    limit=spec.limit,
                )
                count = self._store.write_cached_collection(spec.name, records)
            except Exception:
                logger.exception("Error fetching and caching %s", spec.name)
                result.failed.append(spec.name)
            else:
                result.fetched[spec.name] = count
                logger.debug("Cached %d %s", count, spec.name)
        return result
