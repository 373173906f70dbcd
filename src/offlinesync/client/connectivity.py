"""Connectivity signals for the sync engine.

This module provides:
- Connectivity: Protocol for the "is the device online" oracle
- ManualConnectivity: Flag flipped by the application's online/offline events
- RemoteHealthConnectivity: Probes the remote service health endpoint

The engine only ever asks ``is_online()`` synchronously before network
work; it never subscribes to changes.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from offlinesync.client.api import RemoteStore

logger = logging.getLogger(__name__)

# Seconds a health probe answer is reused before probing again
DEFAULT_PROBE_TTL = 5.0


class Connectivity(Protocol):
    """Protocol for connectivity signals."""

    def is_online(self) -> bool:
        """Return True if network operations should be attempted."""
        ...


class ManualConnectivity:
    """Connectivity flag set explicitly by the application."""

    def __init__(self, online: bool = True) -> None:
        self._online = online

    def is_online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Update the flag (e.g., from OS network events)."""
        if online != self._online:
            logger.info("Connectivity changed: %s", "online" if online else "offline")
        self._online = online


class RemoteHealthConnectivity:
    """Connectivity derived from the remote service health check.

    The answer is cached for ``ttl`` seconds so that the drain loop does
    not add a probe request to every pass.
    """

    def __init__(self, remote: RemoteStore, ttl: float = DEFAULT_PROBE_TTL) -> None:
        """Initialize the probe.

        Args:
            remote: Remote store used for health checks.
            ttl: Seconds a probe result is reused.
        """
        self._remote = remote
        self._ttl = ttl
        self._lock = threading.Lock()
        self._online: bool | None = None
        self._checked_at = 0.0

    def is_online(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if self._online is None or now - self._checked_at >= self._ttl:
                online = self._remote.health_check()
                if self._online is not None and online != self._online:
                    logger.info(
                        "Remote service %s", "reachable" if online else "unreachable"
                    )
                self._online = online
                self._checked_at = now
            return self._online

    def invalidate(self) -> None:
        """Force a fresh probe on the next query."""
        with self._lock:
            self._online = None
