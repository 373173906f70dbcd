"""Configuration utilities for offlinesync CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from offlinesync.core.config import (
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_SYNC_INTERVAL,
    RemoteConfig,
    SyncConfig,
)


def get_config_dir() -> Path:
    """Get the configuration directory for offlinesync.

    Returns:
        Path to ~/.offlinesync or equivalent.
    """
    return Path.home() / ".offlinesync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_db_path() -> Path:
    """Get the local store database path.

    Returns:
        Path to the configured database or default ~/.offlinesync/offline.db.
    """
    config = load_config()
    if config.get("db_path"):
        return Path(config["db_path"]).expanduser().resolve()
    return get_config_dir() / "offline.db"


def get_remote_config() -> RemoteConfig | None:
    """Build the remote configuration, or None if not configured."""
    config = load_config()
    if not config.get("remote_url") or not config.get("api_key"):
        return None
    return RemoteConfig(url=config["remote_url"], api_key=config["api_key"])


def get_sync_config() -> SyncConfig:
    """Build the engine configuration from the config file."""
    config = load_config()
    return SyncConfig(
        sync_interval=float(config.get("sync_interval", DEFAULT_SYNC_INTERVAL)),
        fetch_interval=float(config.get("fetch_interval", DEFAULT_FETCH_INTERVAL)),
    )
