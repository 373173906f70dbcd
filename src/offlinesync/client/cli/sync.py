"""Sync commands for offlinesync CLI.

Commands:
- sync: Fetch fresh data and drain the queue now
- watch: Run periodic sync until interrupted
- status: Show connectivity and pending offline work
"""

from __future__ import annotations

import json
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING

import click

from offlinesync.client.cli.config import (
    get_db_path,
    get_remote_config,
    get_sync_config,
)

if TYPE_CHECKING:
    from offlinesync.client.sync import DrainResult, QueueItem, SyncController


@contextmanager
def open_controller() -> Iterator[SyncController]:
    """Build a controller from the config file, closing its resources on exit."""
    from offlinesync.client.api import RemoteStore
    from offlinesync.client.connectivity import RemoteHealthConnectivity
    from offlinesync.client.state import LocalStore
    from offlinesync.client.sync import SyncController

    remote_config = get_remote_config()
    if remote_config is None:
        click.echo("Error: Not configured. Run 'offlinesync configure' first.", err=True)
        sys.exit(1)

    store = LocalStore(get_db_path())
    remote = RemoteStore(remote_config)

    def on_item_dropped(item: QueueItem, error: Exception) -> None:
        click.echo(f"  ✗ dropped {item.operation.value} {item.collection}: {error}", err=True)

    try:
        yield SyncController(
            store,
            remote,
            RemoteHealthConnectivity(remote),
            config=get_sync_config(),
            on_item_dropped=on_item_dropped,
        )
    finally:
        remote.close()
        store.close()


def _format_result(result: DrainResult) -> str:
    summary = (
        f"{len(result.synced)} synced, {len(result.failed)} failed, "
        f"{len(result.dropped)} dropped"
    )
    if result.sweep is not None:
        summary += f", {len(result.sweep.synced)} messages pushed"
    return summary


@click.command()
def sync() -> None:
    """Fetch fresh data, then push pending offline changes."""
    from offlinesync.client.sync import OfflineError

    with open_controller() as controller:
        try:
            result = controller.force_sync_now()
        except OfflineError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

        if result is None:
            click.echo("Sync skipped: another sync is in progress.")
            return

        if result.fetch is None:
            click.echo("Warning: could not refresh local data.", err=True)
        elif result.fetch.failed:
            click.echo(
                f"Warning: could not refresh {', '.join(result.fetch.failed)}.", err=True
            )
        click.echo(f"Sync complete: {_format_result(result)}")


@click.command()
def watch() -> None:
    """Sync continuously until interrupted (Ctrl+C)."""
    with open_controller() as controller:
        controller.start_periodic_sync()
        click.echo("Watching for offline changes. Press Ctrl+C to stop.")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("\nStopping...")
        finally:
            controller.stop_periodic_sync(wait=True)

        stats = controller.stats
        click.echo(
            f"Done: {stats.items_synced} synced, {stats.items_dropped} dropped, "
            f"{stats.messages_synced} messages pushed"
        )


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output status as JSON.")
def status(as_json: bool) -> None:
    """Show connectivity and pending offline work."""
    with open_controller() as controller:
        offline_status = controller.get_offline_status()

    if as_json:
        click.echo(json.dumps(offline_status.to_dict(), indent=2))
        return

    last_sync = (
        datetime.fromtimestamp(offline_status.last_sync_at).isoformat(timespec="seconds")
        if offline_status.last_sync_at
        else "never"
    )
    click.echo(f"Online:            {'yes' if offline_status.is_online else 'no'}")
    click.echo(f"Cached data:       {'yes' if offline_status.has_cached_data else 'no'}")
    click.echo(f"Pending changes:   {offline_status.pending_sync_count}")
    click.echo(f"Unsynced messages: {offline_status.unsynced_messages_count}")
    click.echo(f"Last sync:         {last_sync}")
