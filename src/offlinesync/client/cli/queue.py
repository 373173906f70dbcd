"""Queue commands for offlinesync CLI.

Commands:
- queue list: Show pending mutations
- queue add: Enqueue a mutation by hand
- queue clear: Discard every pending mutation
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING

import click

from offlinesync.client.cli.config import get_db_path

if TYPE_CHECKING:
    from offlinesync.client.state import LocalStore


@contextmanager
def open_store() -> Iterator[LocalStore]:
    """Open the configured local store."""
    from offlinesync.client.state import LocalStore

    store = LocalStore(get_db_path())
    try:
        yield store
    finally:
        store.close()


@click.group()
def queue() -> None:
    """Inspect and edit the pending mutation queue."""


@queue.command("list")
def list_items() -> None:
    """List pending mutations, oldest first."""
    with open_store() as store:
        items = store.read_queue()

    if not items:
        click.echo("Queue is empty.")
        return

    for item in items:
        queued = datetime.fromtimestamp(item.enqueued_at).isoformat(timespec="seconds")
        click.echo(
            f"{item.id}  {item.operation.value:<6}  {item.collection:<10}  "
            f"retries={item.retry_count}  queued={queued}"
        )
    click.echo(f"{len(items)} pending mutation(s)")


@queue.command("add")
@click.argument("operation", type=click.Choice(["create", "update", "delete"]))
@click.argument("collection")
@click.argument("payload")
def add_item(operation: str, collection: str, payload: str) -> None:
    """Enqueue OPERATION on COLLECTION with a JSON PAYLOAD."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON payload: {e}", err=True)
        sys.exit(1)

    if not isinstance(data, dict):
        click.echo("Error: Payload must be a JSON object.", err=True)
        sys.exit(1)
    if operation != "create" and "id" not in data:
        click.echo(f"Error: {operation} payload needs an 'id'.", err=True)
        sys.exit(1)

    with open_store() as store:
        item = store.enqueue(operation, collection, data)
    click.echo(f"Queued {item.id}")


@queue.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def clear_items(yes: bool) -> None:
    """Discard every pending mutation (they will never reach the server)."""
    if not yes and not click.confirm("Discard all pending mutations?"):
        return
    with open_store() as store:
        count = store.clear_queue()
    click.echo(f"Removed {count} pending mutation(s)")
