"""Command-line interface for offlinesync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Save the remote service settings
- status: Show connectivity and pending offline work
- sync: Fetch fresh data and push pending changes now
- watch: Run periodic sync until interrupted
- queue: Inspect and edit the pending mutation queue
"""

from __future__ import annotations

import logging

import click

from offlinesync.client.cli.config import (
    get_config_dir,
    get_config_file,
    get_db_path,
    load_config,
    save_config,
)
from offlinesync.client.cli.configure import configure
from offlinesync.client.cli.queue import queue
from offlinesync.client.cli.sync import status, sync, watch


def setup_logging(verbose: bool) -> None:
    """Send offlinesync log records to stderr."""
    package_logger = logging.getLogger("offlinesync")
    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(package_name="offlinesync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """offlinesync - Offline-first sync of a local cache with a remote store."""
    setup_logging(verbose)


cli.add_command(configure)
cli.add_command(status)
cli.add_command(sync)
cli.add_command(watch)
cli.add_command(queue)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "setup_logging",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_db_path",
    "load_config",
    "save_config",
]
