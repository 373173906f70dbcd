"""Configure command for offlinesync CLI.

Commands:
- configure: Save the remote service settings and engine periods
"""

from __future__ import annotations

import sys

import click

from offlinesync.client.cli.config import get_config_file, load_config, save_config


@click.command()
@click.option(
    "--url",
    required=True,
    help="Remote data service URL (e.g., https://project.example.com).",
)
@click.option(
    "--api-key",
    prompt=True,
    hide_input=True,
    help="API key of the remote data service.",
)
@click.option(
    "--sync-interval",
    type=float,
    default=None,
    help="Seconds between queue drain passes.",
)
@click.option(
    "--fetch-interval",
    type=float,
    default=None,
    help="Seconds between reconciliation fetches.",
)
@click.option(
    "--db-path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Local store database file.",
)
def configure(
    url: str,
    api_key: str,
    sync_interval: float | None,
    fetch_interval: float | None,
    db_path: str | None,
) -> None:
    """Configure the remote data service for this device."""
    if not url.startswith(("http://", "https://")):
        click.echo("Error: URL must start with http:// or https://", err=True)
        sys.exit(1)

    for name, value in (("sync", sync_interval), ("fetch", fetch_interval)):
        if value is not None and value <= 0:
            click.echo(f"Error: --{name}-interval must be positive", err=True)
            sys.exit(1)

    config = load_config()
    config["remote_url"] = url.rstrip("/")
    config["api_key"] = api_key
    if sync_interval is not None:
        config["sync_interval"] = sync_interval
    if fetch_interval is not None:
        config["fetch_interval"] = fetch_interval
    if db_path is not None:
        config["db_path"] = db_path
    save_config(config)

    click.echo(f"Configuration saved to {get_config_file()}")
