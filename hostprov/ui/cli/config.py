"""
CLI commands for the persisted provisioning configuration.
"""

from __future__ import annotations

import json

import click

from hostprov.core.config.store import STORE_KEYS
from hostprov.ui.cli.common import config_store


@click.group()
def config() -> None:
    """Persisted provisioning configuration (.provision.conf)."""


@config.command("show")
@click.option("--config-file", default=None, help="Config file (default: .provision.conf).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, config_file: str | None, as_json: bool) -> None:
    """Show the saved REPO_URL, PROJECT_DIR and ENV_MODE."""
    store = config_store(ctx, config_file)
    values = store.load()

    if as_json:
        click.echo(json.dumps({"path": str(store.path), "values": values}, indent=2))
        return

    if not values:
        click.secho(f"📭 No saved configuration at {store.path}", fg="yellow")
        return

    click.secho(f"📋 {store.path}", fg="cyan", bold=True)
    for key in STORE_KEYS:
        value = values.get(key)
        if value:
            click.echo(f"   {key:<12} {value}")
        else:
            click.secho(f"   {key:<12} (not set)", fg="yellow")
