"""
CLI commands for SSH daemon configuration.

Thin wrappers over ``hostprov.core.stages.ssh``.
"""

from __future__ import annotations

import click

from hostprov.core.context import effective_user, user_home
from hostprov.core.errors import ProvisioningError
from hostprov.core.stages.ssh import copy_public_key, harden_sshd, set_password_authentication
from hostprov.ui.cli.common import fail, get_host, get_runner, get_settings, require_root


@click.group()
def ssh() -> None:
    """SSH daemon hardening and key transfer."""


@ssh.command()
@click.pass_context
def harden(ctx: click.Context) -> None:
    """Disable root login and password authentication."""
    require_root(ctx)
    try:
        restarted = harden_sshd(get_runner(ctx), get_host(ctx), get_settings(ctx))
    except ProvisioningError as e:
        fail(str(e))

    if restarted:
        click.secho("🔒 SSH hardened, daemon restarted", fg="green", bold=True)
    else:
        click.secho("✅ SSH already hardened", fg="green")


@ssh.command("password-auth")
@click.argument("action", type=click.Choice(["enable", "disable"]))
@click.pass_context
def password_auth(ctx: click.Context, action: str) -> None:
    """Turn SSH password authentication on or off."""
    require_root(ctx)
    enabled = action == "enable"
    try:
        changed = set_password_authentication(
            get_runner(ctx), get_host(ctx), get_settings(ctx), enabled
        )
    except ProvisioningError as e:
        fail(str(e))

    state = "enabled" if enabled else "disabled"
    icon = "🔓" if enabled else "🔒"
    if changed:
        click.secho(f"{icon} Password authentication {state}", fg="yellow" if enabled else "green")
    else:
        click.echo(f"   Password authentication already {state}")


@ssh.command("copy-key")
@click.option("--host", "target_host", required=True, help="Machine to copy the key to.")
@click.option("--user", "target_user", required=True, help="Account on that machine.")
@click.option("--remote-path", default=None, help="Destination path on the remote machine.")
@click.pass_context
def copy_key(
    ctx: click.Context, target_host: str, target_user: str, remote_path: str | None
) -> None:
    """Copy your public key to another machine with scp.

    Password authentication is enabled for the transfer only.
    """
    require_root(ctx)
    user = effective_user()
    try:
        ok = copy_public_key(
            get_runner(ctx),
            get_host(ctx),
            get_settings(ctx),
            user=user,
            home=user_home(user),
            target_host=target_host,
            target_user=target_user,
            remote_path=remote_path,
        )
    except ProvisioningError as e:
        fail(str(e))

    if not ok:
        fail(f"Could not copy the public key to {target_user}@{target_host}")
    click.secho(f"✅ Public key copied to {target_user}@{target_host}", fg="green")
