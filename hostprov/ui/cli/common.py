"""
Shared helpers for the CLI command groups.
"""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn

import click

from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.config.prompts import NonInteractivePrompter
from hostprov.core.config.settings import ProvisionSettings, load_settings
from hostprov.core.config.store import KEY_PROJECT_DIR, ConfigStore
from hostprov.core.context import effective_user, user_home
from hostprov.core.errors import ProvisioningError
from hostprov.core.host.detect import OS_RELEASE_PATHS, detect_host
from hostprov.core.models.host import HostProfile
from hostprov.core.use_cases.provision import check_privileges


def fail(message: str) -> NoReturn:
    """Timestamped red error line on stderr, then exit 1."""
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    click.secho(f"[{stamp}] ERROR: {message}", fg="red", err=True)
    sys.exit(1)


def get_settings(ctx: click.Context) -> ProvisionSettings:
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj.get("settings_path"))
        except ProvisioningError as e:
            fail(str(e))
    return ctx.obj["settings"]


def get_runner(ctx: click.Context) -> CommandRunner:
    """The command runner (tests place a ``MockRunner`` in ``ctx.obj``)."""
    if "runner" not in ctx.obj:
        ctx.obj["runner"] = CommandRunner()
    return ctx.obj["runner"]


def require_root(ctx: click.Context) -> None:
    try:
        check_privileges(ctx.obj.get("euid"))
    except ProvisioningError as e:
        fail(str(e))


def get_host(ctx: click.Context) -> HostProfile:
    try:
        return detect_host(ctx.obj.get("os_release_paths", OS_RELEASE_PATHS))
    except ProvisioningError as e:
        fail(str(e))


def config_store(ctx: click.Context, config_file: str | None) -> ConfigStore:
    settings = get_settings(ctx)
    return ConfigStore(
        Path(config_file or settings.config_file),
        NonInteractivePrompter(),
        user_home(effective_user()),
    )


def resolve_project_dir(ctx: click.Context, project_dir: str | None) -> Path:
    """Explicit option, else the persisted PROJECT_DIR, else the cwd."""
    if project_dir:
        return Path(project_dir).expanduser().resolve()
    persisted = config_store(ctx, None).load().get(KEY_PROJECT_DIR)
    return Path(persisted) if persisted else Path.cwd()
