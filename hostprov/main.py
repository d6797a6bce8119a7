"""
hostprov: CLI entrypoint.

Usage:
    hostprov --help
    sudo hostprov provision
    hostprov detect
    hostprov replication status
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path

import click

from hostprov import __version__
from hostprov.core.observability.logging_config import resolve_level, setup_logging
from hostprov.ui.cli.common import fail, get_host, get_runner, get_settings


def _configure_logging(ctx: click.Context, default: str) -> None:
    debug = ctx.obj.get("debug", False)
    setup_logging(
        level=resolve_level(
            debug=debug,
            verbose=ctx.obj.get("verbose", False),
            quiet=ctx.obj.get("quiet", False),
            default=default,
        ),
        log_file=os.environ.get("HOSTPROV_LOG_FILE"),
        log_file_level=os.environ.get("HOSTPROV_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


@click.group()
@click.version_option(version=__version__, prog_name="hostprov")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--settings",
    "-s",
    "settings_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to hostprov.yml (default: ./hostprov.yml if present).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    settings_path: str | None,
) -> None:
    """hostprov: provision a Linux host for the containerized application."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["settings_path"] = Path(settings_path) if settings_path else None

    # ── Logging setup (once, at process start) ──────────────────
    _configure_logging(ctx, default="WARNING")


@cli.command()
@click.option("--repo-url", default=None, help="Git repository to deploy (REPO_URL).")
@click.option("--project-dir", default=None, help="Install directory (PROJECT_DIR).")
@click.option(
    "--env-mode",
    type=click.Choice(["dev", "prod"]),
    default=None,
    help="Environment mode (ENV_MODE).",
)
@click.option("--config-file", default=None, help="Persisted config (default: .provision.conf).")
@click.option("--non-interactive", is_flag=True, help="Never prompt; fail on missing values.")
@click.option("--skip-replication", is_flag=True, help="Do not bootstrap MySQL replication.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def provision(
    ctx: click.Context,
    repo_url: str | None,
    project_dir: str | None,
    env_mode: str | None,
    config_file: str | None,
    non_interactive: bool,
    skip_replication: bool,
    as_json: bool,
) -> None:
    """Provision this host end to end (requires root).

    Installs packages and Docker, hardens SSH, deploys the repository,
    configures backups, starts the containers and bootstraps replication.
    Safe to re-run: completed steps are skipped.
    """
    from hostprov.core.config.prompts import ClickPrompter, NonInteractivePrompter
    from hostprov.core.config.store import KEY_ENV_MODE, KEY_PROJECT_DIR, KEY_REPO_URL
    from hostprov.core.use_cases.provision import provision as run_provision

    # The run narrates its progress at INFO unless told otherwise
    if not as_json:
        _configure_logging(ctx, default="INFO")

    settings = get_settings(ctx)
    prompter = NonInteractivePrompter() if non_interactive else ClickPrompter()
    overrides = {KEY_REPO_URL: repo_url, KEY_PROJECT_DIR: project_dir, KEY_ENV_MODE: env_mode}

    extra = {
        key: ctx.obj[key]
        for key in ("os_release_paths", "euid", "env", "sleep")
        if key in ctx.obj
    }
    result = run_provision(
        settings,
        prompter,
        runner=get_runner(ctx),
        overrides=overrides,
        config_file=Path(config_file) if config_file else None,
        skip_replication=skip_replication,
        **extra,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        fail(result.error)

    report = result.report
    assert report is not None  # set whenever there is no error
    if report.aborted:
        failed = report.result_for(report.aborted_by)
        reason = failed.error if failed else "unknown error"
        if report.not_run:
            click.secho(f"   Not run: {', '.join(report.not_run)}", fg="yellow", err=True)
        fail(f"Stage '{report.aborted_by}' failed: {reason}")

    # Summary lines were already logged when INFO is visible
    if result.summary and not logging.getLogger().isEnabledFor(logging.INFO):
        for line in result.summary:
            click.echo(line)

    for warning in report.warnings:
        click.secho(f"⚠️  {warning.name}: {warning.error}", fg="yellow")

    if result.replication is not None:
        if result.replication.converged:
            click.secho("✅ Replication converged", fg="green")
        else:
            click.secho(
                f"⚠️  Replication did not converge ({result.replication.failed_in}); "
                "re-run with: hostprov replication setup",
                fg="yellow",
            )

    click.secho("✅ Provisioning complete", fg="green", bold=True)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def detect(ctx: click.Context, as_json: bool) -> None:
    """Show the detected operating system family."""
    host = get_host(ctx)

    if as_json:
        click.echo(json.dumps(host.model_dump(mode="json"), indent=2))
        return

    click.secho(f"🐧 {host.label}", fg="cyan", bold=True)
    click.echo(f"   Family: {host.family.value}")


# ── Register sub-command groups from hostprov/ui/cli/ ──────────────

from hostprov.ui.cli.config import config  # noqa: E402
from hostprov.ui.cli.replication import replication  # noqa: E402
from hostprov.ui.cli.ssh import ssh  # noqa: E402

cli.add_command(config)
cli.add_command(replication)
cli.add_command(ssh)


if __name__ == "__main__":
    cli()
