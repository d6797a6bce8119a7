"""
CLI commands for MySQL master/slave replication.

``setup`` re-runs the bootstrap alone, e.g. after the provisioning run
reported that replication did not converge.
"""

from __future__ import annotations

import json

import click

from hostprov.adapters.containers.docker import DockerCli
from hostprov.core.errors import ProvisioningError
from hostprov.core.replication.control import describe_state
from hostprov.core.stages.replication import read_replication_status, run_replication_bootstrap
from hostprov.ui.cli.common import fail, get_runner, get_settings, resolve_project_dir


@click.group()
def replication() -> None:
    """MySQL master/slave replication."""


@replication.command()
@click.option("--project-dir", default=None, help="Project checkout (default: saved PROJECT_DIR).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def setup(ctx: click.Context, project_dir: str | None, as_json: bool) -> None:
    """Bootstrap replication between the master and slave containers."""
    settings = get_settings(ctx)
    project = resolve_project_dir(ctx, project_dir)
    sleep = ctx.obj.get("sleep")

    try:
        report = run_replication_bootstrap(
            project,
            DockerCli(get_runner(ctx)),
            settings,
            **({"sleep": sleep} if sleep else {}),
        )
    except ProvisioningError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        ctx.exit(0 if report.converged else 1)

    if report.converged:
        click.secho("✅ Replication converged", fg="green", bold=True)
        if report.coordinate:
            click.echo(f"   Coordinate: {report.coordinate}")
        if report.state:
            for line in describe_state(report.state):
                click.echo(f"   {line}")
        click.echo(f"   Master: localhost:{settings.master_published_port} ({settings.master_container})")
        click.echo(f"   Slave:  localhost:{settings.slave_published_port} ({settings.slave_container})")
        return

    click.secho(f"❌ Replication failed during {report.failed_in}", fg="red", bold=True)
    for line in report.diagnostics:
        click.echo(f"   {line}")
    ctx.exit(1)


@replication.command()
@click.option("--project-dir", default=None, help="Project checkout (default: saved PROJECT_DIR).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, project_dir: str | None, as_json: bool) -> None:
    """Show the slave's replication stream status."""
    settings = get_settings(ctx)
    project = resolve_project_dir(ctx, project_dir)
    try:
        state = read_replication_status(project, DockerCli(get_runner(ctx)), settings)
    except ProvisioningError as e:
        fail(str(e))

    if as_json:
        click.echo(json.dumps(state.model_dump(mode="json") | {"converged": state.converged}, indent=2))
        return

    color = "green" if state.converged else "yellow"
    click.secho(
        f"{'✅' if state.converged else '⚠️ '} Replication {'running' if state.converged else 'not running'}",
        fg=color,
        bold=True,
    )
    if state.master_log_file:
        click.echo(f"   Source log: {state.master_log_file}:{state.master_log_position}")
    for line in describe_state(state):
        click.echo(f"   {line}")
