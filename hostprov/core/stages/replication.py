"""
Replication stage — bootstrap master/slave replication for the app's databases.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from hostprov.adapters.containers.docker import DockerCli
from hostprov.core.config.env_file import ENV_FILE, load_database_credentials
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.context import ProvisionContext
from hostprov.core.errors import ReplicationError
from hostprov.core.models.replication import ReplicationReport, ReplicationState
from hostprov.core.reliability.poller import ReadinessPoller
from hostprov.core.replication.bootstrapper import ReplicationBootstrapper
from hostprov.core.replication.mysql import MySQLDockerControl

logger = logging.getLogger(__name__)


def run_replication_bootstrap(
    project_dir: Path,
    docker: DockerCli,
    settings: ProvisionSettings,
    sleep: Callable[[float], None] = time.sleep,
) -> ReplicationReport:
    """Load credentials from ``.env`` and run the bootstrapper once.

    Raises:
        MissingCredentialError: ``.env`` or its root password is missing.
    """
    credentials = load_database_credentials(project_dir / ENV_FILE, settings)
    control = MySQLDockerControl(docker, credentials, settings)
    bootstrapper = ReplicationBootstrapper(
        control,
        credentials,
        poller=ReadinessPoller(settings.readiness_attempts, settings.readiness_interval, sleep),
        settle_delay=settings.verify_settle_delay,
        sleep=sleep,
    )
    return bootstrapper.run()


def read_replication_status(
    project_dir: Path,
    docker: DockerCli,
    settings: ProvisionSettings,
) -> ReplicationState:
    credentials = load_database_credentials(project_dir / ENV_FILE, settings)
    return MySQLDockerControl(docker, credentials, settings).read_replica_status()


def bootstrap_replication(ctx: ProvisionContext) -> None:
    logger.info("Configuring MySQL master/slave replication...")
    report = run_replication_bootstrap(
        ctx.project_dir, ctx.docker, ctx.settings, sleep=ctx.sleep or time.sleep
    )
    ctx.outputs["replication"] = report
    if not report.converged:
        raise ReplicationError(
            f"Replication did not converge ({report.failed_in}): {report.error}"
        )
