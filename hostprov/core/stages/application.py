"""
Application stage — environment file, writable directories, containers.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from hostprov.core.config.env_file import ENV_FILE, materialize_env_file
from hostprov.core.context import ProvisionContext
from hostprov.core.errors import ValidationError
from hostprov.core.files.editor import IdempotentFileEditor
from hostprov.core.reliability.poller import ReadinessPoller

logger = logging.getLogger(__name__)

UPLOADS_DIR = Path("public") / "uploads"
BACKUP_LOGS_DIR = Path("backup-system") / "logs"


def validate_project_structure(project_dir: Path, required: list[str]) -> None:
    """Raise ``ValidationError`` listing every missing required path."""
    missing = [name for name in required if not (project_dir / name).exists()]
    if missing:
        raise ValidationError(
            f"Required project files not found in {project_dir}: {', '.join(missing)}"
        )
    logger.info("Project structure validated")


def chmod_tree(root: Path, mode: int) -> None:
    """``chmod -R``."""
    root.chmod(mode)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            if not path.is_symlink():
                path.chmod(mode)


def _prepare_directories(ctx: ProvisionContext) -> None:
    uploads = ctx.project_dir / UPLOADS_DIR
    logs = ctx.project_dir / BACKUP_LOGS_DIR
    uploads.mkdir(parents=True, exist_ok=True)
    logs.mkdir(parents=True, exist_ok=True)
    # the web server user inside the container must be able to write uploads
    chmod_tree(uploads, 0o777)
    chmod_tree(logs, 0o755)


def _relax_selinux(ctx: ProvisionContext) -> None:
    if not ctx.runner.which("getenforce"):
        return
    mode = ctx.runner.run(["getenforce"], check=False).output
    if mode != "Enforcing":
        return
    logger.warning("SELinux is enforcing; switching to permissive for Docker volumes")
    ctx.runner.run(["setenforce", "0"], check=False)
    if Path(ctx.settings.selinux_config).is_file():
        IdempotentFileEditor().upsert(
            ctx.settings.selinux_config, "SELINUX", "permissive", separator="="
        )


def _start_containers(ctx: ProvisionContext) -> None:
    docker = ctx.docker
    project = ctx.project_dir
    logger.info("Stopping previous containers (if any)...")
    docker.compose("down", "--remove-orphans", cwd=project, check=False)
    logger.info("Building containers...")
    docker.compose("build", cwd=project)
    logger.info("Starting containers...")
    docker.compose("up", "--build", "-d", cwd=project)

    poller = ReadinessPoller(
        ctx.settings.app_ready_attempts,
        ctx.settings.app_ready_interval,
        sleep=ctx.sleep or time.sleep,
    )
    poller.await_ready(lambda: bool(docker.running_services(project)), name="application containers")
    logger.info("Containers running: %s", ", ".join(docker.running_services(project)))


def configure_application(ctx: ProvisionContext) -> None:
    project = ctx.project_dir
    logger.info(
        "Configuring %s for the %s environment...",
        ctx.settings.project_name, ctx.config.environment_mode,
    )
    validate_project_structure(project, ctx.settings.required_project_files)

    if materialize_env_file(project, ctx.config.environment_mode, ctx.settings, ctx.prompter):
        ctx.runner.run(["chown", f"{ctx.user}:", str(project / ENV_FILE)])

    _prepare_directories(ctx)
    _relax_selinux(ctx)
    _start_containers(ctx)
    chmod_tree(project / UPLOADS_DIR, 0o777)
    logger.info("%s configured", ctx.settings.project_name)
