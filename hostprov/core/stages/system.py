"""
System stages — packages, container runtime, compose shim.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hostprov.core.context import ProvisionContext
from hostprov.core.files.editor import IdempotentFileEditor
from hostprov.core.host.packages import DNF_TUNING, PackageActions
from hostprov.core.models.host import OsFamily

logger = logging.getLogger(__name__)


def update_packages(ctx: ProvisionContext) -> None:
    if ctx.host.family == OsFamily.RHEL and Path(ctx.settings.dnf_conf).exists():
        editor = IdempotentFileEditor()
        for key, value in DNF_TUNING.items():
            editor.upsert(ctx.settings.dnf_conf, key, value, separator="=")
    PackageActions(ctx.runner, ctx.host).update(ctx.config.environment_mode)
    logger.info("System packages updated")


def install_base_tools(ctx: ProvisionContext) -> None:
    PackageActions(ctx.runner, ctx.host).install_base_tools()
    logger.info("Base tools installed")


# ── Container runtime ───────────────────────────────────────────


def container_runtime_ready(ctx: ProvisionContext) -> bool:
    """``docker`` on PATH and ``docker compose version`` works."""
    return ctx.docker.compose_plugin_available()


def install_container_runtime(ctx: ProvisionContext) -> None:
    logger.info("Installing Docker Engine and the compose plugin...")
    PackageActions(ctx.runner, ctx.host).install_docker(ctx.user)
    logger.info("Docker installed")


# ── Compose compatibility shim ──────────────────────────────────


def compose_shim_present(ctx: ProvisionContext) -> bool:
    return ctx.runner.which("docker-compose")


def install_compose_shim(ctx: ProvisionContext) -> None:
    """Standalone ``docker-compose`` binary for scripts that still call it."""
    s = ctx.settings
    system = ctx.runner.run(["uname", "-s"]).output
    machine = ctx.runner.run(["uname", "-m"]).output
    url = (
        "https://github.com/docker/compose/releases/download/"
        f"{s.compose_standalone_version}/docker-compose-{system}-{machine}"
    )
    logger.info("Downloading docker-compose %s", s.compose_standalone_version)
    ctx.runner.run(["curl", "-fsSL", url, "-o", s.compose_install_path])
    ctx.runner.run(["chmod", "+x", s.compose_install_path])

    if not Path(s.compose_link_path).exists():
        ctx.runner.run(["ln", "-sf", s.compose_install_path, s.compose_link_path])
    logger.info("docker-compose installed at %s", s.compose_install_path)
