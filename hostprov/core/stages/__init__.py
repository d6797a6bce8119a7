"""
Stages — the fixed provisioning sequence.

Configuration resolution and host detection run before the pipeline
(see ``use_cases/provision.py``); the pipeline then runs these stages
in this exact order. Later stages rely on artifacts of earlier ones
(checkout, ``.env``, running containers).
"""

from __future__ import annotations

from hostprov.core.models.stage import FailurePolicy, Stage
from hostprov.core.stages.application import configure_application
from hostprov.core.stages.backup import configure_backup_transport
from hostprov.core.stages.replication import bootstrap_replication
from hostprov.core.stages.repository import clone_or_update
from hostprov.core.stages.ssh import establish_scm_identity, harden_ssh, scm_identity_ready
from hostprov.core.stages.summary import print_access_summary
from hostprov.core.stages.system import (
    compose_shim_present,
    container_runtime_ready,
    install_base_tools,
    install_compose_shim,
    install_container_runtime,
    update_packages,
)

STAGE_REPLICATION = "bootstrap database replication"


def build_default_stages(skip_replication: bool = False) -> list[Stage]:
    """The provisioning stages in execution order."""
    return [
        Stage("update packages", update_packages),
        Stage("install base tools", install_base_tools),
        Stage(
            "install container runtime",
            install_container_runtime,
            is_satisfied=container_runtime_ready,
            skip_message="Docker and the compose plugin are already installed",
        ),
        Stage(
            "install compose shim",
            install_compose_shim,
            is_satisfied=compose_shim_present,
            skip_message="docker-compose is already installed",
        ),
        Stage("harden SSH", harden_ssh),
        Stage(
            "establish SCM SSH identity",
            establish_scm_identity,
            is_satisfied=scm_identity_ready,
            skip_message="SSH key already authorized",
        ),
        Stage("clone/update repository", clone_or_update),
        Stage("configure backup transport", configure_backup_transport),
        Stage("configure application", configure_application),
        Stage(
            STAGE_REPLICATION,
            bootstrap_replication,
            is_satisfied=(lambda ctx: True) if skip_replication else None,
            on_failure=FailurePolicy.WARN,
            skip_message="Replication disabled (--skip-replication)",
        ),
        Stage("print access summary", print_access_summary),
    ]


__all__ = ["STAGE_REPLICATION", "build_default_stages"]
