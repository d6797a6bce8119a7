"""
Provision context — the explicit state every stage receives.

Configuration and host facts are resolved once, before the first
mutating stage, and passed to each stage through ``ProvisionContext``.
Stages publish artifacts for later stages (replication report, access
summary) in ``outputs``.

The *effective user* is the operator behind ``sudo``: files created on
their behalf (repository checkout, SSH keys) must belong to them, not
to root.
"""

from __future__ import annotations

import os
import pwd
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hostprov.adapters.containers.docker import DockerCli
from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.config.prompts import Prompter
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.models.config import ProvisioningConfig
from hostprov.core.models.host import HostProfile


def effective_user(env: Mapping[str, str] | None = None) -> str:
    """The invoking user, even under sudo (``SUDO_USER`` > ``USER``)."""
    env = os.environ if env is None else env
    sudo_user = env.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    if env.get("USER"):
        return env["USER"]
    return pwd.getpwuid(os.getuid()).pw_name


def user_home(username: str) -> Path:
    """Home directory from the password database, not ``$HOME``."""
    try:
        return Path(pwd.getpwnam(username).pw_dir)
    except KeyError:
        return Path(os.path.expanduser(f"~{username}"))


@dataclass
class ProvisionContext:
    """Everything a stage may read, plus a slot for what it produces."""

    config: ProvisioningConfig
    host: HostProfile
    runner: CommandRunner
    settings: ProvisionSettings
    prompter: Prompter
    user: str
    home: Path
    sleep: Callable[[float], None] | None = None
    outputs: dict[str, Any] = field(default_factory=dict)
    _docker: DockerCli | None = field(default=None, init=False, repr=False)

    @property
    def project_dir(self) -> Path:
        return self.config.install_directory

    @property
    def docker(self) -> DockerCli:
        if self._docker is None:
            self._docker = DockerCli(self.runner)
        return self._docker

    @property
    def ssh_dir(self) -> Path:
        return self.home / ".ssh"
