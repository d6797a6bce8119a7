"""
Provisioning configuration — the three settings every run needs.

Persisted as ``KEY="value"`` lines in ``.provision.conf``:

    REPO_URL     repository_url
    PROJECT_DIR  install_directory
    ENV_MODE     environment_mode
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

# git@host:org/repo(.git), ssh://..., https://...
_SCP_URL = re.compile(r"^[\w.-]+@[\w.-]+:[\w./~-]+$")
_SCHEME_URL = re.compile(r"^(ssh|git|https?)://[^\s/]+/\S+$")


class EnvMode(StrEnum):
    """Deployment flavour of the application being provisioned."""

    DEV = "dev"
    PROD = "prod"


def is_repository_url(url: str) -> bool:
    """Whether ``url`` looks like a clonable SCM URL."""
    url = url.strip()
    return bool(_SCP_URL.match(url) or _SCHEME_URL.match(url))


def repo_name_from_url(url: str) -> str:
    """Last path segment of a repository URL without ``.git``.

    >>> repo_name_from_url("git@host:org/My-Repo.git")
    'My-Repo'
    """
    tail = url.strip().rstrip("/")
    tail = re.split(r"[/:]", tail)[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail


class ProvisioningConfig(BaseModel):
    """Resolved configuration; all three fields are always set."""

    model_config = ConfigDict(frozen=True)

    environment_mode: EnvMode
    repository_url: str
    install_directory: Path

    @field_validator("repository_url")
    @classmethod
    def _url_is_clonable(cls, v: str) -> str:
        v = v.strip()
        if not is_repository_url(v):
            raise ValueError(f"not a repository URL: {v!r}")
        return v

    @field_validator("install_directory")
    @classmethod
    def _dir_is_absolute(cls, v: Path) -> Path:
        if not v.is_absolute():
            raise ValueError(f"install directory must be absolute: {v}")
        return v

    @property
    def repo_name(self) -> str:
        return repo_name_from_url(self.repository_url)

    def to_store(self) -> dict[str, str]:
        """Key/value form written to the persisted config file."""
        return {
            "REPO_URL": self.repository_url,
            "PROJECT_DIR": str(self.install_directory),
            "ENV_MODE": self.environment_mode.value,
        }
