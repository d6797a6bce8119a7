"""
Host profile — what operating system the provisioner is running on.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class OsFamily(StrEnum):
    """Package-management family of a Linux distribution."""

    DEBIAN = "debian"
    RHEL = "rhel"


class HostProfile(BaseModel):
    """Immutable OS facts, detected once per run."""

    model_config = ConfigDict(frozen=True)

    family: OsFamily
    distro: str                 # os-release ID (ubuntu, rocky, ...)
    version: str = ""           # os-release VERSION_ID
    codename: str = ""          # os-release VERSION_CODENAME

    @property
    def label(self) -> str:
        parts = [self.distro, self.version]
        if self.codename:
            parts.append(f"({self.codename})")
        return " ".join(p for p in parts if p)
