"""
Host detection — read OS release metadata once per run.

Sources, first readable one wins:
    /etc/os-release
    /usr/lib/os-release

Families:
    debian  ubuntu, debian, or ID_LIKE mentioning debian/ubuntu
    rhel    centos, rhel, fedora, rocky, almalinux, or ID_LIKE
            mentioning rhel/fedora/centos
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from hostprov.core.config.env_file import parse_key_values
from hostprov.core.errors import UnsupportedPlatformError
from hostprov.core.models.host import HostProfile, OsFamily

logger = logging.getLogger(__name__)

OS_RELEASE_PATHS: tuple[Path, ...] = (
    Path("/etc/os-release"),
    Path("/usr/lib/os-release"),
)

_FAMILY_IDS: dict[OsFamily, frozenset[str]] = {
    OsFamily.DEBIAN: frozenset({"ubuntu", "debian"}),
    OsFamily.RHEL: frozenset({"centos", "rhel", "fedora", "rocky", "almalinux"}),
}


def _family_for(distro: str, id_like: str) -> OsFamily | None:
    for family, ids in _FAMILY_IDS.items():
        if distro in ids:
            return family
    like = set(id_like.split())
    for family, ids in _FAMILY_IDS.items():
        if like & ids:
            return family
    return None


def detect_host(paths: Sequence[Path] = OS_RELEASE_PATHS) -> HostProfile:
    """Detect the running distribution.

    Raises:
        UnsupportedPlatformError: No readable release file, no ``ID``,
            or a distribution outside the supported families.
    """
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            continue
        fields = parse_key_values(text)
        break
    else:
        raise UnsupportedPlatformError(
            "Cannot detect the Linux distribution: no os-release file found"
        )

    distro = fields.get("ID", "").strip().lower()
    if not distro:
        raise UnsupportedPlatformError(f"No ID= entry in {path}")

    family = _family_for(distro, fields.get("ID_LIKE", "").lower())
    if family is None:
        raise UnsupportedPlatformError(f"Unsupported operating system: {distro}")

    profile = HostProfile(
        family=family,
        distro=distro,
        version=fields.get("VERSION_ID", ""),
        codename=fields.get("VERSION_CODENAME", ""),
    )
    logger.info("Detected operating system: %s (%s family)", profile.label, family)
    return profile
