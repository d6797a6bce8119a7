"""
Package actions — per-family command sequences.

Maps abstract actions (update, install, enable service, add the
Docker repository) to apt or dnf/yum invocations. Everything goes
through the ``CommandRunner`` so it can be scripted in tests.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from hostprov.adapters.shell.command import CommandResult, CommandRunner
from hostprov.core.errors import CommandExecutionError
from hostprov.core.models.config import EnvMode
from hostprov.core.models.host import HostProfile, OsFamily

logger = logging.getLogger(__name__)

BASE_TOOLS: dict[OsFamily, list[str]] = {
    OsFamily.DEBIAN: [
        "git", "curl", "wget", "rsync", "openssh-client", "openssh-server",
        "software-properties-common", "apt-transport-https", "ca-certificates",
        "gnupg-agent", "unzip", "make", "nano", "htop", "tree", "net-tools",
    ],
    OsFamily.RHEL: [
        "git", "curl", "wget", "rsync", "openssh-clients", "openssh-server",
        "unzip", "nano", "vim", "make", "tree", "net-tools",
    ],
}

# Installed on their own on RHEL-likes; may need EPEL.
OPTIONAL_TOOLS: dict[OsFamily, list[str]] = {
    OsFamily.DEBIAN: [],
    OsFamily.RHEL: ["htop"],
}

NFS_PACKAGES: dict[OsFamily, list[str]] = {
    OsFamily.DEBIAN: ["nfs-kernel-server", "nfs-common", "rsync"],
    OsFamily.RHEL: ["nfs-utils", "rsync"],
}

NFS_SERVICE: dict[OsFamily, str] = {
    OsFamily.DEBIAN: "nfs-kernel-server",
    OsFamily.RHEL: "nfs-server",
}

RSYNC_SERVICE: dict[OsFamily, str] = {
    OsFamily.DEBIAN: "rsync",
    OsFamily.RHEL: "rsyncd",
}

DOCKER_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-compose-plugin"]

DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
DOCKER_KEY_DOWNLOAD = "/tmp/docker-archive-key.asc"
DOCKER_APT_SOURCE = "/etc/apt/sources.list.d/docker.list"
DNF_TUNING = {"fastestmirror": "True", "max_parallel_downloads": "10", "deltarpm": "True"}

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class PackageActions:
    """OS-family specific package and service commands."""

    def __init__(self, runner: CommandRunner, host: HostProfile):
        self.runner = runner
        self.host = host

    @property
    def family(self) -> OsFamily:
        return self.host.family

    def _pm(self) -> str:
        if self.family == OsFamily.DEBIAN:
            return "apt-get"
        return "dnf" if self.runner.which("dnf") else "yum"

    # ── Packages ────────────────────────────────────────────────

    def update(self, mode: EnvMode) -> None:
        """Refresh indexes and upgrade (full in prod, conservative in dev)."""
        if self.family == OsFamily.DEBIAN:
            self.runner.run(["apt-get", "update", "-qq"], env=_APT_ENV)
            cmd = ["apt-get", "upgrade", "-y", "-qq"]
            if mode != EnvMode.PROD:
                cmd.append("--with-new-pkgs")
            self.runner.run(cmd, env=_APT_ENV)
            return

        pm = self._pm()
        self.runner.run([pm, "clean", "all"], check=False)
        if mode == EnvMode.PROD:
            self.runner.run([pm, "update", "-y", "--nobest", "--skip-broken"])
        else:
            result = self.runner.run([pm, "update", "-y", "--security", "--nobest"], check=False)
            if not result.ok:
                logger.warning("Security update reported errors; continuing")

    def install(self, packages: Iterable[str], *, check: bool = True) -> CommandResult:
        pkgs = list(packages)
        if self.family == OsFamily.DEBIAN:
            cmd = ["apt-get", "install", "-y", "-qq", *pkgs]
            return self.runner.run(cmd, env=_APT_ENV, check=check)
        return self.runner.run([self._pm(), "install", "-y", *pkgs], check=check)

    def install_base_tools(self) -> None:
        if self.family == OsFamily.RHEL and self.host.distro in ("rocky", "rhel", "almalinux"):
            if not self.install(["epel-release"], check=False).ok:
                logger.warning("Could not enable EPEL; continuing")

        result = self.install(BASE_TOOLS[self.family], check=self.family == OsFamily.DEBIAN)
        if not result.ok:
            logger.warning("Some base packages failed to install; continuing")

        for pkg in OPTIONAL_TOOLS[self.family]:
            if not self.install([pkg], check=False).ok:
                logger.warning("%s not available; continuing without it", pkg)

    # ── Services ────────────────────────────────────────────────

    def enable_service(self, name: str, *, restart: bool = True) -> None:
        """Enable a unit at boot and (re)start it now."""
        self.runner.run(["systemctl", "enable", name], check=False)
        self.runner.run(["systemctl", "restart" if restart else "start", name])

    def restart_service(self, *names: str) -> str:
        """Restart the first unit name that exists; returns that name.

        Raises:
            CommandExecutionError: If none of the names could be restarted.
        """
        last: CommandResult | None = None
        for name in names:
            last = self.runner.run(["systemctl", "restart", name], check=False)
            if last.ok:
                logger.info("Restarted %s", name)
                return name
        assert last is not None
        raise CommandExecutionError(
            last.command, last.returncode, last.stdout, last.stderr,
            message=f"Could not restart any of: {', '.join(names)}",
        )

    # ── Docker ──────────────────────────────────────────────────

    def add_docker_repository(self) -> None:
        if self.family == OsFamily.DEBIAN:
            self._add_apt_docker_repo()
            return
        pm = self._pm()
        repo_distro = "fedora" if self.host.distro == "fedora" else "centos"
        url = f"https://download.docker.com/linux/{repo_distro}/docker-ce.repo"
        self.install(["dnf-plugins-core" if pm == "dnf" else "yum-utils"])
        if pm == "dnf":
            self.runner.run(["dnf", "config-manager", "--add-repo", url])
        else:
            self.runner.run(["yum-config-manager", "--add-repo", url])

    def _add_apt_docker_repo(self) -> None:
        distro = "debian" if self.host.distro == "debian" else "ubuntu"
        self.runner.run(["apt-get", "update", "-qq"], env=_APT_ENV)
        self.install(["ca-certificates", "curl", "gnupg", "lsb-release"])
        self.runner.run(["install", "-m", "0755", "-d", "/etc/apt/keyrings"])
        self.runner.run(
            ["curl", "-fsSL", f"https://download.docker.com/linux/{distro}/gpg", "-o", DOCKER_KEY_DOWNLOAD]
        )
        self.runner.run(["gpg", "--dearmor", "--yes", "-o", DOCKER_KEYRING, DOCKER_KEY_DOWNLOAD])
        self.runner.run(["chmod", "a+r", DOCKER_KEYRING])

        arch = self.runner.run(["dpkg", "--print-architecture"]).output
        codename = self.host.codename or self.runner.run(["lsb_release", "-cs"]).output
        line = (
            f"deb [arch={arch} signed-by={DOCKER_KEYRING}] "
            f"https://download.docker.com/linux/{distro} {codename} stable\n"
        )
        self.runner.run(["tee", DOCKER_APT_SOURCE], input=line)
        self.runner.run(["apt-get", "update", "-qq"], env=_APT_ENV)

    def install_docker(self, user: str) -> None:
        """Repository, engine + compose plugin, group membership, service."""
        self.add_docker_repository()
        self.install(DOCKER_PACKAGES)

        groups = self.runner.run(["id", "-nG", user], check=False).output.split()
        if "docker" not in groups:
            logger.info("Adding %s to the docker group (re-login required)", user)
            self.runner.run(["usermod", "-aG", "docker", user])

        self.runner.run(["systemctl", "enable", "docker"])
        self.runner.run(["systemctl", "start", "docker"])
