"""
Tests for host detection and per-family package actions.
"""

import pytest
from conftest import ROCKY_RELEASE, UBUNTU_RELEASE, write_os_release

from hostprov.adapters.mock import MockRunner
from hostprov.adapters.shell.command import CommandResult
from hostprov.core.errors import CommandExecutionError, UnsupportedPlatformError
from hostprov.core.host.detect import detect_host
from hostprov.core.host.packages import DOCKER_APT_SOURCE, PackageActions
from hostprov.core.models.config import EnvMode
from hostprov.core.models.host import HostProfile, OsFamily

# ── Detection ────────────────────────────────────────────────────────


class TestDetectHost:
    def test_ubuntu(self, tmp_path):
        path = write_os_release(tmp_path / "os-release", UBUNTU_RELEASE)
        host = detect_host([path])
        assert host.family == OsFamily.DEBIAN
        assert host.distro == "ubuntu"
        assert host.codename == "jammy"
        assert host.label == "ubuntu 22.04 (jammy)"

    def test_rocky(self, tmp_path):
        path = write_os_release(tmp_path / "os-release", ROCKY_RELEASE)
        host = detect_host([path])
        assert host.family == OsFamily.RHEL
        assert host.version == "9.3"

    def test_id_like_fallback(self, tmp_path):
        path = write_os_release(tmp_path / "os-release", "ID=linuxmint\nID_LIKE=\"ubuntu debian\"\n")
        assert detect_host([path]).family == OsFamily.DEBIAN

    def test_second_path_used(self, tmp_path):
        path = write_os_release(tmp_path / "usr-os-release", ROCKY_RELEASE)
        assert detect_host([tmp_path / "missing", path]).distro == "rocky"

    def test_unsupported(self, tmp_path):
        path = write_os_release(tmp_path / "os-release", "ID=arch\n")
        with pytest.raises(UnsupportedPlatformError, match="arch"):
            detect_host([path])

    def test_no_metadata(self, tmp_path):
        with pytest.raises(UnsupportedPlatformError) as exc_info:
            detect_host([tmp_path / "missing"])
        assert exc_info.value.fatal

    def test_no_id(self, tmp_path):
        path = write_os_release(tmp_path / "os-release", "NAME=Something\n")
        with pytest.raises(UnsupportedPlatformError):
            detect_host([path])


# ── Package actions ──────────────────────────────────────────────────


class TestPackageActions:
    def test_debian_update_dev(self, debian_host):
        mock = MockRunner()
        PackageActions(mock, debian_host).update(EnvMode.DEV)
        assert mock.lines == [
            "apt-get update -qq",
            "apt-get upgrade -y -qq --with-new-pkgs",
        ]
        assert mock.call_log[0].env == {"DEBIAN_FRONTEND": "noninteractive"}

    def test_debian_update_prod(self, debian_host):
        mock = MockRunner()
        PackageActions(mock, debian_host).update(EnvMode.PROD)
        assert mock.lines[-1] == "apt-get upgrade -y -qq"

    def test_rhel_update_prefers_dnf(self, rhel_host):
        mock = MockRunner(tools=["dnf"])
        PackageActions(mock, rhel_host).update(EnvMode.PROD)
        assert mock.lines == ["dnf clean all", "dnf update -y --nobest --skip-broken"]

    def test_rhel_security_update_failure_tolerated(self, rhel_host):
        mock = MockRunner(tools=[])
        mock.fail("--security")
        PackageActions(mock, rhel_host).update(EnvMode.DEV)
        assert mock.lines[-1].startswith("yum update -y --security")

    def test_debian_update_failure_raises(self, debian_host):
        mock = MockRunner()
        mock.fail("apt-get update")
        with pytest.raises(CommandExecutionError):
            PackageActions(mock, debian_host).update(EnvMode.DEV)

    def test_base_tools_rocky_enables_epel(self, rhel_host):
        mock = MockRunner(tools=["dnf"])
        mock.fail("htop")
        PackageActions(mock, rhel_host).install_base_tools()
        assert mock.lines[0] == "dnf install -y epel-release"
        assert "dnf install -y htop" in mock.lines

    def test_base_tools_debian(self, debian_host):
        mock = MockRunner()
        PackageActions(mock, debian_host).install_base_tools()
        assert len(mock.lines) == 1
        assert mock.lines[0].startswith("apt-get install -y -qq git curl")

    def test_restart_service_first_that_works(self, debian_host):
        mock = MockRunner()
        mock.fail("restart sshd")
        assert PackageActions(mock, debian_host).restart_service("sshd", "ssh") == "ssh"

    def test_restart_service_none_work(self, debian_host):
        mock = MockRunner()
        mock.fail("systemctl restart")
        with pytest.raises(CommandExecutionError, match="sshd, ssh"):
            PackageActions(mock, debian_host).restart_service("sshd", "ssh")

    def test_docker_apt_repository(self, debian_host):
        mock = MockRunner()
        mock.respond("dpkg --print-architecture", CommandResult.success("amd64\n"))
        PackageActions(mock, debian_host).add_docker_repository()

        tee = mock.calls_matching(f"tee {DOCKER_APT_SOURCE}")
        assert len(tee) == 1
        assert tee[0].input == (
            "deb [arch=amd64 signed-by=/etc/apt/keyrings/docker.gpg] "
            "https://download.docker.com/linux/ubuntu jammy stable\n"
        )
        assert any(line.startswith("gpg --dearmor") for line in mock.lines)

    def test_docker_rhel_repository(self):
        mock = MockRunner(tools=["dnf"])
        host = HostProfile(family=OsFamily.RHEL, distro="fedora")
        PackageActions(mock, host).add_docker_repository()
        assert mock.lines[-1] == (
            "dnf config-manager --add-repo "
            "https://download.docker.com/linux/fedora/docker-ce.repo"
        )

    def test_install_docker_adds_group_once(self, rhel_host):
        mock = MockRunner(tools=["dnf"])
        mock.respond("id -nG", CommandResult.success("alice wheel docker\n"))
        PackageActions(mock, rhel_host).install_docker("alice")
        assert not mock.calls_matching("usermod")
        assert mock.lines[-2:] == ["systemctl enable docker", "systemctl start docker"]

    def test_install_docker_adds_group(self, rhel_host):
        mock = MockRunner(tools=["dnf"])
        mock.respond("id -nG", CommandResult.success("alice wheel\n"))
        PackageActions(mock, rhel_host).install_docker("alice")
        assert mock.calls_matching("usermod -aG docker alice")
