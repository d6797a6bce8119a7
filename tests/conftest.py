"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from hostprov.adapters.mock import MockRunner
from hostprov.adapters.shell.command import current_username
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.context import ProvisionContext
from hostprov.core.models.config import EnvMode, ProvisioningConfig
from hostprov.core.models.host import HostProfile, OsFamily

REPO_URL = "git@github.com:acme/My-Repo.git"

ENV_TEMPLATE = """\
APP_ENV=development
APP_DEBUG=true
SECURE_COOKIES=false
APP_URL=http://localhost:8080
DB_NAME=houseunity
DB_PASSWORD=tu_password_acá
MYSQL_PASSWORD=tu_password_acá
MYSQL_ROOT_PASSWORD=tu_root_password_acá
"""

UBUNTU_RELEASE = """\
NAME="Ubuntu"
VERSION_ID="22.04"
ID=ubuntu
ID_LIKE=debian
VERSION_CODENAME=jammy
"""

ROCKY_RELEASE = """\
NAME="Rocky Linux"
VERSION_ID="9.3"
ID="rocky"
ID_LIKE="rhel centos fedora"
"""

MASTER_STATUS = textwrap.dedent("""\
    *************************** 1. row ***************************
                 File: log.000003
             Position: 157
         Binlog_Do_DB:
     Binlog_Ignore_DB:
""")

SLAVE_STATUS_OK = textwrap.dedent("""\
    *************************** 1. row ***************************
                   Slave_IO_State: Waiting for source to send event
                      Master_Host: mysql
                  Master_Log_File: log.000003
              Read_Master_Log_Pos: 157
                 Slave_IO_Running: Yes
                Slave_SQL_Running: Yes
                    Last_IO_Error:
                   Last_SQL_Error:
            Seconds_Behind_Master: 0
""")

SLAVE_STATUS_SQL_STOPPED = SLAVE_STATUS_OK.replace(
    "Slave_SQL_Running: Yes", "Slave_SQL_Running: No"
).replace("Last_SQL_Error:", "Last_SQL_Error: Error 1062 duplicate entry").replace(
    "Seconds_Behind_Master: 0", "Seconds_Behind_Master: NULL"
)


class ScriptedPrompter:
    """Answers prompts from a list and records what was asked."""

    interactive = True

    def __init__(self, answers=(), secrets=()):
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.asked: list[str] = []
        self.paused: list[str] = []

    def ask(self, label, default=None):
        self.asked.append(label)
        if not self.answers:
            raise AssertionError(f"unexpected prompt: {label}")
        return self.answers.pop(0)

    def ask_secret(self, label, default=None):
        self.asked.append(label)
        if self.secrets:
            return self.secrets.pop(0)
        return default or ""

    def pause(self, message):
        self.paused.append(message)


@pytest.fixture
def user() -> str:
    """The account running the tests (chown to it always succeeds)."""
    return current_username()


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner(tools=["docker"])


@pytest.fixture
def settings(tmp_path: Path) -> ProvisionSettings:
    """Settings whose host files all live under tmp_path."""
    etc = tmp_path / "etc"
    etc.mkdir()
    return ProvisionSettings(
        config_file=str(tmp_path / ".provision.conf"),
        sshd_config=str(etc / "sshd_config"),
        exports_file=str(etc / "exports"),
        export_dir=str(tmp_path / "export"),
        dnf_conf=str(etc / "dnf.conf"),
        selinux_config=str(etc / "selinux"),
        compose_link_path=str(tmp_path / "bin" / "docker-compose"),
        readiness_interval=0,
        verify_settle_delay=0,
        app_ready_attempts=3,
        app_ready_interval=0,
    )


@pytest.fixture
def debian_host() -> HostProfile:
    return HostProfile(family=OsFamily.DEBIAN, distro="ubuntu", version="22.04", codename="jammy")


@pytest.fixture
def rhel_host() -> HostProfile:
    return HostProfile(family=OsFamily.RHEL, distro="rocky", version="9.3")


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_context(tmp_path, mock_runner, settings, debian_host, user, sleeps):
    """Factory for a ProvisionContext rooted in tmp_path."""

    def _make(
        *,
        mode: EnvMode = EnvMode.DEV,
        host: HostProfile | None = None,
        prompter=None,
        project_dir: Path | None = None,
    ) -> ProvisionContext:
        home = tmp_path / "home"
        home.mkdir(exist_ok=True)
        config = ProvisioningConfig(
            environment_mode=mode,
            repository_url=REPO_URL,
            install_directory=project_dir or home / "My-Repo",
        )
        return ProvisionContext(
            config=config,
            host=host or debian_host,
            runner=mock_runner,
            settings=settings,
            prompter=prompter or ScriptedPrompter(),
            user=user,
            home=home,
            sleep=sleeps.append,
        )

    return _make


def make_project(root: Path, settings: ProvisionSettings, template: str = ENV_TEMPLATE) -> Path:
    """Create a checkout containing every required project file."""
    root.mkdir(parents=True, exist_ok=True)
    for name in settings.required_project_files:
        path = root / name
        if "." in path.name:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("")
        else:
            path.mkdir(parents=True, exist_ok=True)
    (root / ".env.example").write_text(template, encoding="utf-8")
    return root


def write_os_release(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
