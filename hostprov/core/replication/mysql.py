"""
MySQL replication control over ``docker exec``.

Statements are piped to the ``mysql`` client on stdin and the root
password travels in ``MYSQL_PWD``, so no secret ever appears in a
process listing.
"""

from __future__ import annotations

import logging

from hostprov.adapters.containers.docker import DockerCli
from hostprov.adapters.shell.command import CommandResult
from hostprov.core.config.env_file import redact
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.models.replication import (
    DatabaseCredentials,
    LogCoordinate,
    ReplicationState,
)
from hostprov.core.replication.control import Role, parse_vertical, state_from_status

logger = logging.getLogger(__name__)

_ALREADY_EXISTS = ("ERROR 1396", "already exists")


def _quote(value: str) -> str:
    """SQL string literal."""
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


class MySQLDockerControl:
    """``ReplicationControl`` for a master/slave pair of MySQL containers."""

    def __init__(
        self,
        docker: DockerCli,
        credentials: DatabaseCredentials,
        settings: ProvisionSettings,
    ):
        self.docker = docker
        self.credentials = credentials
        self.settings = settings

    def container(self, role: Role) -> str:
        if role == Role.MASTER:
            return self.settings.master_container
        return self.settings.slave_container

    @property
    def _auth_env(self) -> dict[str, str]:
        return {"MYSQL_PWD": self.credentials.root_password.get_secret_value()}

    def _sql(self, role: Role, statement: str) -> CommandResult:
        return self.docker.exec(
            self.container(role),
            "mysql", "--protocol=TCP", "-h", "127.0.0.1", "-u", "root",
            env=self._auth_env,
            input=statement.rstrip() + "\n",
        )

    # ── Liveness ────────────────────────────────────────────────

    def is_running(self, role: Role) -> bool:
        return self.docker.is_running(self.container(role))

    def ping(self, role: Role) -> bool:
        result = self.docker.exec(
            self.container(role),
            "mysqladmin", "ping", "-h", "127.0.0.1", "-u", "root", "--silent",
            env=self._auth_env,
        )
        return result.ok

    # ── Master ──────────────────────────────────────────────────

    def create_replication_user(self, user: str, password: str) -> None:
        result = self._sql(
            Role.MASTER,
            f"CREATE USER IF NOT EXISTS {_quote(user)}@'%' "
            f"IDENTIFIED WITH mysql_native_password BY {_quote(password)};",
        )
        if not result.ok:
            if any(marker in result.stderr for marker in _ALREADY_EXISTS):
                logger.info("Replication user %s already exists", user)
                return
            result.check()
        logger.info("Replication user %s created or verified", user)

    def grant_replication(self, user: str) -> None:
        self._sql(Role.MASTER, f"GRANT REPLICATION SLAVE ON *.* TO {_quote(user)}@'%';").check()
        self._sql(Role.MASTER, "FLUSH PRIVILEGES;").check()
        logger.info("Granted REPLICATION SLAVE to %s", user)

    def read_log_coordinate(self) -> tuple[str, str]:
        """``(File, Position)`` from SHOW MASTER STATUS (empty strings if unknown)."""
        fields: dict[str, str] = {}
        for statement in ("SHOW MASTER STATUS\\G", "SHOW BINARY LOG STATUS\\G"):
            result = self._sql(Role.MASTER, statement)
            if result.ok:
                fields = parse_vertical(result.stdout)
                if fields.get("File"):
                    break
        return fields.get("File", ""), fields.get("Position", "")

    # ── Slave ───────────────────────────────────────────────────

    def change_source_and_start(
        self, coordinate: LogCoordinate, user: str, password: str
    ) -> None:
        statement = (
            "STOP SLAVE;\n"
            "CHANGE MASTER TO\n"
            f"  MASTER_HOST={_quote(self.settings.master_host)},\n"
            f"  MASTER_USER={_quote(user)},\n"
            f"  MASTER_PASSWORD={_quote(password)},\n"
            f"  MASTER_LOG_FILE={_quote(coordinate.file)},\n"
            f"  MASTER_LOG_POS={coordinate.position};\n"
            "START SLAVE;"
        )
        self._sql(Role.SLAVE, statement).check()
        logger.info("Slave pointed at %s (%s)", self.settings.master_host, coordinate)

    def read_replica_status(self) -> ReplicationState:
        fields: dict[str, str] = {}
        for statement in ("SHOW SLAVE STATUS\\G", "SHOW REPLICA STATUS\\G"):
            result = self._sql(Role.SLAVE, statement)
            if result.ok:
                fields = parse_vertical(result.stdout)
                if fields:
                    break
        return state_from_status(fields)

    # ── Diagnostics ─────────────────────────────────────────────

    def diagnose(self, role: Role) -> list[str]:
        """Connectivity report for a database container that misbehaves."""
        name = self.container(role)
        lines = [f"Container status: {self.docker.container_status(name)}"]

        authed = self.docker.exec(
            name, "mysqladmin", "-u", "root", "ping", env=self._auth_env
        )
        lines.append(
            "mysqladmin ping (with credentials): "
            + ((authed.stdout or authed.stderr).strip() or f"exit {authed.returncode}")
        )
        bare = self.docker.exec(name, "mysqladmin", "ping")
        lines.append(
            "mysqladmin ping (no credentials): "
            + ((bare.stdout or bare.stderr).strip() or f"exit {bare.returncode}")
        )

        started_with = self.docker.container_env(name, "MYSQL_ROOT_PASSWORD")
        lines.append(
            f"Root password in .env: {redact(self.credentials.root_password)}; "
            f"container started with: {redact(started_with) if started_with else 'unavailable'}"
        )
        lines += [
            "Possible causes:",
            f"  A) MySQL is still initializing; check 'docker logs {name}' and retry",
            "  B) MYSQL_ROOT_PASSWORD in .env has stray spaces or differs from the "
            "password the data volume was created with",
            f"  C) The container is restarting; check 'docker ps -a | grep {name}'",
            "Re-run later with: hostprov replication setup",
        ]
        return lines
