"""
Replication models — transient state of a master/slave bootstrap.

Nothing here is persisted: every run re-captures the master's log
coordinate and re-reads the slave's stream status.

Phases, in order:

    WAIT_MASTER → WAIT_SLAVE → PROVISION_REPL_USER
        → CAPTURE_MASTER_COORDINATE → APPLY_TO_SLAVE → VERIFY

Terminal outcomes: CONVERGED, FAILED.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class ReplicationPhase(StrEnum):
    WAIT_MASTER = "wait_master"
    WAIT_SLAVE = "wait_slave"
    PROVISION_REPL_USER = "provision_repl_user"
    CAPTURE_MASTER_COORDINATE = "capture_master_coordinate"
    APPLY_TO_SLAVE = "apply_to_slave"
    VERIFY = "verify"


class ReplicationOutcome(StrEnum):
    CONVERGED = "converged"
    FAILED = "failed"


class LogCoordinate(BaseModel):
    """A position in the master's binary log."""

    model_config = ConfigDict(frozen=True)

    file: str
    position: int

    def __str__(self) -> str:
        return f"{self.file}:{self.position}"


class ReplicationState(BaseModel):
    """Slave stream status as last read, plus the coordinate applied."""

    master_log_file: str = ""
    master_log_position: int = 0
    io_thread_running: bool = False
    sql_thread_running: bool = False
    seconds_behind_master: int | None = None
    last_io_error: str = ""
    last_sql_error: str = ""

    @property
    def converged(self) -> bool:
        return self.io_thread_running and self.sql_thread_running


class DatabaseCredentials(BaseModel):
    """Credentials read once from the generated ``.env`` file."""

    model_config = ConfigDict(frozen=True)

    root_password: SecretStr
    database: str = ""
    replication_user: str = "repl_user"
    replication_password: SecretStr = SecretStr("Repl1c@2024")


class ReplicationReport(BaseModel):
    """Result of one bootstrap attempt."""

    outcome: ReplicationOutcome
    history: list[ReplicationPhase] = Field(default_factory=list)
    coordinate: LogCoordinate | None = None
    state: ReplicationState | None = None
    diagnostics: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def converged(self) -> bool:
        return self.outcome == ReplicationOutcome.CONVERGED

    @property
    def failed_in(self) -> ReplicationPhase | None:
        """Phase that was running when the bootstrap failed."""
        if self.converged or not self.history:
            return None
        return self.history[-1]

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
