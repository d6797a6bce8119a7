"""
Replication bootstrapper — turn two running databases into a converged pair.

Phases run from a single ordered dispatch table; each visited phase is
appended to ``history`` before its handler runs, so a failure report
always names the phase that failed:

    WAIT_MASTER                 container running + liveness polling
    WAIT_SLAVE                  same, for the slave
    PROVISION_REPL_USER         create user (idempotent) + grant
    CAPTURE_MASTER_COORDINATE   (log file, position), both required
    APPLY_TO_SLAVE              stop, change source, start
    VERIFY                      settle delay, then both threads running

Timeouts and command failures end in the FAILED outcome with
diagnostics. Fatal errors (e.g. a missing credential) propagate.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from hostprov.core.errors import ProvisioningError, ReplicationError
from hostprov.core.models.replication import (
    DatabaseCredentials,
    LogCoordinate,
    ReplicationOutcome,
    ReplicationPhase,
    ReplicationReport,
    ReplicationState,
)
from hostprov.core.reliability.poller import ReadinessPoller
from hostprov.core.replication.control import ReplicationControl, Role, describe_state

logger = logging.getLogger(__name__)


class ReplicationBootstrapper:
    """Run the bootstrap protocol once.

    Args:
        control: Database control surface.
        credentials: Typed credentials from the generated ``.env``.
        poller: Liveness polling budget (30 × 2 s by default).
        settle_delay: Seconds to wait before reading the slave status.
        sleep: Sleep function (injected in tests).
    """

    def __init__(
        self,
        control: ReplicationControl,
        credentials: DatabaseCredentials,
        poller: ReadinessPoller | None = None,
        settle_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.control = control
        self.credentials = credentials
        self.poller = poller or ReadinessPoller(sleep=sleep)
        self.settle_delay = settle_delay
        self.sleep = sleep

        self.history: list[ReplicationPhase] = []
        self.coordinate: LogCoordinate | None = None
        self.state: ReplicationState | None = None

        self._dispatch: list[tuple[ReplicationPhase, Callable[[], None]]] = [
            (ReplicationPhase.WAIT_MASTER, lambda: self._wait(Role.MASTER)),
            (ReplicationPhase.WAIT_SLAVE, lambda: self._wait(Role.SLAVE)),
            (ReplicationPhase.PROVISION_REPL_USER, self._provision_user),
            (ReplicationPhase.CAPTURE_MASTER_COORDINATE, self._capture_coordinate),
            (ReplicationPhase.APPLY_TO_SLAVE, self._apply_to_slave),
            (ReplicationPhase.VERIFY, self._verify),
        ]

    def run(self) -> ReplicationReport:
        for phase, handler in self._dispatch:
            self.history.append(phase)
            logger.debug("Replication phase: %s", phase)
            try:
                handler()
            except ProvisioningError as exc:
                if exc.fatal:
                    raise
                return self._failed(phase, exc)

        logger.info("Master/slave replication converged")
        return ReplicationReport(
            outcome=ReplicationOutcome.CONVERGED,
            history=list(self.history),
            coordinate=self.coordinate,
            state=self.state,
        )

    # ── Phases ──────────────────────────────────────────────────

    def _wait(self, role: Role) -> None:
        if not self.control.is_running(role):
            raise ReplicationError(f"{role} database container is not running")
        logger.info("Waiting for the %s database...", role)
        self.poller.await_ready(lambda: self.control.ping(role), name=f"{role} database")
        logger.info("%s database is ready", role.capitalize())

    def _provision_user(self) -> None:
        user = self.credentials.replication_user
        password = self.credentials.replication_password.get_secret_value()
        self.control.create_replication_user(user, password)
        self.control.grant_replication(user)

    def _capture_coordinate(self) -> None:
        log_file, position = self.control.read_log_coordinate()
        log_file, position = log_file.strip(), position.strip()
        if not log_file or not position:
            raise ReplicationError(
                "Could not determine the master's binary log coordinate "
                f"(file={log_file!r}, position={position!r})"
            )
        if not position.isdigit():
            raise ReplicationError(f"Invalid master log position: {position!r}")
        self.coordinate = LogCoordinate(file=log_file, position=int(position))
        logger.info("Master log coordinate: %s", self.coordinate)

    def _apply_to_slave(self) -> None:
        assert self.coordinate is not None
        self.control.change_source_and_start(
            self.coordinate,
            self.credentials.replication_user,
            self.credentials.replication_password.get_secret_value(),
        )

    def _verify(self) -> None:
        assert self.coordinate is not None
        self.sleep(self.settle_delay)
        status = self.control.read_replica_status()
        self.state = status.model_copy(
            update={
                "master_log_file": self.coordinate.file,
                "master_log_position": self.coordinate.position,
            }
        )
        for line in describe_state(self.state):
            logger.info("  %s", line)
        if not self.state.converged:
            raise ReplicationError("Replication threads are not both running")

    # ── Failure ─────────────────────────────────────────────────

    def _failed(self, phase: ReplicationPhase, exc: ProvisioningError) -> ReplicationReport:
        diagnostics = [f"{phase}: {exc}"]
        if phase == ReplicationPhase.VERIFY and self.state is not None:
            diagnostics += describe_state(self.state)
        elif phase in (ReplicationPhase.WAIT_MASTER, ReplicationPhase.PROVISION_REPL_USER,
                       ReplicationPhase.CAPTURE_MASTER_COORDINATE):
            diagnostics += self.control.diagnose(Role.MASTER)
        elif phase in (ReplicationPhase.WAIT_SLAVE, ReplicationPhase.APPLY_TO_SLAVE):
            diagnostics += self.control.diagnose(Role.SLAVE)

        logger.warning("Replication setup failed during %s: %s", phase, exc)
        for line in diagnostics[1:]:
            logger.warning("  %s", line)

        return ReplicationReport(
            outcome=ReplicationOutcome.FAILED,
            history=list(self.history),
            coordinate=self.coordinate,
            state=self.state,
            diagnostics=diagnostics,
            error=str(exc),
        )
