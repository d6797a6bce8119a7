"""
Replication control surface — what the bootstrapper needs from a database.

Any engine that can create a replication user, report its log
coordinate and point a replica at a source satisfies
``ReplicationControl``. The MySQL implementation lives in ``mysql.py``.

Also holds the parser for MySQL's vertical (``\\G``) output, shared by
the status commands.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Protocol

from hostprov.core.models.replication import LogCoordinate, ReplicationState

_ROW_SEPARATOR = re.compile(r"^\*+\s*\d+\.\s*row\s*\*+$")
_FIELD = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*):\s?(.*)$")


class Role(StrEnum):
    MASTER = "master"
    SLAVE = "slave"


class ReplicationControl(Protocol):
    def is_running(self, role: Role) -> bool: ...

    def ping(self, role: Role) -> bool: ...

    def create_replication_user(self, user: str, password: str) -> None: ...

    def grant_replication(self, user: str) -> None: ...

    def read_log_coordinate(self) -> tuple[str, str]: ...

    def change_source_and_start(
        self, coordinate: LogCoordinate, user: str, password: str
    ) -> None: ...

    def read_replica_status(self) -> ReplicationState: ...

    def diagnose(self, role: Role) -> list[str]: ...


def parse_vertical(text: str) -> dict[str, str]:
    """Fields of the first row of ``\\G`` output.

    >>> parse_vertical("*** 1. row ***\\n   File: log.000003\\nPosition: 157")
    {'File': 'log.000003', 'Position': '157'}
    """
    fields: dict[str, str] = {}
    rows_seen = 0
    for line in text.splitlines():
        stripped = line.strip()
        if _ROW_SEPARATOR.match(stripped):
            rows_seen += 1
            if rows_seen > 1:
                break
            continue
        m = _FIELD.match(line)
        if m and m.group(1) not in fields:
            fields[m.group(1)] = m.group(2).strip()
    return fields


def _first(fields: dict[str, str], *names: str) -> str:
    for name in names:
        if fields.get(name):
            return fields[name]
    return ""


def state_from_status(fields: dict[str, str]) -> ReplicationState:
    """Build a ``ReplicationState`` from SHOW SLAVE/REPLICA STATUS fields."""
    lag = _first(fields, "Seconds_Behind_Master", "Seconds_Behind_Source")
    position = _first(fields, "Read_Master_Log_Pos", "Read_Source_Log_Pos")
    return ReplicationState(
        master_log_file=_first(fields, "Master_Log_File", "Source_Log_File"),
        master_log_position=int(position) if position.isdigit() else 0,
        io_thread_running=_first(fields, "Slave_IO_Running", "Replica_IO_Running") == "Yes",
        sql_thread_running=_first(fields, "Slave_SQL_Running", "Replica_SQL_Running") == "Yes",
        seconds_behind_master=int(lag) if lag.isdigit() else None,
        last_io_error=_first(fields, "Last_IO_Error"),
        last_sql_error=_first(fields, "Last_SQL_Error"),
    )


def describe_state(state: ReplicationState) -> list[str]:
    """Status lines in the familiar ``Slave_*`` vocabulary."""
    lines = [
        f"Slave_IO_Running: {'Yes' if state.io_thread_running else 'No'}",
        f"Slave_SQL_Running: {'Yes' if state.sql_thread_running else 'No'}",
        "Seconds_Behind_Master: "
        + ("NULL" if state.seconds_behind_master is None else str(state.seconds_behind_master)),
    ]
    if state.last_io_error:
        lines.append(f"Last_IO_Error: {state.last_io_error}")
    if state.last_sql_error:
        lines.append(f"Last_SQL_Error: {state.last_sql_error}")
    return lines
