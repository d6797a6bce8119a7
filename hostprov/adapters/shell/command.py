"""
Shell command runner — the single place where provisioning spawns processes.

Every stage talks to the operating system through a ``CommandRunner``
so that tests can swap in ``MockRunner`` and nothing else has to know
how commands are executed.

Commands are argv lists, never shell strings. The provisioning process
runs as root; commands that must act on behalf of the invoking user
(git, ssh-keygen, ssh) pass ``as_user=`` and are wrapped in
``sudo -u <user> -H``.
"""

from __future__ import annotations

import logging
import os
import pwd
import shutil
import subprocess
import time
from typing import Any

from pydantic import BaseModel, Field

from hostprov.core.errors import CommandExecutionError

logger = logging.getLogger(__name__)

# Exit codes used when the process never produced one.
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124

# Results keep the full output for parsers; only log lines are shortened.
_LOG_TAIL = 4000


def _tail(text: str, limit: int = _LOG_TAIL) -> str:
    text = text.strip()
    return text if len(text) <= limit else "..." + text[-limit:]


class CommandResult(BaseModel):
    """Outcome of a single command.

    Like an adapter receipt: the runner never raises on a non-zero
    exit by itself; ``check()`` turns a failed result into a
    ``CommandExecutionError`` when the caller wants that.
    """

    command: list[str] = Field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Stripped stdout, the common case for probes."""
        return self.stdout.strip()

    def check(self) -> CommandResult:
        """Return self, or raise ``CommandExecutionError`` if the command failed."""
        if not self.ok:
            raise CommandExecutionError(
                self.command, self.returncode, self.stdout, self.stderr
            )
        return self

    @classmethod
    def success(cls, stdout: str = "", **kwargs: Any) -> CommandResult:
        return cls(returncode=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(
        cls, stderr: str = "", returncode: int = 1, **kwargs: Any
    ) -> CommandResult:
        return cls(returncode=returncode, stderr=stderr, **kwargs)


def current_username() -> str:
    """Name of the account the process is running as."""
    try:
        return pwd.getpwuid(os.geteuid()).pw_name
    except KeyError:
        return os.environ.get("USER", "root")


class CommandRunner:
    """Execute commands and capture their output.

    Args:
        default_timeout: Seconds before a command is killed.
        dry_run: Log commands instead of running them.
    """

    name = "shell"

    def __init__(self, default_timeout: int = 900, dry_run: bool = False):
        self.default_timeout = default_timeout
        self.dry_run = dry_run

    def which(self, tool: str) -> bool:
        """Whether ``tool`` is on PATH."""
        return shutil.which(tool) is not None

    def run(
        self,
        cmd: list[str],
        *,
        check: bool = True,
        as_user: str | None = None,
        env: dict[str, str] | None = None,
        cwd: str | os.PathLike[str] | None = None,
        timeout: int | None = None,
        input: str | None = None,
    ) -> CommandResult:
        """Run ``cmd`` and return its result.

        Args:
            cmd: argv list.
            check: Raise ``CommandExecutionError`` on a non-zero exit.
            as_user: Run as this account (via ``sudo -u``) unless it is
                already the current one.
            env: Extra environment variables for the child.
            cwd: Working directory.
            timeout: Override ``default_timeout``.
            input: Text piped to stdin.
        """
        argv = list(cmd)
        if as_user and as_user != current_username():
            argv = ["sudo", "-u", as_user, "-H", *argv]

        logger.debug("$ %s%s", " ".join(argv), f" (cwd={cwd})" if cwd else "")

        if self.dry_run:
            result = CommandResult(command=argv, stdout="")
        else:
            result = self._execute(
                argv,
                env=env,
                cwd=str(cwd) if cwd is not None else None,
                timeout=timeout or self.default_timeout,
                input=input,
            )

        if not result.ok:
            logger.debug("exit %d: %s", result.returncode, _tail(result.stderr or result.stdout))
        if check:
            result.check()
        return result

    def _execute(
        self,
        argv: list[str],
        *,
        env: dict[str, str] | None,
        cwd: str | None,
        timeout: int,
        input: str | None,
    ) -> CommandResult:
        child_env = os.environ.copy()
        if env:
            child_env.update(env)

        start = time.monotonic()
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=input,
                env=child_env,
                cwd=cwd,
            )
        except FileNotFoundError:
            return CommandResult(
                command=argv,
                returncode=EXIT_NOT_FOUND,
                stderr=f"{argv[0]}: command not found",
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                command=argv,
                returncode=EXIT_TIMEOUT,
                stderr=f"Command timed out after {timeout}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        return CommandResult(
            command=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_ms=int((time.monotonic() - start) * 1000),
        )
