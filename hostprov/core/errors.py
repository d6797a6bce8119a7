"""
Error taxonomy — every failure the provisioning run can surface.

Each class carries a ``fatal`` flag. The stage pipeline consults it:
a fatal error aborts the run even when raised inside a
``warn-and-continue`` stage, a non-fatal one follows the stage's
own failure policy.

    ValidationError           bad/missing configuration input      fatal
    MissingCredentialError    required secret absent from .env     fatal
    UnsupportedPlatformError  no recognizable OS release metadata  fatal
    PrivilegeError            not running as root                  fatal
    SettingsError             invalid hostprov.yml                 fatal
    ReadinessTimeoutError     bounded polling exhausted            policy
    CommandExecutionError     privileged command failed            policy
    RepositoryError           target dir is not a git checkout     policy
    ReplicationError          replication did not converge         policy
"""

from __future__ import annotations


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""

    fatal: bool = False


class ValidationError(ProvisioningError):
    """Raised when configuration input is missing or invalid."""

    fatal = True

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class MissingCredentialError(ValidationError):
    """Raised when a credential required by a stage is not defined."""


class UnsupportedPlatformError(ProvisioningError):
    """Raised when the host OS cannot be detected or is not supported."""

    fatal = True


class PrivilegeError(ProvisioningError):
    """Raised when the process lacks the privileges provisioning needs."""

    fatal = True


class SettingsError(ProvisioningError):
    """Raised when the tool settings file is invalid."""

    fatal = True


class ReadinessTimeoutError(ProvisioningError, TimeoutError):
    """Raised when a readiness probe never succeeded within its budget."""

    def __init__(self, name: str, attempts: int, interval: float):
        super().__init__(
            f"{name or 'probe'} not ready after {attempts} attempts "
            f"({interval:g}s interval)"
        )
        self.name = name
        self.attempts = attempts
        self.interval = interval


class CommandExecutionError(ProvisioningError):
    """Raised when an underlying command exits non-zero."""

    def __init__(
        self,
        command: list[str] | str,
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
        message: str | None = None,
    ):
        if isinstance(command, list):
            command = " ".join(command)
        if message is None:
            detail = (stderr or stdout).strip().splitlines()
            tail = f": {detail[-1]}" if detail else ""
            message = f"Command failed (exit {returncode}): {command}{tail}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class RepositoryError(ProvisioningError):
    """Raised when the application repository cannot be cloned or updated."""


class ReplicationError(ProvisioningError):
    """Raised when the replication bootstrap ends in the FAILED outcome."""
