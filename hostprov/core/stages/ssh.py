"""
SSH stages — daemon hardening and the operator's SCM identity.

Hardening enforces two sshd directives through the idempotent editor
and restarts the daemon only when the file actually changed.
Password authentication can be re-enabled temporarily (key copy to
another machine) and is always switched off again afterwards.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.context import ProvisionContext
from hostprov.core.errors import ProvisioningError
from hostprov.core.files.editor import IdempotentFileEditor
from hostprov.core.host.packages import PackageActions
from hostprov.core.models.host import HostProfile

logger = logging.getLogger(__name__)

HARDENED_DIRECTIVES = {
    "PermitRootLogin": "no",
    "PasswordAuthentication": "no",
}


def ensure_ssh_dir(ssh_dir: Path, user: str) -> Path:
    """``~/.ssh`` with mode 0700, owned by ``user``."""
    ssh_dir.mkdir(parents=True, exist_ok=True)
    ssh_dir.chmod(0o700)
    shutil.chown(ssh_dir, user=user)
    return ssh_dir


def _sshd_config(settings: ProvisionSettings) -> Path:
    path = Path(settings.sshd_config)
    if not path.is_file():
        raise ProvisioningError(f"{path} not found; is openssh-server installed?")
    return path


# ── Hardening ───────────────────────────────────────────────────


def harden_sshd(
    runner: CommandRunner,
    host: HostProfile,
    settings: ProvisionSettings,
    editor: IdempotentFileEditor | None = None,
) -> bool:
    """Enforce the hardened directives; returns True if sshd was restarted."""
    path = _sshd_config(settings)
    editor = editor or IdempotentFileEditor()

    changed = False
    for name, value in HARDENED_DIRECTIVES.items():
        changed = editor.upsert(path, name, value) or changed

    if not changed:
        logger.info("SSH daemon already hardened")
        return False
    PackageActions(runner, host).restart_service(*settings.ssh_service_names)
    return True


def harden_ssh(ctx: ProvisionContext) -> None:
    ensure_ssh_dir(ctx.ssh_dir, ctx.user)
    harden_sshd(ctx.runner, ctx.host, ctx.settings)
    logger.info("SSH configured")


def set_password_authentication(
    runner: CommandRunner,
    host: HostProfile,
    settings: ProvisionSettings,
    enabled: bool,
    editor: IdempotentFileEditor | None = None,
) -> bool:
    """The named toggle: switch ``PasswordAuthentication`` on or off."""
    path = _sshd_config(settings)
    value = "yes" if enabled else "no"
    logger.info("%s SSH password authentication", "Enabling" if enabled else "Disabling")
    editor = editor or IdempotentFileEditor()
    changed = editor.upsert(path, "PasswordAuthentication", value)
    if changed:
        PackageActions(runner, host).restart_service(*settings.ssh_service_names)
    return changed


@contextmanager
def password_authentication_enabled(
    runner: CommandRunner,
    host: HostProfile,
    settings: ProvisionSettings,
) -> Iterator[None]:
    """Allow password logins for the duration of the block only.

    One editor covers both edits, so the single backup holds the file
    as it was before the block.
    """
    editor = IdempotentFileEditor()
    set_password_authentication(runner, host, settings, True, editor)
    try:
        yield
    finally:
        set_password_authentication(runner, host, settings, False, editor)


def copy_public_key(
    runner: CommandRunner,
    host: HostProfile,
    settings: ProvisionSettings,
    *,
    user: str,
    home: Path,
    target_host: str,
    target_user: str,
    remote_path: str | None = None,
) -> bool:
    """``scp`` the operator's public key to another machine.

    Password authentication is enabled for the transfer and disabled
    again whatever the outcome.
    """
    pub_key = home / ".ssh" / f"{settings.ssh_key_name}.pub"
    if not pub_key.is_file():
        raise ProvisioningError(f"Public key not found: {pub_key}")
    if remote_path is None:
        remote_path = (
            f"C:\\Users\\{target_user}\\.ssh\\"
            f"{settings.project_name.lower()}_vm_{settings.ssh_key_name}.pub"
        )

    with password_authentication_enabled(runner, host, settings):
        result = runner.run(
            ["scp", str(pub_key), f"{target_user}@{target_host}:{remote_path}"],
            as_user=user,
            check=False,
        )

    if result.ok:
        logger.info("Public key copied to %s@%s", target_user, target_host)
    else:
        logger.warning("Could not copy the public key; copy it manually:")
        logger.warning("  scp %s %s@%s:%s", pub_key, target_user, target_host, remote_path)
    return result.ok


# ── SCM identity ────────────────────────────────────────────────


def _key_path(ctx: ProvisionContext) -> Path:
    return ctx.ssh_dir / ctx.settings.ssh_key_name


def scm_authenticated(runner: CommandRunner, user: str, scm_host: str) -> bool:
    """Whether ``ssh -T git@<host>`` reports a successful authentication."""
    result = runner.run(
        [
            "ssh", "-T",
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=accept-new",
            f"git@{scm_host}",
        ],
        as_user=user,
        check=False,
        timeout=30,
    )
    return "successfully authenticated" in (result.stdout + result.stderr)


def scm_identity_ready(ctx: ProvisionContext) -> bool:
    return _key_path(ctx).is_file() and scm_authenticated(
        ctx.runner, ctx.user, ctx.settings.scm_host
    )


def establish_scm_identity(ctx: ProvisionContext) -> None:
    """Generate a key if needed, show it, wait for the operator, test it."""
    s = ctx.settings
    ensure_ssh_dir(ctx.ssh_dir, ctx.user)
    key = _key_path(ctx)

    if key.is_file():
        logger.info("Existing SSH key found at %s", key)
    else:
        logger.info("Generating a new SSH key...")
        ctx.runner.run(
            [
                "ssh-keygen", "-t", "rsa", "-b", str(s.ssh_key_bits),
                "-C", s.ssh_key_comment, "-N", "", "-f", str(key),
            ],
            as_user=ctx.user,
        )

    public_key = key.with_name(key.name + ".pub").read_text(encoding="utf-8").strip()
    ctx.outputs["public_key"] = public_key
    logger.info("Your public key is:")
    logger.info("%s", public_key)
    logger.info(
        "Add it to your %s account (Settings → SSH and GPG keys → New SSH key)",
        s.scm_host,
    )
    ctx.prompter.pause("Press Enter once the key has been added...")

    if scm_authenticated(ctx.runner, ctx.user, s.scm_host):
        logger.info("SSH authentication with %s works", s.scm_host)
    else:
        logger.warning("SSH authentication with %s failed; cloning may fail", s.scm_host)
