"""
Backup transport stage — NFS export plus rsync daemon.

The export line is maintained with the idempotent editor, so re-runs
neither duplicate it nor lose unrelated exports.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hostprov.core.config.env_file import redact
from hostprov.core.context import ProvisionContext
from hostprov.core.files.editor import IdempotentFileEditor
from hostprov.core.host.packages import (
    NFS_PACKAGES,
    NFS_SERVICE,
    RSYNC_SERVICE,
    PackageActions,
)

logger = logging.getLogger(__name__)

RSYNC_CONF = "/etc/rsyncd.conf"
RSYNC_SECRETS = "/etc/rsyncd.secrets"
REPO_RSYNC_DIR = Path("docker") / "scripts"


def _export_flags(options: str) -> str:
    """``*(rw,sync)`` → ``rw,sync``."""
    start, end = options.find("("), options.rfind(")")
    return options[start + 1:end] if start != -1 and end > start else options


def _configure_nfs(ctx: ProvisionContext, pkgs: PackageActions) -> None:
    s = ctx.settings
    ctx.runner.run(["mkdir", "-p", s.export_dir])
    ctx.runner.run(["chmod", "777", s.export_dir])
    if not ctx.runner.run(["chown", "nobody:nogroup", s.export_dir], check=False).ok:
        ctx.runner.run(["chown", "nobody:nobody", s.export_dir], check=False)

    IdempotentFileEditor().upsert(s.exports_file, s.export_dir, s.export_options)

    if ctx.runner.run(["exportfs", "-ra"], check=False).ok:
        logger.info("NFS exports applied")
    else:
        logger.warning("exportfs -ra failed; exporting %s directly", s.export_dir)
        exports = Path(s.exports_file)
        if exports.is_file():
            for line in exports.read_text(encoding="utf-8").splitlines():
                logger.warning("  %s", line)
        ctx.runner.run(
            ["exportfs", "-o", _export_flags(s.export_options), f"*:{s.export_dir}"],
            check=False,
        )

    pkgs.enable_service(NFS_SERVICE[ctx.host.family])


def _configure_rsync(ctx: ProvisionContext) -> None:
    source = ctx.project_dir / REPO_RSYNC_DIR
    conf, secrets = source / "rsyncd.conf", source / "rsyncd.secrets"

    if not conf.is_file():
        logger.warning("%s not found in the repository; skipping rsync setup", conf)
        return
    ctx.runner.run(["install", "-m", "0644", str(conf), RSYNC_CONF])

    if not secrets.is_file():
        logger.warning("%s not found in the repository; skipping rsync setup", secrets)
        return
    ctx.runner.run(["install", "-m", "0600", str(secrets), RSYNC_SECRETS])

    for line in secrets.read_text(encoding="utf-8").splitlines():
        user, _, password = line.partition(":")
        if user.strip() == ctx.settings.rsync_user:
            logger.info("rsync user: %s (password %s)", user.strip(), redact(password.strip()))
            break

    service = RSYNC_SERVICE[ctx.host.family]
    ctx.runner.run(["systemctl", "enable", service], check=False)
    if not ctx.runner.run(["systemctl", "restart", service], check=False).ok:
        ctx.runner.run(["pkill", "rsync"], check=False)
        ctx.runner.run(["rsync", "--daemon"])


def _open_firewall(ctx: ProvisionContext) -> None:
    port = f"{ctx.settings.rsync_port}/tcp"
    if ctx.runner.which("firewall-cmd"):
        ctx.runner.run(["firewall-cmd", "--permanent", "--add-service=nfs"], check=False)
        ctx.runner.run(["firewall-cmd", "--permanent", f"--add-port={port}"], check=False)
        ctx.runner.run(["firewall-cmd", "--reload"], check=False)
    elif ctx.runner.which("ufw"):
        ctx.runner.run(["ufw", "allow", port], check=False)
        ctx.runner.run(["ufw", "allow", "nfs"], check=False)
    else:
        logger.debug("No firewall manager found")


def configure_backup_transport(ctx: ProvisionContext) -> None:
    logger.info("Configuring backup transport (NFS and rsync)...")
    pkgs = PackageActions(ctx.runner, ctx.host)
    pkgs.install(NFS_PACKAGES[ctx.host.family])
    _configure_nfs(ctx, pkgs)
    _configure_rsync(ctx)
    _open_firewall(ctx)
    logger.info("Backup transport configured")
