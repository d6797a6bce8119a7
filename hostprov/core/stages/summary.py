"""
Access summary stage — how to reach what was just provisioned.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from pathlib import Path

import yaml

from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.context import ProvisionContext
from hostprov.core.models.config import EnvMode
from hostprov.core.models.replication import ReplicationReport

logger = logging.getLogger(__name__)

COMPOSE_FILE = "docker-compose.yml"
NAT_PREFIX = "10.0.2."


def primary_ipv4(runner: CommandRunner) -> str:
    """First non-loopback IPv4 address of the host."""
    result = runner.run(["hostname", "-I"], check=False)
    for addr in result.output.split():
        if ":" not in addr and not addr.startswith("127."):
            return addr
    return "127.0.0.1"


def _host_port(entry: object) -> int | None:
    if isinstance(entry, dict):
        published = entry.get("published")
        return int(published) if str(published).isdigit() else None
    parts = str(entry).split("/")[0].split(":")
    if len(parts) < 2:
        return None
    return int(parts[-2]) if parts[-2].isdigit() else None


def published_ports(compose_file: Path, exclude: Collection[int] = ()) -> list[int]:
    """Host ports published in a compose file, in service order."""
    try:
        data = yaml.safe_load(compose_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.debug("Cannot read ports from %s: %s", compose_file, e)
        return []
    services = data.get("services") if isinstance(data, dict) else None
    ports: list[int] = []
    for service in (services or {}).values():
        for entry in (service or {}).get("ports", []) or []:
            port = _host_port(entry)
            if port is not None and port not in exclude and port not in ports:
                ports.append(port)
    return ports


def build_access_summary(ctx: ProvisionContext) -> list[str]:
    s = ctx.settings
    ip = primary_ipv4(ctx.runner)
    ports = published_ports(
        ctx.project_dir / COMPOSE_FILE,
        exclude={s.master_published_port, s.slave_published_port},
    )
    backend = ports[0] if ports else s.default_backend_port
    frontend = ports[1] if len(ports) > 1 else s.default_frontend_port

    lines = [f"Installation of {s.project_name} complete", ""]
    if ip.startswith(NAT_PREFIX):
        lines += [
            "NAT networking detected; add VirtualBox port forwarding",
            "(Settings → Network → Port Forwarding):",
            f"  Host {backend} → Guest {backend}",
            f"  Host {frontend} → Guest {frontend}",
            f"Then open http://localhost:{backend} and http://localhost:{frontend}",
        ]
    else:
        lines += [
            f"  Web application:  http://{ip}:{backend}",
            f"  Frontend (dev):   http://{ip}:{frontend}",
            f"  Database:         mysql://{ip}:{s.master_published_port}",
        ]

    lines += [
        "",
        "Useful commands:",
        "  docker compose logs -f",
        "  docker compose ps",
        "  docker compose restart",
        "  docker compose up --build -d",
        "",
        "Backup transport:",
        f"  NFS export:  {s.export_dir}",
        f"  rsync:       {s.rsync_user}@{ip}::backups (port {s.rsync_port})",
        "  Password:    see /etc/rsyncd.secrets",
        "",
        "MySQL replication:",
        f"  Master (R/W):  mysql://{ip}:{s.master_published_port}",
        f"  Slave (R):     mysql://{ip}:{s.slave_published_port}",
    ]

    report: ReplicationReport | None = ctx.outputs.get("replication")
    if report is None:
        lines.append("  Status:        not configured")
    elif report.converged:
        lines.append("  Status:        converged")
    else:
        lines.append(f"  Status:        FAILED ({report.error})")
        lines.append("  Retry with:    hostprov replication setup")

    lines += ["", "Log out and back in for docker group membership to take effect."]
    if ctx.config.environment_mode == EnvMode.PROD:
        lines.append("PRODUCTION: review the credentials in .env before going live.")
    return lines


def print_access_summary(ctx: ProvisionContext) -> None:
    lines = build_access_summary(ctx)
    ctx.outputs["summary"] = lines
    for line in lines:
        logger.info("%s", line)
