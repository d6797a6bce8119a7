"""
Tool settings — tunables and fixed names used by the provisioning stages.

Settings come from three layers, later ones winning:

    1. Defaults declared on ``ProvisionSettings``
    2. ``hostprov.yml`` in the working directory (or ``--settings PATH``)
    3. ``HOSTPROV_<FIELD>`` environment variables (scalar fields only)

Example ``hostprov.yml``::

    project_name: HouseUnity
    master_container: houseunity-mysql-master
    readiness_attempts: 60
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import get_origin

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from hostprov.core.errors import SettingsError

logger = logging.getLogger(__name__)

SETTINGS_FILE = "hostprov.yml"
ENV_PREFIX = "HOSTPROV_"


class ProvisionSettings(BaseModel):
    """Everything the stages need that is not part of ProvisioningConfig."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # ── Persisted config ────────────────────────────────────────
    config_file: str = ".provision.conf"
    project_name: str = "HouseUnity"

    # ── Host files ──────────────────────────────────────────────
    sshd_config: str = "/etc/ssh/sshd_config"
    ssh_service_names: list[str] = Field(default_factory=lambda: ["sshd", "ssh"])
    exports_file: str = "/etc/exports"
    export_dir: str = "/export"
    export_options: str = "*(rw,sync,no_subtree_check,no_root_squash)"
    rsync_port: int = 873
    rsync_user: str = "backupuser"
    dnf_conf: str = "/etc/dnf/dnf.conf"
    selinux_config: str = "/etc/selinux/config"

    # ── Container runtime ───────────────────────────────────────
    compose_standalone_version: str = "v2.23.0"
    compose_install_path: str = "/usr/local/bin/docker-compose"
    compose_link_path: str = "/usr/bin/docker-compose"

    # ── SCM identity ────────────────────────────────────────────
    scm_host: str = "github.com"
    ssh_key_name: str = "id_rsa"
    ssh_key_bits: int = 4096
    ssh_key_comment: str = "houseunity@provision-script"

    # ── Application ─────────────────────────────────────────────
    required_project_files: list[str] = Field(
        default_factory=lambda: [
            "docker-compose.yml",
            ".env.example",
            "data/database/houseunity_bd.sql",
            "app/Models/Usuario.php",
            "app/Controllers",
            "app/View",
        ]
    )
    db_password_placeholder: str = "tu_password_acá"
    root_password_placeholder: str = "tu_root_password_acá"
    dev_db_password: str = "houseunity123"
    dev_root_password: str = "root123"
    prod_app_url: str = "https://tu-dominio.com"
    secret_length: int = 25
    default_backend_port: int = 8080
    default_frontend_port: int = 5173
    app_ready_attempts: int = 30
    app_ready_interval: float = 2.0

    # ── Replication ─────────────────────────────────────────────
    master_container: str = "houseunity-mysql-master"
    slave_container: str = "houseunity-mysql-slave"
    master_host: str = "mysql"
    master_published_port: int = 3307
    slave_published_port: int = 3308
    replication_user: str = "repl_user"
    replication_password: str = "Repl1c@2024"
    readiness_attempts: int = Field(default=30, ge=1)
    readiness_interval: float = Field(default=2.0, ge=0)
    verify_settle_delay: float = Field(default=3.0, ge=0)


def _env_overrides(env: Mapping[str, str]) -> dict[str, str]:
    """Collect ``HOSTPROV_<FIELD>`` values for scalar fields."""
    overrides: dict[str, str] = {}
    for name, info in ProvisionSettings.model_fields.items():
        if get_origin(info.annotation) is list:
            continue
        key = ENV_PREFIX + name.upper()
        if key in env:
            overrides[name] = env[key]
    return overrides


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ProvisionSettings:
    """Load settings from YAML and the environment.

    Args:
        path: Explicit settings file. If None, ``hostprov.yml`` in the
            working directory is used when it exists.
        env: Environment mapping (default: ``os.environ``).

    Raises:
        SettingsError: If the file is unreadable, not a mapping, or
            fails validation.
    """
    env = os.environ if env is None else env
    data: dict = {}

    if path is None:
        candidate = Path.cwd() / SETTINGS_FILE
        path = candidate if candidate.is_file() else None
    elif not path.is_file():
        raise SettingsError(f"Settings file not found: {path}")

    if path is not None:
        logger.debug("Loading settings from %s", path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise SettingsError(f"Cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise SettingsError(f"Invalid YAML in {path}: {e}") from e
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise SettingsError(
                f"Expected a YAML mapping in {path}, got {type(raw).__name__}"
            )
        data.update(raw)

    data.update(_env_overrides(env))

    try:
        return ProvisionSettings.model_validate(data)
    except PydanticValidationError as e:
        raise SettingsError(f"Invalid settings: {e}") from e
