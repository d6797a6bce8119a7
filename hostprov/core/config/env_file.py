"""
Generated environment file — ``.env`` creation and credential loading.

The application repository ships ``.env.example`` with placeholder
passwords. On the first run ``.env`` is created from it:

    prod  generated secrets, production flags flipped
    dev   operator-entered passwords (defaults when left empty)

An existing ``.env`` is never modified. Later stages read credentials
from it once, through ``load_database_credentials``.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
from collections.abc import Callable
from pathlib import Path

from pydantic import SecretStr

from hostprov.core.config.prompts import Prompter
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.errors import MissingCredentialError, ValidationError
from hostprov.core.models.config import EnvMode
from hostprov.core.models.replication import DatabaseCredentials

logger = logging.getLogger(__name__)

ENV_FILE = ".env"
ENV_TEMPLATE = ".env.example"

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SECRET_ALPHABET = string.ascii_letters + string.digits


# ── Parsing ─────────────────────────────────────────────────────


def parse_key_values(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines, skipping anything unparseable.

    Handles:
    - KEY=value
    - KEY="value"
    - KEY='value'
    - export KEY=value
    - Comments (#)
    - Empty lines
    """
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[7:].strip()

        if "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        if not _KEY_RE.match(key):
            continue
        value = value.strip()

        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]

        result[key] = value
    return result


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse an env-style file; a missing or unreadable file yields ``{}``."""
    if not path.is_file():
        return {}
    try:
        return parse_key_values(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.warning("Cannot read %s: %s", path, e)
        return {}


def redact(value: str | SecretStr | None, keep: int = 3) -> str:
    """Show only the first ``keep`` characters of a secret."""
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if not value:
        return "<empty>"
    return f"{value[:keep]}***"


def generate_secret(length: int = 25) -> str:
    """Random alphanumeric secret."""
    return "".join(secrets.choice(_SECRET_ALPHABET) for _ in range(length))


# ── Materialization ─────────────────────────────────────────────


def _production_flags(settings: ProvisionSettings) -> list[tuple[str, str]]:
    return [
        ("APP_ENV=development", "APP_ENV=production"),
        ("APP_DEBUG=true", "APP_DEBUG=false"),
        ("SECURE_COOKIES=false", "SECURE_COOKIES=true"),
        ("APP_URL=http://localhost:8080", f"APP_URL={settings.prod_app_url}"),
    ]


def _flip(content: str, old: str, new: str) -> str:
    return re.sub(rf"(?m)^([ \t]*){re.escape(old)}[ \t]*$", lambda m: m.group(1) + new, content)


def materialize_env_file(
    project_dir: Path,
    mode: EnvMode,
    settings: ProvisionSettings,
    prompter: Prompter,
    secret_factory: Callable[[int], str] = generate_secret,
) -> bool:
    """Create ``.env`` from ``.env.example`` unless it already exists.

    Returns:
        True if the file was created, False if an existing one was kept.

    Raises:
        ValidationError: If the template is missing.
    """
    env_path = project_dir / ENV_FILE
    if env_path.exists():
        logger.warning("%s already exists; leaving it unchanged", env_path)
        logger.info("Delete %s and re-run to regenerate it", env_path)
        return False

    template = project_dir / ENV_TEMPLATE
    if not template.is_file():
        raise ValidationError(f"Template not found: {template}", field=ENV_TEMPLATE)

    logger.info("Creating %s from %s (%s)", ENV_FILE, ENV_TEMPLATE, mode)
    content = template.read_text(encoding="utf-8")

    if mode == EnvMode.PROD:
        db_pass = secret_factory(settings.secret_length)
        root_pass = secret_factory(settings.secret_length)
        for old, new in _production_flags(settings):
            content = _flip(content, old, new)
        logger.warning("Review mail and domain credentials in %s before going live", env_path)
    else:
        db_pass = prompter.ask_secret(
            "Database password", default=settings.dev_db_password
        ) or settings.dev_db_password
        root_pass = prompter.ask_secret(
            "MySQL root password", default=settings.dev_root_password
        ) or settings.dev_root_password

    content = content.replace(settings.root_password_placeholder, root_pass)
    content = content.replace(settings.db_password_placeholder, db_pass)

    env_path.write_text(content, encoding="utf-8")
    logger.info("Database password: %s", redact(db_pass))
    logger.info("Root password: %s", redact(root_pass))
    return True


# ── Credentials ─────────────────────────────────────────────────


def load_database_credentials(
    env_path: Path,
    settings: ProvisionSettings,
) -> DatabaseCredentials:
    """Read the replication credentials from a generated ``.env``.

    Raises:
        MissingCredentialError: If the file or ``MYSQL_ROOT_PASSWORD``
            is missing.
    """
    if not env_path.is_file():
        raise MissingCredentialError(
            f"Environment file not found: {env_path}", field="MYSQL_ROOT_PASSWORD"
        )

    values = parse_env_file(env_path)
    root = values.get("MYSQL_ROOT_PASSWORD", "")
    if not root:
        raise MissingCredentialError(
            f"MYSQL_ROOT_PASSWORD is not defined in {env_path}",
            field="MYSQL_ROOT_PASSWORD",
        )

    creds = DatabaseCredentials(
        root_password=SecretStr(root),
        database=values.get("DB_NAME") or values.get("MYSQL_DATABASE", ""),
        replication_user=values.get("MYSQL_REPLICATION_USER") or settings.replication_user,
        replication_password=SecretStr(
            values.get("MYSQL_REPLICATION_PASSWORD") or settings.replication_password
        ),
    )
    logger.info("Using MYSQL_ROOT_PASSWORD %s", redact(creds.root_password))
    return creds
