"""
Config store — persisted provisioning configuration.

``.provision.conf`` holds three ``KEY="value"`` lines (REPO_URL,
PROJECT_DIR, ENV_MODE). ``resolve()`` loads whatever is there, asks
the operator for anything missing or invalid, and writes the merged
result back (atomic write, full replacement).

Field rules:
    ENV_MODE     one of dev/prod, default dev
    REPO_URL     clonable SCM URL, no default
    PROJECT_DIR  absolute path, default ~<effective user>/<repo name>;
                 the bare home directory becomes home/<repo name>
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path

from hostprov.core.config.env_file import parse_key_values
from hostprov.core.config.prompts import Prompter
from hostprov.core.errors import ValidationError
from hostprov.core.models.config import (
    EnvMode,
    ProvisioningConfig,
    is_repository_url,
    repo_name_from_url,
)

logger = logging.getLogger(__name__)

KEY_REPO_URL = "REPO_URL"
KEY_PROJECT_DIR = "PROJECT_DIR"
KEY_ENV_MODE = "ENV_MODE"
STORE_KEYS = (KEY_REPO_URL, KEY_PROJECT_DIR, KEY_ENV_MODE)

DEFAULT_PROMPT_ATTEMPTS = 5


def default_install_directory(repository_url: str, home: Path) -> Path:
    """``home/<repo name>`` for a repository URL."""
    return home / repo_name_from_url(repository_url)


def normalize_install_directory(value: str, repository_url: str, home: Path) -> Path | None:
    """Apply the install-directory rules to a raw value.

    Returns None when the value is empty or not absolute.
    """
    value = value.strip()
    if not value:
        return None
    path = Path(os.path.normpath(os.path.expanduser(value)))
    if not path.is_absolute():
        return None
    if path == Path(os.path.normpath(home)):
        substitute = default_install_directory(repository_url, home)
        logger.warning(
            "Install directory is the home directory; using %s instead", substitute
        )
        return substitute
    return path


class ConfigStore:
    """Load, resolve and persist ``ProvisioningConfig``.

    Args:
        path: The persisted ``KEY="value"`` file.
        prompter: Asks the operator for missing values.
        home: Home directory of the effective user.
        max_attempts: Prompts per field before giving up.
    """

    def __init__(
        self,
        path: Path,
        prompter: Prompter,
        home: Path,
        max_attempts: int = DEFAULT_PROMPT_ATTEMPTS,
    ):
        self.path = path
        self.prompter = prompter
        self.home = home
        self.max_attempts = max_attempts

    # ── Persistence ─────────────────────────────────────────────

    def load(self) -> dict[str, str]:
        """Persisted values; unknown keys and malformed lines are dropped."""
        if not self.path.is_file():
            logger.info("No config file at %s; values will be requested", self.path)
            return {}
        try:
            raw = parse_key_values(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.warning("Cannot read %s: %s", self.path, e)
            return {}
        values = {k: v for k, v in raw.items() if k in STORE_KEYS and v}
        logger.debug("Loaded %d value(s) from %s", len(values), self.path)
        return values

    def persist(self, config: ProvisioningConfig) -> None:
        """Overwrite the store file with exactly the three keys (atomic write)."""
        content = "".join(f'{k}="{v}"\n' for k, v in config.to_store().items())

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=".provision_", suffix=".tmp"
        )
        os.close(fd)
        tmp = Path(tmp_path)
        try:
            tmp.write_text(content, encoding="utf-8")
            tmp.chmod(0o644)
            tmp.replace(self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Configuration saved to %s", self.path)

    # ── Resolution ──────────────────────────────────────────────

    def resolve(self, overrides: Mapping[str, str | None] | None = None) -> ProvisioningConfig:
        """Merge persisted values, overrides and prompts, then persist.

        Args:
            overrides: Values keyed like the store file that take
                precedence over persisted ones (CLI options).

        Raises:
            ValidationError: When a field is still invalid after
                ``max_attempts`` prompts, or prompting is disabled.
        """
        values = self.load()
        for key, value in (overrides or {}).items():
            if value:
                values[key] = value

        env_mode = self._resolve_field(
            KEY_ENV_MODE,
            values.get(KEY_ENV_MODE),
            label="Environment to build (dev or prod)",
            default=EnvMode.DEV.value,
            convert=_parse_env_mode,
        )
        repository_url = self._resolve_field(
            KEY_REPO_URL,
            values.get(KEY_REPO_URL),
            label="Repository SSH URL (e.g. git@github.com:org/project.git)",
            default=None,
            convert=lambda v: v.strip() if is_repository_url(v) else None,
        )
        install_directory = self._resolve_field(
            KEY_PROJECT_DIR,
            values.get(KEY_PROJECT_DIR),
            label="Installation directory",
            default=str(default_install_directory(repository_url, self.home)),
            convert=lambda v: normalize_install_directory(v, repository_url, self.home),
        )

        config = ProvisioningConfig(
            environment_mode=env_mode,
            repository_url=repository_url,
            install_directory=install_directory,
        )
        self.persist(config)
        return config

    def _resolve_field(
        self,
        key: str,
        current: str | None,
        *,
        label: str,
        default: str | None,
        convert: Callable[[str], object | None],
    ):
        if current:
            value = convert(current)
            if value is not None:
                return value
            logger.warning("Ignoring invalid %s=%r", key, current)

        for _ in range(self.max_attempts):
            answer = self.prompter.ask(label, default=default) or (default or "")
            if not answer:
                logger.warning("%s is required", key)
                continue
            value = convert(answer)
            if value is not None:
                return value
            logger.warning("Invalid value for %s: %r", key, answer)

        raise ValidationError(
            f"No valid value for {key} after {self.max_attempts} attempts", field=key
        )


def _parse_env_mode(value: str) -> EnvMode | None:
    try:
        return EnvMode(value.strip().lower())
    except ValueError:
        return None
