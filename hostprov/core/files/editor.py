"""
Idempotent file editor — "ensure directive D has value V".

Treats a line-oriented config file (sshd_config, /etc/exports,
dnf.conf) as a mapping from directive name to directive line:

    #PermitRootLogin prohibit-password   →   PermitRootLogin no
    PermitRootLogin yes                  →   PermitRootLogin no
    (absent)                             →   PermitRootLogin no  (appended)

Only the first matching line is rewritten, and the file is only
written when its content actually changes, so a second identical
``upsert`` leaves the file byte-identical.

Before the first mutation of a file, the editor copies it to
``<file>.bak.<YYYYmmddHHMMSS>`` (``.1``, ``.2``... appended when that
name is taken). One backup per file per editor instance; every
provisioning run makes a fresh one.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP = "%Y%m%d%H%M%S"


def directive_pattern(name: str) -> re.Pattern[str]:
    """Match a directive line, commented or not (``^\\s*#?\\s*<name>``)."""
    return re.compile(rf"^\s*#?\s*{re.escape(name)}(?=[\s=]|$)")


class IdempotentFileEditor:
    """Upsert directives into line-oriented config files.

    Args:
        backup: Copy a file before its first mutation.
        clock: Source of the backup timestamp.
    """

    def __init__(
        self,
        backup: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backup = backup
        self.clock = clock
        self.backups: dict[Path, Path] = {}

    def upsert(
        self,
        path: str | Path,
        name: str,
        value: str,
        *,
        separator: str = " ",
    ) -> bool:
        """Ensure ``<name><separator><value>`` is the active directive.

        Returns:
            True if the file was modified.
        """
        path = Path(path)
        original = path.read_text(encoding="utf-8") if path.exists() else ""
        desired = f"{name}{separator}{value}"
        pattern = directive_pattern(name)

        lines = original.splitlines(keepends=True)
        for i, line in enumerate(lines):
            if pattern.match(line):
                ending = line[len(line.rstrip("\r\n")):]
                lines[i] = desired + (ending or "\n")
                updated = "".join(lines)
                break
        else:
            prefix = original if not original or original.endswith("\n") else original + "\n"
            updated = prefix + desired + "\n"

        if updated == original:
            logger.debug("%s: %s already set", path, desired)
            return False

        self._backup_once(path)
        path.write_text(updated, encoding="utf-8")
        logger.info("%s: set %s", path, desired)
        return True

    def read_directive(self, path: str | Path, name: str) -> str | None:
        """Value of the first active (uncommented) occurrence of ``name``."""
        path = Path(path)
        if not path.exists():
            return None
        active = re.compile(rf"^\s*{re.escape(name)}(?:\s+|\s*=\s*)(.*?)\s*$")
        for line in path.read_text(encoding="utf-8").splitlines():
            m = active.match(line)
            if m:
                return m.group(1)
        return None

    def _backup_once(self, path: Path) -> None:
        if not self.backup or path in self.backups or not path.exists():
            return
        stem = f"{path.name}.bak.{self.clock().strftime(BACKUP_TIMESTAMP)}"
        dest = path.with_name(stem)
        # Never overwrite an earlier backup taken in the same second
        counter = 1
        while dest.exists():
            dest = path.with_name(f"{stem}.{counter}")
            counter += 1
        shutil.copy2(path, dest)
        self.backups[path] = dest
        logger.info("Backed up %s → %s", path, dest)
