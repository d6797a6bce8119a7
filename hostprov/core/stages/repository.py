"""
Repository stage — clone or update the application checkout.

Git runs as the effective user so the checkout never ends up owned by
root. An empty target directory is cloned into; any other existing
directory that is not a git checkout is left alone and aborts the run.
"""

from __future__ import annotations

import logging
import os
import re
import stat
from pathlib import Path

from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.context import ProvisionContext
from hostprov.core.errors import RepositoryError

logger = logging.getLogger(__name__)

_HEAD_BRANCH = re.compile(r"HEAD branch:\s*(\S+)")


def default_branch(runner: CommandRunner, repo: Path, user: str) -> str:
    """Remote default branch, falling back to the checked-out one."""
    result = runner.run(
        ["git", "-C", str(repo), "remote", "show", "origin"], as_user=user, check=False
    )
    m = _HEAD_BRANCH.search(result.stdout)
    if m and m.group(1) != "(unknown)":
        return m.group(1)
    current = runner.run(
        ["git", "-C", str(repo), "rev-parse", "--abbrev-ref", "HEAD"], as_user=user
    )
    return current.output


def normalize_permissions(root: Path) -> None:
    """Directories 0755; files lose group/other write, keep exec bits."""
    for dirpath, _dirnames, filenames in os.walk(root):
        Path(dirpath).chmod(0o755)
        for name in filenames:
            path = Path(dirpath) / name
            if path.is_symlink():
                continue
            mode = stat.S_IMODE(path.stat().st_mode)
            wanted = (mode | stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH) & ~0o022
            if wanted != mode:
                path.chmod(wanted)


def _clone(ctx: ProvisionContext, target: Path, url: str, owner: str) -> None:
    """Clone into ``target``; git creates it (or fills it when empty)."""
    logger.info("Cloning %s into %s", url, target)
    if target.exists():
        ctx.runner.run(["chown", owner, str(target)])
    elif not target.parent.exists():
        target.parent.mkdir(parents=True)
        ctx.runner.run(["chown", owner, str(target.parent)])

    result = ctx.runner.run(["git", "clone", url, str(target)], as_user=ctx.user, check=False)
    if not result.ok:
        raise RepositoryError(
            f"Cloning {url} failed; check the URL and your SSH key: "
            f"{result.stderr.strip()}"
        )


def clone_or_update(ctx: ProvisionContext) -> None:
    target = ctx.project_dir
    url = ctx.config.repository_url
    owner = f"{ctx.user}:"

    if (target / ".git").is_dir():
        logger.info("Updating existing checkout in %s", target)
        ctx.runner.run(["chown", "-R", owner, str(target)])
        branch = default_branch(ctx.runner, target, ctx.user)
        logger.info("Default branch: %s", branch)
        ctx.runner.run(["git", "-C", str(target), "pull", "origin", branch], as_user=ctx.user)
    elif target.is_dir() and not any(target.iterdir()):
        # Left behind by an interrupted clone
        _clone(ctx, target, url, owner)
    elif target.exists():
        raise RepositoryError(
            f"'{target}' exists but is not a git repository; remove it to continue"
        )
    else:
        _clone(ctx, target, url, owner)

    ctx.runner.run(["chown", "-R", owner, str(target)])
    normalize_permissions(target)
    logger.info("Repository ready in %s", target)
