"""
Docker CLI binding — container and compose operations.

Uses the docker CLI through a ``CommandRunner``, never the Docker API.
Compose is driven through the v2 plugin (``docker compose``) when it is
available and through the standalone ``docker-compose`` binary otherwise.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hostprov.adapters.shell.command import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class DockerCli:
    """Thin wrapper over the docker and compose command lines."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner
        self._compose_cmd: list[str] | None = None

    # ── Detection ──────────────────────────────────────────────────

    def is_installed(self) -> bool:
        return self.runner.which("docker")

    def compose_plugin_available(self) -> bool:
        """Whether ``docker compose version`` works."""
        if not self.is_installed():
            return False
        return self.runner.run(["docker", "compose", "version"], check=False).ok

    def standalone_compose_available(self) -> bool:
        return self.runner.which("docker-compose")

    def compose_command(self) -> list[str]:
        """The compose invocation to use on this host (cached)."""
        if self._compose_cmd is None:
            if self.compose_plugin_available():
                logger.info("Using the 'docker compose' plugin (v2)")
                self._compose_cmd = ["docker", "compose"]
            else:
                logger.info("Using the standalone 'docker-compose' binary")
                self._compose_cmd = ["docker-compose"]
        return self._compose_cmd

    # ── Compose ────────────────────────────────────────────────────

    def compose(
        self,
        *args: str,
        cwd: Path,
        check: bool = True,
        timeout: int | None = None,
    ) -> CommandResult:
        return self.runner.run(
            [*self.compose_command(), *args], cwd=cwd, check=check, timeout=timeout
        )

    def running_services(self, cwd: Path) -> list[str]:
        """Names of compose services currently in the running state."""
        result = self.compose(
            "ps", "--services", "--filter", "status=running", cwd=cwd, check=False
        )
        if not result.ok:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    # ── Containers ─────────────────────────────────────────────────

    def is_running(self, container: str) -> bool:
        result = self.runner.run(
            ["docker", "inspect", "-f", "{{.State.Running}}", container], check=False
        )
        return result.ok and result.output == "true"

    def container_status(self, container: str) -> str:
        """One-line ``docker ps -a`` status for diagnostics."""
        result = self.runner.run(
            [
                "docker", "ps", "-a",
                "--filter", f"name={container}",
                "--format", "{{.Names}}\t{{.Status}}",
            ],
            check=False,
        )
        return result.output or "container not found"

    def exec(
        self,
        container: str,
        *args: str,
        env: dict[str, str] | None = None,
        input: str | None = None,
        check: bool = False,
    ) -> CommandResult:
        """Run a command inside ``container``.

        Environment values are forwarded by name (``-e NAME``) and
        ``input`` is piped to stdin, so neither appears on the command line.
        """
        argv = ["docker", "exec"]
        if input is not None:
            argv.append("-i")
        for key in env or {}:
            argv += ["-e", key]
        argv += [container, *args]
        return self.runner.run(argv, env=env, input=input, check=check)

    def container_env(self, container: str, variable: str) -> str | None:
        result = self.exec(container, "printenv", variable)
        return result.output if result.ok else None
