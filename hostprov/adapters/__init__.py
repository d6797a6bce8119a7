"""
Adapters — the only code that touches the host.

    shell/command.py      CommandRunner, CommandResult
    containers/docker.py  DockerCli
    mock.py               MockRunner (tests)
"""

from hostprov.adapters.containers.docker import DockerCli
from hostprov.adapters.mock import MockRunner
from hostprov.adapters.shell.command import CommandResult, CommandRunner

__all__ = ["CommandResult", "CommandRunner", "DockerCli", "MockRunner"]
