"""
Mock runner — test double for every command the provisioner issues.

Simulates the operating system without touching it. By default every
command succeeds with empty output; responses can be scripted per
command pattern, and every call is recorded for assertions.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from hostprov.adapters.shell.command import CommandResult, CommandRunner

Responder = Callable[[list[str]], CommandResult]


@dataclass
class MockCall:
    """One recorded invocation."""

    argv: list[str]
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    input: str | None = None

    @property
    def line(self) -> str:
        return " ".join(self.argv)

    def matches(self, pattern: str) -> bool:
        """Pattern found in the command line or in the piped stdin."""
        return pattern in self.line or (self.input is not None and pattern in self.input)


class MockRunner(CommandRunner):
    """Scriptable ``CommandRunner`` for tests.

    Patterns are substrings of the space-joined argv or of the text
    piped to stdin. The most recently registered matching pattern wins.
    A pattern may be given a single result, a sequence of results
    (consumed in order, the last one repeating), or a callable
    receiving the argv.
    """

    name = "mock"

    def __init__(self, tools: Iterable[str] = ()):
        super().__init__()
        self._tools = set(tools)
        self._responses: list[tuple[str, list[CommandResult] | Responder]] = []
        self._call_log: list[MockCall] = []

    @property
    def call_log(self) -> list[MockCall]:
        """All calls this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def lines(self) -> list[str]:
        """Recorded commands as joined strings."""
        return [c.line for c in self._call_log]

    def calls_matching(self, pattern: str) -> list[MockCall]:
        return [c for c in self._call_log if c.matches(pattern)]

    def set_tools(self, *tools: str) -> None:
        """Declare which tools ``which()`` reports as installed."""
        self._tools = set(tools)

    def which(self, tool: str) -> bool:
        return tool in self._tools

    def respond(
        self,
        pattern: str,
        result: CommandResult | Iterable[CommandResult] | Responder,
    ) -> None:
        """Script the response for commands containing ``pattern``."""
        if isinstance(result, CommandResult):
            entry: list[CommandResult] | Responder = [result]
        elif callable(result):
            entry = result
        else:
            entry = list(result)
        self._responses.append((pattern, entry))

    def fail(self, pattern: str, stderr: str = "mock failure", returncode: int = 1) -> None:
        """Make commands containing ``pattern`` fail."""
        self.respond(pattern, CommandResult.failure(stderr=stderr, returncode=returncode))

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._responses.clear()

    def _execute(
        self,
        argv: list[str],
        *,
        env: dict[str, str] | None,
        cwd: str | None,
        timeout: int,
        input: str | None,
    ) -> CommandResult:
        call = MockCall(argv=argv, env=dict(env or {}), cwd=cwd, input=input)
        self._call_log.append(call)

        for pattern, entry in reversed(self._responses):
            if not call.matches(pattern):
                continue
            if callable(entry):
                result = entry(argv)
            elif len(entry) > 1:
                result = entry.pop(0)
            else:
                result = entry[0]
            return result.model_copy(update={"command": argv})

        return CommandResult(command=argv)
