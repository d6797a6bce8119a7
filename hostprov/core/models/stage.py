"""
Stage models — the unit of work the pipeline executes and its result.

A ``Stage`` names an action plus an optional idempotency precondition.
The pipeline records one ``StageResult`` per stage it reaches and
collects them in a ``PipelineReport``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel

if TYPE_CHECKING:
    from hostprov.core.context import ProvisionContext

StageAction = Callable[["ProvisionContext"], None]
StageCheck = Callable[["ProvisionContext"], bool]


class FailurePolicy(StrEnum):
    """What the pipeline does when a stage raises."""

    ABORT = "abort"
    WARN = "warn-and-continue"


@dataclass(frozen=True)
class Stage:
    """One named, idempotent step of the provisioning run.

    Args:
        name: Human-readable stage name.
        action: Callable doing the work; raises on failure.
        is_satisfied: Optional precondition; when it returns True the
            action is skipped.
        on_failure: Failure policy.
        skip_message: Logged when the stage is skipped.
    """

    name: str
    action: StageAction
    is_satisfied: StageCheck | None = None
    on_failure: FailurePolicy = FailurePolicy.ABORT
    skip_message: str = ""


class StageResult(BaseModel):
    """Outcome of a single stage."""

    name: str
    status: Literal["ok", "skipped", "failed"] = "ok"
    policy: FailurePolicy = FailurePolicy.ABORT
    detail: str = ""
    error: str | None = None
    error_type: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    @classmethod
    def success(cls, name: str, **kwargs: Any) -> StageResult:
        return cls(name=name, status="ok", **kwargs)

    @classmethod
    def skip(cls, name: str, reason: str = "", **kwargs: Any) -> StageResult:
        return cls(name=name, status="skipped", detail=reason, **kwargs)

    @classmethod
    def failure(cls, name: str, exc: BaseException, **kwargs: Any) -> StageResult:
        return cls(
            name=name,
            status="failed",
            error=str(exc),
            error_type=type(exc).__name__,
            **kwargs,
        )


@dataclass
class PipelineReport:
    """Everything the pipeline did, in execution order."""

    results: list[StageResult] = field(default_factory=list)
    aborted_by: str | None = None
    not_run: list[str] = field(default_factory=list)

    @property
    def aborted(self) -> bool:
        return self.aborted_by is not None

    @property
    def warnings(self) -> list[StageResult]:
        """Failed stages that did not stop the run."""
        return [r for r in self.results if r.status == "failed" and r.name != self.aborted_by]

    @property
    def executed(self) -> list[str]:
        return [r.name for r in self.results if r.status != "skipped"]

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted else 0

    def result_for(self, name: str) -> StageResult | None:
        for r in self.results:
            if r.name == name:
                return r
        return None

    def to_dict(self) -> dict:
        return {
            "status": "aborted" if self.aborted else ("warnings" if self.warnings else "ok"),
            "aborted_by": self.aborted_by,
            "not_run": list(self.not_run),
            "stages": [r.model_dump(mode="json") for r in self.results],
        }
