"""
Stage pipeline — run a fixed, ordered list of stages.

For each stage, in declaration order:

    is_satisfied(ctx) → True     skip, logged as a no-op
    action(ctx) succeeds         ok
    action(ctx) raises:
        error.fatal              abort (whatever the policy)
        policy == ABORT          abort
        policy == WARN           log warning, continue

On abort, the remaining stages are not executed and are listed in
``PipelineReport.not_run``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from hostprov.core.context import ProvisionContext
from hostprov.core.errors import ProvisioningError
from hostprov.core.models.stage import FailurePolicy, PipelineReport, Stage, StageResult

logger = logging.getLogger(__name__)

StageListener = Callable[[Stage, StageResult], None]


def _is_fatal(exc: BaseException) -> bool:
    return isinstance(exc, ProvisioningError) and exc.fatal


class StagePipeline:
    """Execute stages strictly in order.

    Args:
        stages: The ordered stage list.
        on_result: Optional callback after each stage (CLI progress).
    """

    def __init__(
        self,
        stages: Sequence[Stage],
        on_result: StageListener | None = None,
    ):
        names = [s.name for s in stages]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate stage names: {names}")
        self.stages = list(stages)
        self.on_result = on_result

    def run(self, ctx: ProvisionContext) -> PipelineReport:
        report = PipelineReport()
        total = len(self.stages)

        for index, stage in enumerate(self.stages, start=1):
            logger.info("[%d/%d] %s", index, total, stage.name)
            result = self._run_stage(stage, ctx)
            report.results.append(result)
            if self.on_result:
                self.on_result(stage, result)

            if result.status != "failed":
                continue

            if result.policy == FailurePolicy.ABORT:
                report.aborted_by = stage.name
                report.not_run = [s.name for s in self.stages[index:]]
                logger.error("Stage '%s' failed: %s", stage.name, result.error)
                break

            logger.warning(
                "Stage '%s' failed, continuing: %s", stage.name, result.error
            )

        return report

    def _run_stage(self, stage: Stage, ctx: ProvisionContext) -> StageResult:
        start = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            if stage.is_satisfied is not None and stage.is_satisfied(ctx):
                reason = stage.skip_message or f"{stage.name}: already done"
                logger.info("%s; skipping", reason)
                return StageResult.skip(
                    stage.name, reason, policy=stage.on_failure, duration_ms=elapsed()
                )
            stage.action(ctx)
        except Exception as exc:
            policy = FailurePolicy.ABORT if _is_fatal(exc) else stage.on_failure
            logger.debug("Stage '%s' raised", stage.name, exc_info=True)
            return StageResult.failure(
                stage.name, exc, policy=policy, duration_ms=elapsed()
            )

        return StageResult.success(stage.name, policy=stage.on_failure, duration_ms=elapsed())
