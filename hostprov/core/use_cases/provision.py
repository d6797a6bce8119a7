"""
Provision use case — the full provisioning run.

    privilege check → resolve configuration → detect host
        → stage pipeline (update packages … print access summary)

Configuration and host facts are resolved before any mutating stage
and handed to every stage through ``ProvisionContext``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from hostprov.adapters.shell.command import CommandRunner
from hostprov.core.config.prompts import Prompter
from hostprov.core.config.settings import ProvisionSettings
from hostprov.core.config.store import ConfigStore
from hostprov.core.context import ProvisionContext, effective_user, user_home
from hostprov.core.engine.pipeline import StageListener, StagePipeline
from hostprov.core.errors import PrivilegeError, ProvisioningError
from hostprov.core.host.detect import OS_RELEASE_PATHS, detect_host
from hostprov.core.models.config import ProvisioningConfig
from hostprov.core.models.host import HostProfile
from hostprov.core.models.replication import ReplicationReport
from hostprov.core.models.stage import PipelineReport, Stage
from hostprov.core.stages import build_default_stages

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    config: ProvisioningConfig | None = None
    host: HostProfile | None = None
    report: PipelineReport | None = None
    replication: ReplicationReport | None = None
    summary: list[str] = field(default_factory=list)
    error: str | None = None
    error_type: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        return self.report.exit_code if self.report else 1

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
        if self.config:
            result["config"] = self.config.model_dump(mode="json")
        if self.host:
            result["host"] = self.host.model_dump(mode="json")
        if self.report:
            result["pipeline"] = self.report.to_dict()
        if self.replication:
            result["replication"] = self.replication.to_dict()
        if self.summary:
            result["summary"] = self.summary
        return result


def check_privileges(euid: int | None = None) -> None:
    """Raise ``PrivilegeError`` unless running as root."""
    if (os.geteuid() if euid is None else euid) != 0:
        raise PrivilegeError(
            "Provisioning requires root privileges; re-run with sudo"
        )


def provision(
    settings: ProvisionSettings,
    prompter: Prompter,
    *,
    runner: CommandRunner | None = None,
    overrides: Mapping[str, str | None] | None = None,
    config_file: Path | None = None,
    skip_replication: bool = False,
    stages: Sequence[Stage] | None = None,
    os_release_paths: Sequence[Path] = OS_RELEASE_PATHS,
    env: Mapping[str, str] | None = None,
    euid: int | None = None,
    sleep: Callable[[float], None] | None = None,
    on_stage: StageListener | None = None,
) -> ProvisionResult:
    """Run the whole provisioning sequence.

    Args:
        settings: Tool settings.
        prompter: Operator prompts (interactive or not).
        runner: Command runner (default: a real ``CommandRunner``).
        overrides: Store-keyed values from the CLI (REPO_URL, ...).
        config_file: Persisted config path (default: settings.config_file).
        skip_replication: Skip the replication stage.
        stages: Replace the default stage list (tests).
        os_release_paths: Release metadata sources.
        env: Environment used to find the effective user.
        euid: Effective uid for the privilege check (tests).
        sleep: Sleep function for polling (tests).
        on_stage: Progress callback after each stage.

    Returns:
        ProvisionResult. Errors before the pipeline starts are reported
        in ``error``; stage failures are in ``report``.
    """
    result = ProvisionResult()
    runner = runner or CommandRunner()

    try:
        check_privileges(euid)

        user = effective_user(env)
        home = user_home(user)
        logger.info("Provisioning %s on behalf of %s", settings.project_name, user)

        store = ConfigStore(Path(config_file or settings.config_file), prompter, home)
        result.config = store.resolve(overrides)
        result.host = detect_host(os_release_paths)
    except ProvisioningError as e:
        logger.error("%s", e)
        result.error = str(e)
        result.error_type = type(e).__name__
        return result

    ctx = ProvisionContext(
        config=result.config,
        host=result.host,
        runner=runner,
        settings=settings,
        prompter=prompter,
        user=user,
        home=home,
        sleep=sleep,
    )
    pipeline = StagePipeline(
        stages if stages is not None else build_default_stages(skip_replication),
        on_result=on_stage,
    )
    result.report = pipeline.run(ctx)
    result.replication = ctx.outputs.get("replication")
    result.summary = ctx.outputs.get("summary", [])
    return result
