"""
Tests for the stage pipeline — ordering, skips, failure policies.
"""

import pytest

from hostprov.core.engine.pipeline import StagePipeline
from hostprov.core.errors import (
    CommandExecutionError,
    MissingCredentialError,
    ReplicationError,
)
from hostprov.core.models.stage import FailurePolicy, Stage


class _Recorder:
    def __init__(self):
        self.ran: list[str] = []

    def ok(self, name):
        def action(ctx):
            self.ran.append(name)
        return action

    def boom(self, name, exc):
        def action(ctx):
            self.ran.append(name)
            raise exc
        return action


@pytest.fixture
def ctx(make_context):
    return make_context()


class TestStagePipeline:
    def test_runs_in_order(self, ctx):
        rec = _Recorder()
        stages = [Stage(n, rec.ok(n)) for n in ("a", "b", "c")]
        report = StagePipeline(stages).run(ctx)

        assert rec.ran == ["a", "b", "c"]
        assert [r.status for r in report.results] == ["ok", "ok", "ok"]
        assert not report.aborted
        assert report.exit_code == 0

    def test_satisfied_stage_is_skipped(self, ctx):
        rec = _Recorder()
        stages = [
            Stage("a", rec.ok("a")),
            Stage("b", rec.ok("b"), is_satisfied=lambda c: True, skip_message="b done"),
            Stage("c", rec.ok("c"), is_satisfied=lambda c: False),
        ]
        report = StagePipeline(stages).run(ctx)

        assert rec.ran == ["a", "c"]
        assert report.result_for("b").status == "skipped"
        assert report.result_for("b").detail == "b done"
        assert report.executed == ["a", "c"]

    def test_abort_stops_the_run(self, ctx):
        rec = _Recorder()
        stages = [
            Stage("a", rec.ok("a")),
            Stage("b", rec.boom("b", CommandExecutionError(["apt-get"], 100))),
            Stage("c", rec.ok("c")),
            Stage("d", rec.ok("d")),
        ]
        report = StagePipeline(stages).run(ctx)

        assert rec.ran == ["a", "b"]
        assert report.aborted_by == "b"
        assert report.not_run == ["c", "d"]
        assert report.exit_code == 1
        failed = report.result_for("b")
        assert failed.error_type == "CommandExecutionError"

    def test_warn_stage_continues(self, ctx):
        rec = _Recorder()
        stages = [
            Stage("a", rec.ok("a")),
            Stage(
                "replication",
                rec.boom("replication", ReplicationError("not converged")),
                on_failure=FailurePolicy.WARN,
            ),
            Stage("summary", rec.ok("summary")),
        ]
        report = StagePipeline(stages).run(ctx)

        assert rec.ran == ["a", "replication", "summary"]
        assert not report.aborted
        assert [w.name for w in report.warnings] == ["replication"]
        assert report.exit_code == 0

    def test_fatal_error_aborts_warn_stage(self, ctx):
        rec = _Recorder()
        stages = [
            Stage(
                "replication",
                rec.boom("replication", MissingCredentialError("no root password")),
                on_failure=FailurePolicy.WARN,
            ),
            Stage("summary", rec.ok("summary")),
        ]
        report = StagePipeline(stages).run(ctx)

        assert rec.ran == ["replication"]
        assert report.aborted_by == "replication"
        assert report.result_for("replication").policy == FailurePolicy.ABORT
        assert report.warnings == []

    def test_failing_precondition_counts_as_failure(self, ctx):
        def broken_check(c):
            raise CommandExecutionError(["docker"], 1)

        stages = [Stage("a", lambda c: None, is_satisfied=broken_check), Stage("b", lambda c: None)]
        report = StagePipeline(stages).run(ctx)
        assert report.aborted_by == "a"

    def test_listener_sees_every_result(self, ctx):
        seen = []
        stages = [Stage("a", lambda c: None), Stage("b", lambda c: None)]
        StagePipeline(stages, on_result=lambda s, r: seen.append((s.name, r.status))).run(ctx)
        assert seen == [("a", "ok"), ("b", "ok")]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            StagePipeline([Stage("a", lambda c: None), Stage("a", lambda c: None)])

    def test_report_to_dict(self, ctx):
        report = StagePipeline([Stage("a", lambda c: None)]).run(ctx)
        data = report.to_dict()
        assert data["aborted_by"] is None
        assert data["status"] == "ok"
        assert data["stages"][0]["name"] == "a"
