"""
Execution Pipeline Tests.

- Readiness gate: missing or failed dependency -> skip, zero records
- Retry loop: bounded by retry_limit, stops at first success, one record
- Webhook: called once per record, failures never escape
- Overlap guard: a second fire while running is skipped
"""

import threading
from unittest.mock import patch

import pytest

from cronhub.scheduler import (
    ExecutionPipeline,
    ExecutionStatus,
    JobKind,
    PersistenceAdapter,
    PipelineOutcome,
)

from .conftest import MockJobHandler, OTHER_ORG_ID, attempt_failed


def records_for(persistence: PersistenceAdapter, job_id: str) -> list:
    return persistence.list_execution_records(job_id)


class TestReadinessGate:
    """A fire only executes when every dependency last succeeded."""

    def test_no_dependencies_runs(self, pipeline: ExecutionPipeline, create_job, shell_handler):
        """A job without dependencies always passes the gate."""
        job = create_job()

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.EXECUTED
        assert len(shell_handler.calls) == 1

    def test_dependency_never_ran_skips(
        self, pipeline, persistence, create_job, shell_handler
    ):
        """A dependency with no record blocks the fire; nothing is written."""
        upstream = create_job(name="upstream")
        job = create_job(name="downstream", depends_on=[upstream.job_id])

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.SKIPPED
        assert upstream.job_id in result.reason
        assert records_for(persistence, job.job_id) == []
        assert shell_handler.calls == []

    def test_dependency_failed_skips(
        self, pipeline, persistence, create_job, add_record, shell_handler
    ):
        """A dependency whose latest record failed blocks the fire."""
        upstream = create_job(name="upstream")
        add_record(upstream, ExecutionStatus.FAILURE)
        job = create_job(name="downstream", depends_on=[upstream.job_id])

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.SKIPPED
        assert records_for(persistence, job.job_id) == []
        assert shell_handler.calls == []

    def test_only_latest_record_counts(self, pipeline, create_job, add_record):
        """An old success followed by a failure still blocks."""
        upstream = create_job(name="upstream")
        add_record(upstream, ExecutionStatus.SUCCESS)
        add_record(upstream, ExecutionStatus.FAILURE)
        job = create_job(name="downstream", depends_on=[upstream.job_id])

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.SKIPPED

    def test_recovered_dependency_runs(self, pipeline, create_job, add_record):
        """A failure followed by a success lets the fire through."""
        upstream = create_job(name="upstream")
        add_record(upstream, ExecutionStatus.FAILURE)
        add_record(upstream, ExecutionStatus.SUCCESS)
        job = create_job(name="downstream", depends_on=[upstream.job_id])

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.EXECUTED

    def test_all_dependencies_must_pass(self, pipeline, create_job, add_record):
        """One blocking dependency out of several is enough to skip."""
        ok = create_job(name="ok")
        add_record(ok, ExecutionStatus.SUCCESS)
        pending = create_job(name="pending")
        job = create_job(name="downstream", depends_on=[ok.job_id, pending.job_id])

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.SKIPPED
        assert pending.job_id in result.reason


class TestRetryLoop:
    """Attempts 0..retry_limit, one record per invocation."""

    def test_success_first_attempt(self, pipeline, persistence, create_job, shell_handler):
        """retry_count is 0 when the first attempt succeeds."""
        job = create_job(retry_limit=3)
        shell_handler.script({"stdout": "hi"})

        result = pipeline.run(job.job_id, job.org_id)

        assert result.record.status == ExecutionStatus.SUCCESS
        assert result.record.retry_count == 0
        assert result.record.attempts == 1
        assert result.record.output == {"stdout": "hi"}
        assert len(shell_handler.calls) == 1

    def test_success_on_last_allowed_attempt(self, pipeline, persistence, create_job, shell_handler):
        """retry_limit=2, fail, fail, succeed -> one success record, retry_count=2."""
        job = create_job(retry_limit=2)
        shell_handler.script(attempt_failed("first"), attempt_failed("second"), {"ok": 1})

        result = pipeline.run(job.job_id, job.org_id)

        records = records_for(persistence, job.job_id)
        assert len(records) == 1
        assert records[0].status == ExecutionStatus.SUCCESS
        assert records[0].retry_count == 2
        assert records[0].attempts == 3
        assert records[0].error is None
        assert result.record == records[0]
        assert len(shell_handler.calls) == 3

    def test_retries_exhausted(self, pipeline, persistence, create_job, shell_handler):
        """retry_limit=1, fail twice -> one failure record with the last error."""
        job = create_job(retry_limit=1)
        shell_handler.script(attempt_failed("first"), attempt_failed("second"))

        pipeline.run(job.job_id, job.org_id)

        records = records_for(persistence, job.job_id)
        assert len(records) == 1
        assert records[0].status == ExecutionStatus.FAILURE
        assert records[0].retry_count == 1
        assert records[0].attempts == 2
        assert records[0].error == {"message": "second"}
        assert records[0].output is None
        assert len(shell_handler.calls) == 2

    def test_no_retry_by_default(self, pipeline, persistence, create_job, shell_handler):
        """retry_limit=0 means a single attempt."""
        job = create_job()
        shell_handler.script(attempt_failed())

        result = pipeline.run(job.job_id, job.org_id)

        assert result.record.status == ExecutionStatus.FAILURE
        assert result.record.retry_count == 0
        assert len(shell_handler.calls) == 1

    def test_stops_at_first_success(self, pipeline, create_job, shell_handler):
        """Remaining attempts are not used after a success."""
        job = create_job(retry_limit=5)
        shell_handler.script(attempt_failed(), {"ok": True})

        result = pipeline.run(job.job_id, job.org_id)

        assert result.record.retry_count == 1
        assert len(shell_handler.calls) == 2

    def test_unexpected_exception_counts_as_failed_attempt(
        self, pipeline, create_job, shell_handler
    ):
        """A handler bug is recorded as a failure instead of escaping."""
        job = create_job(retry_limit=1)
        shell_handler.script(RuntimeError("bug"), RuntimeError("bug again"))

        result = pipeline.run(job.job_id, job.org_id)

        assert result.record.status == ExecutionStatus.FAILURE
        assert result.record.error["type"] == "RuntimeError"
        assert result.record.error["message"] == "bug again"

    def test_handler_chosen_by_kind(self, pipeline, create_job, http_handler, shell_handler):
        """HTTP jobs go to the HTTP handler only."""
        job = create_job(kind=JobKind.HTTP)

        pipeline.run(job.job_id, job.org_id)

        assert len(http_handler.calls) == 1
        assert shell_handler.calls == []

    def test_latest_payload_used(self, pipeline, persistence, create_job, shell_handler):
        """The job is reloaded on every fire."""
        job = create_job()
        job.name = "renamed"
        persistence.update_job(job)

        pipeline.run(job.job_id, job.org_id)

        assert shell_handler.calls[0].name == "renamed"


class TestMissingJob:
    """Fires for jobs that are gone."""

    def test_deleted_job_dropped(self, pipeline, persistence, create_job, shell_handler):
        """A fire racing a delete writes nothing."""
        job = create_job()
        persistence.delete_job(job.job_id, job.org_id)

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.MISSING
        assert records_for(persistence, job.job_id) == []
        assert shell_handler.calls == []

    def test_wrong_org_dropped(self, pipeline, create_job):
        """A job is only found inside its own organization."""
        job = create_job()

        result = pipeline.run(job.job_id, OTHER_ORG_ID)

        assert result.outcome == PipelineOutcome.MISSING

    def test_fire_never_raises(self, pipeline, create_job):
        """The timer callback swallows store errors after logging them."""
        job = create_job()

        with patch.object(pipeline.persistence, "find_one", side_effect=RuntimeError("db gone")):
            assert pipeline.fire(job.job_id, job.org_id) is None


class TestWebhook:
    """Best-effort notification after the record is written."""

    def test_notifier_called_once_with_record(self, pipeline, create_job, notifier):
        """One call per invocation, carrying the stored record."""
        job = create_job(webhook_url="https://hooks.example.com/cron", retry_limit=2)

        result = pipeline.run(job.job_id, job.org_id)

        notifier.assert_called_once()
        notified_job, notified_record = notifier.call_args.args
        assert notified_job.job_id == job.job_id
        assert notified_record == result.record

    def test_no_webhook_url_no_call(self, pipeline, create_job, notifier):
        """Jobs without webhook_url are not notified."""
        job = create_job()

        pipeline.run(job.job_id, job.org_id)

        notifier.assert_not_called()

    def test_skipped_fire_not_notified(self, pipeline, create_job, notifier):
        """The readiness gate produces no record, so no webhook."""
        upstream = create_job(name="upstream")
        job = create_job(
            name="downstream",
            depends_on=[upstream.job_id],
            webhook_url="https://hooks.example.com/cron",
        )

        pipeline.run(job.job_id, job.org_id)

        notifier.assert_not_called()

    def test_notifier_failure_does_not_change_outcome(
        self, pipeline, persistence, create_job, notifier
    ):
        """A raising notifier is logged; the record stays as written."""
        job = create_job(webhook_url="https://hooks.example.com/cron")
        notifier.side_effect = RuntimeError("webhook down")

        result = pipeline.run(job.job_id, job.org_id)

        assert result.outcome == PipelineOutcome.EXECUTED
        assert result.record.status == ExecutionStatus.SUCCESS
        assert len(records_for(persistence, job.job_id)) == 1


class BlockingHandler(MockJobHandler):
    """Handler that holds the attempt open until released."""

    def __init__(self, kind: JobKind):
        super().__init__(kind)
        self.started = threading.Event()
        self.release = threading.Event()

    def execute(self, job):
        self.started.set()
        self.release.wait(timeout=5)
        return super().execute(job)


class TestOverlapGuard:
    """A fire for a job that is still running is skipped."""

    def test_second_fire_is_busy(self, persistence, create_job, http_handler, notifier):
        """The overlapping fire returns BUSY and writes nothing."""
        blocking = BlockingHandler(JobKind.SHELL)
        pipeline = ExecutionPipeline(
            persistence,
            {JobKind.HTTP: http_handler, JobKind.SHELL: blocking},
            notifier=notifier,
        )
        job = create_job()

        first = threading.Thread(target=pipeline.run, args=(job.job_id, job.org_id))
        first.start()
        assert blocking.started.wait(timeout=5)

        try:
            assert pipeline.in_flight == [job.job_id]
            second = pipeline.run(job.job_id, job.org_id)
            assert second.outcome == PipelineOutcome.BUSY
        finally:
            blocking.release.set()
            first.join(timeout=5)

        assert len(blocking.calls) == 1
        assert len(persistence.list_execution_records(job.job_id)) == 1
        assert pipeline.in_flight == []

    def test_other_jobs_not_blocked(self, persistence, create_job, http_handler, notifier):
        """The guard is per job id."""
        blocking = BlockingHandler(JobKind.SHELL)
        pipeline = ExecutionPipeline(
            persistence,
            {JobKind.HTTP: http_handler, JobKind.SHELL: blocking},
            notifier=notifier,
        )
        slow = create_job(name="slow")
        fast = create_job(name="fast", kind=JobKind.HTTP)

        first = threading.Thread(target=pipeline.run, args=(slow.job_id, slow.org_id))
        first.start()
        assert blocking.started.wait(timeout=5)

        try:
            result = pipeline.run(fast.job_id, fast.org_id)
            assert result.outcome == PipelineOutcome.EXECUTED
        finally:
            blocking.release.set()
            first.join(timeout=5)


class TestConstruction:
    def test_missing_handler_rejected(self, persistence, http_handler):
        """Every job kind needs a handler."""
        with pytest.raises(ValueError, match="shell"):
            ExecutionPipeline(persistence, {JobKind.HTTP: http_handler})
