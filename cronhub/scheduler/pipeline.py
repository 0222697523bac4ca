"""
Execution Pipeline for Job Scheduler.

Runs one invocation of a job per fire:
1. Overlap guard: a fire for a job that is still running is skipped
2. Readiness gate: every dependency's latest record must be a success
3. Retry loop: attempts 0..retry_limit, stop at first success, no backoff
4. Outcome recording: exactly one ExecutionRecord per invocation
5. Webhook notification: best-effort, result logged and discarded

What the Pipeline MUST NOT do:
- Touch the Trigger Registry
- Raise to the timer thread (fires are fire-and-forget)
- Hold a lock while a handler or webhook is doing I/O
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .entities import ExecutionRecord, ExecutionStatus, Job, JobKind
from .errors import ExecutionError
from .executor import JobHandler
from .persistence import PersistenceAdapter


logger = logging.getLogger(__name__)


class PipelineOutcome(str, Enum):
    """What happened to a fire."""

    EXECUTED = "executed"
    SKIPPED = "skipped"
    BUSY = "busy"
    MISSING = "missing"


@dataclass(frozen=True)
class PipelineResult:
    """
    Result of one pipeline run.

    record is set only when outcome is EXECUTED; reason explains the other
    outcomes.
    """

    job_id: str
    outcome: PipelineOutcome
    record: Optional[ExecutionRecord] = None
    reason: Optional[str] = None


Notifier = Callable[[Job, ExecutionRecord], object]


class ExecutionPipeline:
    """Readiness gate, bounded retry, single record, webhook."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        handlers: dict[JobKind, JobHandler],
        notifier: Optional[Notifier] = None,
    ):
        """
        Initialize ExecutionPipeline.

        Args:
            persistence: Job store for job reloads and records
            handlers: One handler per JobKind
            notifier: Webhook sender; its return value is ignored
        """
        missing = [kind.value for kind in JobKind if kind not in handlers]
        if missing:
            raise ValueError(f"No handler for job kinds: {', '.join(missing)}")

        self.persistence = persistence
        self.handlers = handlers
        self.notifier = notifier

        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    @property
    def in_flight(self) -> list[str]:
        """Job ids currently executing."""
        with self._in_flight_lock:
            return sorted(self._in_flight)

    # =========================================================================
    # Entry points
    # =========================================================================

    def fire(self, job_id: str, org_id: str) -> None:
        """
        Timer callback. Runs the pipeline and never raises.

        Used as the fire_fn handed to the Trigger Registry.
        """
        try:
            self.run(job_id, org_id)
        except Exception:
            logger.exception(f"Unexpected error in pipeline for job {job_id}")

    def run(self, job_id: str, org_id: str) -> PipelineResult:
        """
        Run one invocation of a job.

        The job is reloaded from the store so a fire always sees the latest
        persisted payload and dependencies.
        """
        with self._in_flight_lock:
            if job_id in self._in_flight:
                logger.warning(f"Job {job_id} is still running, skipping this fire")
                return PipelineResult(
                    job_id=job_id,
                    outcome=PipelineOutcome.BUSY,
                    reason="previous invocation still running",
                )
            self._in_flight.add(job_id)

        try:
            job = self.persistence.find_one(job_id, org_id)
            if job is None:
                logger.warning(f"Job {job_id} no longer exists, dropping fire")
                return PipelineResult(
                    job_id=job_id,
                    outcome=PipelineOutcome.MISSING,
                    reason="job not found",
                )
            return self._run_job(job)
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(job_id)

    # =========================================================================
    # Steps
    # =========================================================================

    def _run_job(self, job: Job) -> PipelineResult:
        not_ready = self.check_readiness(job)
        if not_ready is not None:
            logger.info(f"Skipping job {job.job_id} ({job.name}): {not_ready}")
            return PipelineResult(
                job_id=job.job_id,
                outcome=PipelineOutcome.SKIPPED,
                reason=not_ready,
            )

        logger.info(f"Executing job {job.name} (ID: {job.job_id})")
        record = self._execute_with_retries(job)
        record = self.persistence.append_execution_record(record)

        logger.info(
            f"Job {job.job_id} finished: status={record.status.value}, "
            f"attempts={record.attempts}"
        )

        self._notify(job, record)

        return PipelineResult(
            job_id=job.job_id,
            outcome=PipelineOutcome.EXECUTED,
            record=record,
        )

    def check_readiness(self, job: Job) -> Optional[str]:
        """
        Check the job's dependencies.

        Returns:
            None if ready, otherwise the reason naming the blocking dependency
        """
        for dep_id in job.depends_on:
            latest = self.persistence.find_latest_execution_record(dep_id)
            if latest is None:
                return f"dependency {dep_id} has not run yet"
            if latest.status != ExecutionStatus.SUCCESS:
                return f"dependency {dep_id} failed at {latest.executed_at}"
        return None

    def _execute_with_retries(self, job: Job) -> ExecutionRecord:
        """Run attempts 0..retry_limit and build the single record."""
        handler = self.handlers[job.kind]
        last_error: Optional[ExecutionError] = None
        attempt = 0

        for attempt in range(job.retry_limit + 1):
            try:
                output = handler.execute(job)
            except ExecutionError as e:
                last_error = e
                logger.warning(
                    f"Job {job.job_id} attempt {attempt + 1}/{job.retry_limit + 1} failed: {e}"
                )
                continue
            except Exception as e:
                last_error = ExecutionError(
                    f"Unexpected error: {e}",
                    detail={"message": str(e), "type": type(e).__name__},
                )
                logger.exception(
                    f"Job {job.job_id} attempt {attempt + 1}/{job.retry_limit + 1} raised"
                )
                continue

            return ExecutionRecord.create(
                job_id=job.job_id,
                org_id=job.org_id,
                status=ExecutionStatus.SUCCESS,
                retry_count=attempt,
                output=output,
            )

        return ExecutionRecord.create(
            job_id=job.job_id,
            org_id=job.org_id,
            status=ExecutionStatus.FAILURE,
            retry_count=attempt,
            error=last_error.detail if last_error is not None else None,
        )

    def _notify(self, job: Job, record: ExecutionRecord) -> None:
        """Send the webhook. The result is discarded; nothing escapes."""
        if self.notifier is None or not job.webhook_url:
            return
        try:
            self.notifier(job, record)
        except Exception:
            logger.exception(f"Webhook notifier raised for job {job.job_id}")
