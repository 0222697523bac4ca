"""
Scheduler Service - Main entry point for cronhub.

This service orchestrates all scheduler components:
- PersistenceAdapter (job store)
- DependencyValidator (existence and cycle checks)
- TriggerRegistry (live cron timers)
- ExecutionPipeline (readiness gate, retry loop, records, webhooks)
- RecoveryManager (startup reconciliation)

Every lifecycle operation takes the caller's Identity and only ever sees
jobs in the caller's organization. A job outside it is reported exactly like
a job that does not exist.

Usage:
    service = SchedulerService.create(db_path)
    service.start()
    job = service.create_job(identity, name=..., kind="http", ...)
    service.stop()
"""

import contextlib
import dataclasses
import functools
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from cronhub.infra.webhook import WEBHOOK_TIMEOUT_SECONDS, notify_execution

from .cron import DEFAULT_TIMEZONE, is_valid_cron
from .dependencies import DependencyValidator
from .entities import (
    ExecutionRecord,
    Identity,
    Job,
    JobKind,
    JobPayload,
    now_iso,
    payload_from_dict,
)
from .errors import DependentJobsError, JobNotFoundError, ValidationError
from .executor import (
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_SHELL_TIMEOUT_SECONDS,
    JobHandler,
    default_handlers,
)
from .locks import KeyedLock
from .persistence import PersistenceAdapter
from .pipeline import ExecutionPipeline, PipelineResult
from .recovery import RecoveryManager
from .registry import TriggerRegistry


logger = logging.getLogger(__name__)


# Fields a caller may change through update_job
UPDATABLE_FIELDS = {
    "name",
    "kind",
    "schedule",
    "payload",
    "enabled",
    "retry_limit",
    "webhook_url",
    "depends_on",
}

DEFAULT_HISTORY_LIMIT = 50


class SchedulerService:
    """
    Main service that coordinates all scheduler components.

    Provides:
    - Component initialization and wiring
    - Startup with trigger reconciliation
    - Graceful shutdown
    - Org-scoped job lifecycle operations
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        validator: DependencyValidator,
        registry: TriggerRegistry,
        pipeline: ExecutionPipeline,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        """
        Initialize SchedulerService with all components.

        Use SchedulerService.create() for convenient construction.
        """
        self.persistence = persistence
        self.validator = validator
        self.registry = registry
        self.pipeline = pipeline
        self.timezone = timezone
        self.recovery_manager = RecoveryManager(
            persistence=persistence,
            registry=registry,
            fire_factory=self._fire_fn,
        )

        # Whole lifecycle operations are serialized per job id
        self._job_locks = KeyedLock()
        # Dependency graph check + write is serialized per organization.
        # Always taken after the job lock, never the other way round.
        self._graph_locks = KeyedLock()
        self._started = False

    @classmethod
    def create(
        cls,
        db_path: str | Path,
        timezone: str = DEFAULT_TIMEZONE,
        http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        shell_timeout: float = DEFAULT_SHELL_TIMEOUT_SECONDS,
        webhook_timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        scheduler: Optional[BackgroundScheduler] = None,
        handlers: Optional[dict[JobKind, JobHandler]] = None,
        notifier: Optional[Callable[[Job, ExecutionRecord], object]] = None,
    ) -> "SchedulerService":
        """
        Create a SchedulerService with all components wired together.

        Args:
            db_path: Path to SQLite database
            timezone: Timezone cron expressions are evaluated in
            http_timeout: Request timeout for HTTP jobs
            shell_timeout: Maximum run time for shell jobs
            webhook_timeout: Request timeout for webhook delivery
            scheduler: APScheduler instance (injectable for testing)
            handlers: Job handlers by kind (defaults to HTTP + shell)
            notifier: Webhook sender (defaults to notify_execution)

        Returns:
            Configured SchedulerService
        """
        persistence = PersistenceAdapter(db_path)

        validator = DependencyValidator(persistence)

        registry = TriggerRegistry(scheduler=scheduler, timezone=timezone)

        if handlers is None:
            handlers = default_handlers(
                http_timeout=http_timeout,
                shell_timeout=shell_timeout,
            )
        if notifier is None:
            notifier = functools.partial(notify_execution, timeout=webhook_timeout)

        pipeline = ExecutionPipeline(
            persistence=persistence,
            handlers=handlers,
            notifier=notifier,
        )

        return cls(
            persistence=persistence,
            validator=validator,
            registry=registry,
            pipeline=pipeline,
            timezone=timezone,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> dict:
        """
        Reconcile triggers with the job store, then start firing.

        Returns:
            Reconciliation statistics

        Raises:
            StoreUnavailableError: If enabled jobs cannot be loaded
        """
        if self._started:
            raise RuntimeError("Scheduler already started")

        logger.info("Starting scheduler service...")

        stats = self.recovery_manager.reconcile()
        self.registry.start()
        self._started = True

        logger.info("Scheduler service started")
        return stats

    def stop(self, wait: bool = True) -> None:
        """
        Stop firing triggers.

        Args:
            wait: Wait for in-flight executions to finish and be recorded
        """
        if not self._started:
            return

        logger.info("Stopping scheduler service...")
        self.registry.shutdown(wait=wait)
        self._started = False
        logger.info("Scheduler service stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._started and self.registry.running

    def _fire_fn(self, job: Job) -> Callable[[], None]:
        """Timer callback for a job. The pipeline reloads the job on every fire."""
        return functools.partial(self.pipeline.fire, job.job_id, job.org_id)

    def _sync_trigger(self, job: Job) -> None:
        """Make the registry agree with the job's enabled flag."""
        self.registry.remove(job.job_id)
        if job.enabled:
            self.registry.install(job.job_id, job.schedule, self._fire_fn(job))

    # =========================================================================
    # Validation
    # =========================================================================

    def _validate_name(self, name: Any) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name must be a non-empty string", field="name")
        return name.strip()

    def _validate_kind(self, kind: Any) -> JobKind:
        try:
            return JobKind(kind)
        except ValueError:
            allowed = ", ".join(k.value for k in JobKind)
            raise ValidationError(
                f"Invalid kind: {kind!r} (expected one of: {allowed})", field="kind"
            ) from None

    def _validate_payload(self, kind: JobKind, payload: Any) -> JobPayload:
        try:
            return payload_from_dict(kind, payload)
        except ValueError as e:
            raise ValidationError(str(e), field="payload") from e

    def _validate_schedule(self, schedule: Any) -> str:
        if not isinstance(schedule, str) or not is_valid_cron(schedule, timezone=self.timezone):
            raise ValidationError(f"Invalid cron expression: {schedule!r}", field="schedule")
        return schedule.strip()

    def _validate_retry_limit(self, retry_limit: Any) -> int:
        if isinstance(retry_limit, bool) or not isinstance(retry_limit, int) or retry_limit < 0:
            raise ValidationError(
                "retry_limit must be a non-negative integer", field="retry_limit"
            )
        return retry_limit

    def _validate_webhook_url(self, webhook_url: Any) -> Optional[str]:
        if webhook_url is None or webhook_url == "":
            return None
        if not isinstance(webhook_url, str) or not webhook_url.startswith(("http://", "https://")):
            raise ValidationError(f"Invalid webhook_url: {webhook_url!r}", field="webhook_url")
        return webhook_url

    def _validate_enabled(self, enabled: Any) -> bool:
        if not isinstance(enabled, bool):
            raise ValidationError("enabled must be a boolean", field="enabled")
        return enabled

    def _validate_depends_on(self, depends_on: Any) -> list:
        if depends_on is None:
            return []
        if not isinstance(depends_on, (list, tuple)):
            raise ValidationError("depends_on must be a list of job ids", field="depends_on")
        return list(depends_on)

    def _require_job(self, identity: Identity, job_id: str) -> Job:
        job = self.persistence.find_one(job_id, identity.org_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    # =========================================================================
    # Job Operations
    # =========================================================================

    def create_job(
        self,
        identity: Identity,
        name: str,
        kind: str | JobKind,
        schedule: str,
        payload: dict,
        enabled: bool = True,
        retry_limit: int = 0,
        webhook_url: Optional[str] = None,
        depends_on: Optional[list] = None,
    ) -> Job:
        """
        Create a job and install its trigger if enabled.

        Raises:
            ValidationError: If any field is malformed
            DependencyError: If a dependency is missing or closes a cycle
        """
        job_kind = self._validate_kind(kind)
        job = Job.create(
            owner_id=identity.user_id,
            org_id=identity.org_id,
            name=self._validate_name(name),
            kind=job_kind,
            schedule=self._validate_schedule(schedule),
            payload=self._validate_payload(job_kind, payload),
            enabled=self._validate_enabled(enabled),
            retry_limit=self._validate_retry_limit(retry_limit),
            webhook_url=self._validate_webhook_url(webhook_url),
        )

        with self._job_locks.hold(job.job_id):
            with self._graph_locks.hold(identity.org_id):
                job.depends_on = self.validator.check(
                    job.job_id,
                    self._validate_depends_on(depends_on),
                    identity.org_id,
                )
                self.persistence.create_job(job)
            if job.enabled:
                self.registry.install(job.job_id, job.schedule, self._fire_fn(job))

        logger.info(
            f"Created job {job.job_id} ({job.name}) in org {job.org_id}, "
            f"kind={job.kind.value}, schedule={job.schedule!r}, enabled={job.enabled}"
        )
        return job

    def update_job(self, identity: Identity, job_id: str, changes: dict) -> Job:
        """
        Apply a partial update.

        Only supplied fields change. payload is re-validated against the
        effective kind; depends_on is re-validated only if supplied. The
        trigger is always removed and, if the job ends up enabled,
        reinstalled with the effective schedule.

        Raises:
            JobNotFoundError: If the job is not in the caller's organization
            ValidationError: If a field is malformed or unknown
            DependencyError: If new dependencies are missing or close a cycle
        """
        unknown = sorted(set(changes) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}", field=unknown[0])

        with self._job_locks.hold(job_id):
            job = self._require_job(identity, job_id)
            updates: dict[str, Any] = {}

            if "name" in changes:
                updates["name"] = self._validate_name(changes["name"])

            kind = job.kind
            if "kind" in changes:
                kind = self._validate_kind(changes["kind"])
                updates["kind"] = kind

            if "payload" in changes:
                updates["payload"] = self._validate_payload(kind, changes["payload"])
            elif kind != job.kind:
                updates["payload"] = self._validate_payload(kind, job.payload.to_dict())

            if "schedule" in changes:
                updates["schedule"] = self._validate_schedule(changes["schedule"])

            if "enabled" in changes:
                updates["enabled"] = self._validate_enabled(changes["enabled"])

            if "retry_limit" in changes:
                updates["retry_limit"] = self._validate_retry_limit(changes["retry_limit"])

            if "webhook_url" in changes:
                updates["webhook_url"] = self._validate_webhook_url(changes["webhook_url"])

            if "depends_on" in changes:
                deps = self._validate_depends_on(changes["depends_on"])
                graph_guard = self._graph_locks.hold(identity.org_id)
            else:
                graph_guard = contextlib.nullcontext()

            with graph_guard:
                if "depends_on" in changes:
                    updates["depends_on"] = self.validator.check(job.job_id, deps, identity.org_id)

                job = dataclasses.replace(job, updated_at=now_iso(), **updates)
                self.persistence.update_job(job)

            self._sync_trigger(job)

        logger.info(f"Updated job {job_id}: {', '.join(sorted(updates)) or 'no changes'}")
        return job

    def delete_job(self, identity: Identity, job_id: str) -> None:
        """
        Delete a job. Its trigger is removed before the record.

        Raises:
            JobNotFoundError: If the job is not in the caller's organization
            DependentJobsError: If other jobs still depend on it
        """
        with self._job_locks.hold(job_id):
            self._require_job(identity, job_id)

            with self._graph_locks.hold(identity.org_id):
                dependents = self.persistence.find_dependents(job_id, identity.org_id)
                if dependents:
                    raise DependentJobsError(job_id, [d.job_id for d in dependents])

                self.registry.remove(job_id)
                if not self.persistence.delete_job(job_id, identity.org_id):
                    raise JobNotFoundError(job_id)

        logger.info(f"Deleted job {job_id} from org {identity.org_id}")

    def toggle_job(self, identity: Identity, job_id: str) -> Job:
        """
        Flip the enabled flag and make the trigger follow it.

        Raises:
            JobNotFoundError: If the job is not in the caller's organization
        """
        with self._job_locks.hold(job_id):
            job = self._require_job(identity, job_id)
            job = dataclasses.replace(job, enabled=not job.enabled, updated_at=now_iso())
            self.persistence.update_job(job)
            self._sync_trigger(job)

        logger.info(f"Job {job_id} {'enabled' if job.enabled else 'disabled'}")
        return job

    def get_job(self, identity: Identity, job_id: str) -> Job:
        """Get a job in the caller's organization."""
        return self._require_job(identity, job_id)

    def list_jobs(self, identity: Identity, enabled: Optional[bool] = None) -> list[Job]:
        """List jobs in the caller's organization, oldest first."""
        return self.persistence.find_jobs(org_id=identity.org_id, enabled=enabled)

    def list_all_jobs(self, enabled: Optional[bool] = None) -> list[Job]:
        """List jobs across all organizations (admin surface)."""
        return self.persistence.find_jobs(enabled=enabled)

    def run_job_now(self, identity: Identity, job_id: str) -> PipelineResult:
        """
        Fire a job immediately through the normal pipeline.

        Works for disabled jobs too. The readiness gate and overlap guard
        still apply.
        """
        job = self._require_job(identity, job_id)
        logger.info(f"Manual run requested for job {job_id} by {identity.user_id}")
        return self.pipeline.run(job.job_id, job.org_id)

    def list_execution_records(
        self,
        identity: Identity,
        job_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[ExecutionRecord]:
        """Execution history for a job, newest first."""
        self._require_job(identity, job_id)
        return self.persistence.list_execution_records(job_id, limit=limit)

    # =========================================================================
    # Status
    # =========================================================================

    def get_job_stats(self) -> dict:
        """
        Get job statistics across all organizations.

        Returns:
            Dict with total, enabled and disabled counts, jobs per org and the
            number of distinct jobs executed in the last 24 hours
        """
        since = (datetime.utcnow() - timedelta(hours=24)).isoformat() + "Z"
        total = self.persistence.count_jobs()
        enabled = self.persistence.count_jobs(enabled=True)
        return {
            "total_jobs": total,
            "enabled_jobs": enabled,
            "disabled_jobs": total - enabled,
            "jobs_by_org": self.persistence.count_jobs_by_org(),
            "jobs_run_last_24h": self.persistence.count_jobs_executed_since(since),
        }

    def get_scheduler_status(self) -> dict:
        return {
            "is_running": self.is_running,
            "trigger_count": len(self.registry),
            "in_flight": self.pipeline.in_flight,
            "timezone": self.timezone,
        }
