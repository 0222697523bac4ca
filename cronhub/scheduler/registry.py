"""
Trigger Registry for Job Scheduler.

Process-local map from job id to a live APScheduler cron job.
Derived state: it is never persisted and is rebuilt from enabled jobs at
startup (see recovery.py).

Guarantees:
- At most one live trigger per job id
- install/remove on the same job id are serialized; different job ids
  never wait on each other

What the Registry MUST NOT do:
- Validate cron expressions (the orchestrator rejects invalid ones first)
- Read or write the job store
- Execute jobs itself
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from apscheduler.job import Job as APSJob
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from .cron import DEFAULT_TIMEZONE, build_trigger
from .locks import KeyedLock


logger = logging.getLogger(__name__)


DEFAULT_MISFIRE_GRACE_SECONDS = 30
DEFAULT_MAX_WORKERS = 10


@dataclass
class TriggerHandle:
    """A live recurring timer for one job."""

    job_id: str
    cron_expression: str
    aps_job: APSJob

    def stop(self) -> None:
        """Stop the timer. Safe to call on an already-removed timer."""
        try:
            self.aps_job.remove()
        except JobLookupError:
            logger.debug(f"Trigger for job {self.job_id} already removed")


class TriggerRegistry:
    """
    Live trigger table backed by an APScheduler BackgroundScheduler.

    Fires run on the scheduler's thread pool. Each APScheduler job is
    registered with max_instances=1 and coalesce=True so a slow job does
    not queue up missed runs.
    """

    def __init__(
        self,
        scheduler: Optional[BackgroundScheduler] = None,
        timezone: str = DEFAULT_TIMEZONE,
        max_workers: int = DEFAULT_MAX_WORKERS,
        misfire_grace_seconds: int = DEFAULT_MISFIRE_GRACE_SECONDS,
    ):
        """
        Initialize TriggerRegistry.

        Args:
            scheduler: APScheduler instance (injectable for testing)
            timezone: Timezone cron expressions are evaluated in
            max_workers: Thread pool size for concurrent fires
            misfire_grace_seconds: How late a fire may still run
        """
        self.timezone = timezone
        self.misfire_grace_seconds = misfire_grace_seconds
        self._scheduler = scheduler or BackgroundScheduler(
            timezone=timezone,
            executors={"default": {"type": "threadpool", "max_workers": max_workers}},
        )
        self._handles: dict[str, TriggerHandle] = {}
        self._locks = KeyedLock()

    # =========================================================================
    # Mutations (serialized per job id)
    # =========================================================================

    def install(
        self,
        job_id: str,
        cron_expression: str,
        fire_fn: Callable[[], object],
    ) -> TriggerHandle:
        """
        Install the trigger for a job, replacing any existing one.

        After this returns exactly one live trigger exists for job_id.

        Args:
            job_id: Job identity
            cron_expression: Pre-validated cron expression
            fire_fn: Called with no arguments on every fire
        """
        trigger = build_trigger(cron_expression, timezone=self.timezone)

        with self._locks.hold(job_id):
            existing = self._handles.pop(job_id, None)
            if existing is not None:
                existing.stop()

            aps_job = self._scheduler.add_job(
                fire_fn,
                trigger=trigger,
                id=job_id,
                name=f"cronhub:{job_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.misfire_grace_seconds,
            )
            handle = TriggerHandle(
                job_id=job_id,
                cron_expression=cron_expression,
                aps_job=aps_job,
            )
            self._handles[job_id] = handle

        logger.info(
            f"Installed trigger for job {job_id} ({cron_expression})"
            + (" replacing previous trigger" if existing is not None else "")
        )
        return handle

    def remove(self, job_id: str) -> bool:
        """
        Stop and discard the trigger for a job.

        Returns:
            True if a trigger was removed, False if none existed
        """
        with self._locks.hold(job_id):
            handle = self._handles.pop(job_id, None)
            if handle is None:
                return False
            handle.stop()

        logger.info(f"Removed trigger for job {job_id}")
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def has(self, job_id: str) -> bool:
        """Check if a job has a live trigger."""
        return job_id in self._handles

    def get(self, job_id: str) -> Optional[TriggerHandle]:
        """Get the live trigger for a job, if any."""
        return self._handles.get(job_id)

    def job_ids(self) -> list[str]:
        """List job ids with live triggers."""
        return list(self._handles.keys())

    def __len__(self) -> int:
        return len(self._handles)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        """Start firing triggers. Triggers installed before start are kept."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Trigger registry started ({len(self)} triggers)")

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop firing triggers.

        Args:
            wait: Wait for in-flight fires to finish
        """
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Trigger registry stopped")
