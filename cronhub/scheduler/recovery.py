"""
Recovery Manager for Job Scheduler.

Rebuilds the Trigger Registry from the job store on startup:
- Every persisted job with enabled = true gets exactly one trigger
- Disabled jobs get none

Triggers are process-local, so after a restart this is the only thing that
brings schedules back. Reconciliation is idempotent: install replaces an
existing trigger for the same job id.
"""

import logging
import sqlite3
from typing import Callable

from .entities import Job
from .errors import StoreUnavailableError
from .persistence import PersistenceAdapter
from .registry import TriggerRegistry


logger = logging.getLogger(__name__)


FireFactory = Callable[[Job], Callable[[], object]]


class RecoveryManager:
    """Startup reconciliation between the job store and the Trigger Registry."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        registry: TriggerRegistry,
        fire_factory: FireFactory,
    ):
        """
        Initialize RecoveryManager.

        Args:
            persistence: PersistenceAdapter for storage
            registry: TriggerRegistry to populate
            fire_factory: Builds the fire callback for a job
        """
        self.persistence = persistence
        self.registry = registry
        self.fire_factory = fire_factory

    def reconcile(self) -> dict:
        """
        Install a trigger for every enabled job.

        A job whose trigger cannot be installed is logged and counted; the
        remaining jobs are still installed.

        Returns:
            Reconciliation statistics

        Raises:
            StoreUnavailableError: If the job store cannot be read or holds a
                job row that no longer parses
        """
        stats = {
            "jobs_loaded": 0,
            "triggers_installed": 0,
            "errors": [],
        }

        logger.info("Reconciling triggers with job store...")

        try:
            jobs = self.persistence.find_jobs(enabled=True)
        except (sqlite3.Error, ValueError) as e:
            logger.error(f"Job store unavailable during reconciliation: {e}")
            raise StoreUnavailableError(f"Cannot load enabled jobs: {e}") from e

        stats["jobs_loaded"] = len(jobs)

        for job in jobs:
            try:
                self.registry.install(job.job_id, job.schedule, self.fire_factory(job))
                stats["triggers_installed"] += 1
            except (ValueError, TypeError) as e:
                logger.error(f"Cannot install trigger for job {job.job_id} ({job.schedule}): {e}")
                stats["errors"].append(f"{job.job_id}: {e}")

        logger.info(
            f"Reconciliation complete: "
            f"{stats['triggers_installed']}/{stats['jobs_loaded']} triggers installed"
        )

        return stats
