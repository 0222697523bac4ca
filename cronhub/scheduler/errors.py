"""
Scheduler-specific exceptions.

Raised synchronously to lifecycle callers:
- ValidationError: malformed input, kind/payload mismatch, invalid cron
- DependencyError: missing/foreign dependency ids, dependency cycle
- JobNotFoundError: job absent or outside the caller's organization

Never reach a synchronous caller:
- ExecutionError: one failed attempt inside the retry loop
- NotificationError: webhook delivery failure (logged only)
"""

from typing import Any, Iterable, Optional


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class ValidationError(SchedulerError):
    """Raised when job input is malformed. Nothing is committed."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DependencyError(SchedulerError):
    """Raised when a dependency set is rejected. Job state is left unchanged."""
    pass


class MissingDependencyError(DependencyError):
    """
    Raised when dependency ids do not resolve inside the caller's organization.

    Ids that never existed and ids owned by another organization are
    reported the same way.
    """

    def __init__(self, missing_ids: Iterable[str]):
        self.missing_ids = list(missing_ids)
        super().__init__(f"Dependency jobs not found: {', '.join(self.missing_ids)}")


class DependencyCycleError(DependencyError):
    """Raised when a proposed dependency set closes a cycle."""

    def __init__(self, path: Iterable[str]):
        self.path = list(path)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.path)}")


class DependentJobsError(DependencyError):
    """Raised when deleting a job that other jobs still depend on."""

    def __init__(self, job_id: str, dependent_ids: Iterable[str]):
        self.job_id = job_id
        self.dependent_ids = list(dependent_ids)
        super().__init__(
            f"Job {job_id} is a dependency of: {', '.join(self.dependent_ids)}"
        )


class JobNotFoundError(SchedulerError):
    """Raised when a requested job does not exist in the caller's organization."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class ExecutionError(SchedulerError):
    """
    Raised by a job handler when one attempt fails.

    detail is the normalized, JSON-serializable error body that ends up in
    ExecutionRecord.error if this is the final attempt.
    """

    def __init__(self, message: str, detail: Any = None):
        self.detail = detail if detail is not None else {"message": message}
        super().__init__(message)


class NotificationError(SchedulerError):
    """Webhook delivery failure. Never escapes the notifier."""
    pass


class StoreUnavailableError(SchedulerError):
    """Raised when the job store cannot be read during startup reconciliation."""
    pass
