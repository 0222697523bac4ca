"""
Job Scheduler Core Module.

- entities / errors: domain model and exception hierarchy
- persistence: SQLite job store and execution history
- dependencies: dependency existence and cycle checks
- registry: live APScheduler triggers, one per enabled job
- pipeline: readiness gate, retry loop, execution records
- recovery: startup reconciliation

The orchestrator lives in cronhub.scheduler.service (it pulls in the
webhook notifier from cronhub.infra, so it is not re-exported here).
"""

from .entities import (
    JobKind,
    ExecutionStatus,
    Role,
    HttpPayload,
    ShellPayload,
    Identity,
    Job,
    ExecutionRecord,
)
from .errors import (
    SchedulerError,
    ValidationError,
    DependencyError,
    MissingDependencyError,
    DependencyCycleError,
    DependentJobsError,
    JobNotFoundError,
    ExecutionError,
    NotificationError,
    StoreUnavailableError,
)
from .persistence import PersistenceAdapter
from .dependencies import DependencyValidator
from .registry import TriggerRegistry, TriggerHandle
from .executor import JobHandler, HttpJobHandler, ShellJobHandler
from .pipeline import ExecutionPipeline, PipelineOutcome, PipelineResult
from .recovery import RecoveryManager

__all__ = [
    # Entities
    "JobKind",
    "ExecutionStatus",
    "Role",
    "HttpPayload",
    "ShellPayload",
    "Identity",
    "Job",
    "ExecutionRecord",
    # Errors
    "SchedulerError",
    "ValidationError",
    "DependencyError",
    "MissingDependencyError",
    "DependencyCycleError",
    "DependentJobsError",
    "JobNotFoundError",
    "ExecutionError",
    "NotificationError",
    "StoreUnavailableError",
    # Persistence
    "PersistenceAdapter",
    # Dependencies
    "DependencyValidator",
    # Registry
    "TriggerRegistry",
    "TriggerHandle",
    # Executor
    "JobHandler",
    "HttpJobHandler",
    "ShellJobHandler",
    # Pipeline
    "ExecutionPipeline",
    "PipelineOutcome",
    "PipelineResult",
    # Recovery
    "RecoveryManager",
]
