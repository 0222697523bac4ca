"""
Scheduler Test Fixtures.

Base fixtures:
  - Empty database (temporary SQLite file)
  - APScheduler instance that is never started unless a test starts it
  - Scripted job handlers (no network, no subprocess)

Per-test fixtures:
  - Job factory writing straight to the store (bypasses validation)
  - Execution record factory for readiness gate tests
"""

import pytest
import tempfile
from pathlib import Path
from typing import Callable, Generator, Optional
from unittest.mock import MagicMock

from apscheduler.schedulers.background import BackgroundScheduler

from cronhub.scheduler import (
    DependencyValidator,
    ExecutionError,
    ExecutionPipeline,
    ExecutionRecord,
    ExecutionStatus,
    HttpPayload,
    Identity,
    Job,
    JobHandler,
    JobKind,
    PersistenceAdapter,
    Role,
    ShellPayload,
    TriggerRegistry,
)
from cronhub.scheduler.service import SchedulerService


# Never fires during a test run
DEFAULT_SCHEDULE = "0 0 1 1 *"

ORG_ID = "acme"
OTHER_ORG_ID = "globex"


class MockJobHandler(JobHandler):
    """
    Mock job handler for testing.

    Plays back a script of outcomes: a dict is returned as output, an
    exception is raised. Once the script is used up every attempt succeeds.
    """

    def __init__(self, kind: JobKind):
        self.kind = kind
        self.calls: list[Job] = []
        self._script: list = []

    def script(self, *outcomes) -> None:
        """Set the outcomes of the next attempts, in order."""
        self._script = list(outcomes)

    def execute(self, job: Job) -> dict:
        self.calls.append(job)
        if self._script:
            outcome = self._script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return {"ok": True}


def attempt_failed(message: str = "boom") -> ExecutionError:
    """An ExecutionError as a handler would raise it."""
    return ExecutionError(message, detail={"message": message})


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def temp_db_path() -> Generator[str, None, None]:
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup
    Path(db_path).unlink(missing_ok=True)
    # Also cleanup WAL and SHM files
    Path(f"{db_path}-wal").unlink(missing_ok=True)
    Path(f"{db_path}-shm").unlink(missing_ok=True)


@pytest.fixture
def persistence(temp_db_path: str) -> PersistenceAdapter:
    """Create a fresh PersistenceAdapter with empty database."""
    return PersistenceAdapter(temp_db_path)


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def aps_scheduler() -> Generator[BackgroundScheduler, None, None]:
    """APScheduler instance; shut down after the test if it was started."""
    scheduler = BackgroundScheduler(timezone="UTC")
    yield scheduler
    if scheduler.running:
        scheduler.shutdown(wait=False)


@pytest.fixture
def registry(aps_scheduler: BackgroundScheduler) -> TriggerRegistry:
    """Create a TriggerRegistry on the test scheduler."""
    return TriggerRegistry(scheduler=aps_scheduler)


@pytest.fixture
def validator(persistence: PersistenceAdapter) -> DependencyValidator:
    """Create a DependencyValidator."""
    return DependencyValidator(persistence)


@pytest.fixture
def http_handler() -> MockJobHandler:
    return MockJobHandler(JobKind.HTTP)


@pytest.fixture
def shell_handler() -> MockJobHandler:
    return MockJobHandler(JobKind.SHELL)


@pytest.fixture
def handlers(http_handler: MockJobHandler, shell_handler: MockJobHandler) -> dict:
    """One mock handler per job kind."""
    return {JobKind.HTTP: http_handler, JobKind.SHELL: shell_handler}


@pytest.fixture
def notifier() -> MagicMock:
    """Mock webhook notifier."""
    return MagicMock(return_value=None)


@pytest.fixture
def pipeline(
    persistence: PersistenceAdapter,
    handlers: dict,
    notifier: MagicMock,
) -> ExecutionPipeline:
    """Create an ExecutionPipeline with mock handlers and notifier."""
    return ExecutionPipeline(persistence, handlers, notifier=notifier)


@pytest.fixture
def service(
    temp_db_path: str,
    aps_scheduler: BackgroundScheduler,
    handlers: dict,
    notifier: MagicMock,
) -> Generator[SchedulerService, None, None]:
    """Create a fully wired SchedulerService (not started)."""
    svc = SchedulerService.create(
        db_path=temp_db_path,
        scheduler=aps_scheduler,
        handlers=handlers,
        notifier=notifier,
    )
    yield svc
    svc.stop(wait=False)


# =============================================================================
# Identity Fixtures
# =============================================================================


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id="user-1", org_id=ORG_ID)


@pytest.fixture
def other_identity() -> Identity:
    """A caller in a different organization."""
    return Identity(user_id="user-2", org_id=OTHER_ORG_ID)


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(user_id="admin-1", org_id=ORG_ID, role=Role.ADMIN)


# =============================================================================
# Factory Fixtures
# =============================================================================


def http_payload(url: str = "https://example.com/ping", method: str = "GET") -> dict:
    """Raw HTTP payload as a caller would send it."""
    return {"url": url, "method": method}


def shell_payload(command: str = "echo hello") -> dict:
    """Raw shell payload as a caller would send it."""
    return {"command": command}


@pytest.fixture
def create_job(persistence: PersistenceAdapter) -> Callable[..., Job]:
    """Factory writing jobs straight to the store."""

    def _create(
        name: str = "job",
        org_id: str = ORG_ID,
        kind: JobKind = JobKind.SHELL,
        schedule: str = DEFAULT_SCHEDULE,
        enabled: bool = True,
        retry_limit: int = 0,
        webhook_url: Optional[str] = None,
        depends_on: Optional[list] = None,
    ) -> Job:
        payload = (
            ShellPayload(command="echo hello")
            if kind == JobKind.SHELL
            else HttpPayload(url="https://example.com/ping", method="GET")
        )
        job = Job.create(
            owner_id="user-1",
            org_id=org_id,
            name=name,
            kind=kind,
            schedule=schedule,
            payload=payload,
            enabled=enabled,
            retry_limit=retry_limit,
            webhook_url=webhook_url,
            depends_on=depends_on,
        )
        return persistence.create_job(job)

    return _create


@pytest.fixture
def add_record(persistence: PersistenceAdapter) -> Callable[..., ExecutionRecord]:
    """Factory appending an execution record for a job."""

    def _add(job: Job, status: ExecutionStatus = ExecutionStatus.SUCCESS) -> ExecutionRecord:
        record = ExecutionRecord.create(
            job_id=job.job_id,
            org_id=job.org_id,
            status=status,
            retry_count=0,
            output={"ok": True} if status == ExecutionStatus.SUCCESS else None,
            error={"message": "boom"} if status == ExecutionStatus.FAILURE else None,
        )
        return persistence.append_execution_record(record)

    return _add


# =============================================================================
# Assertion Helpers
# =============================================================================


def assert_triggers_match_enabled(service: SchedulerService) -> None:
    """A job has a live trigger iff it is persisted with enabled = true."""
    jobs = service.persistence.find_jobs()
    enabled_ids = {job.job_id for job in jobs if job.enabled}
    assert set(service.registry.job_ids()) == enabled_ids
