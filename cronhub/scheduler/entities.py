"""
Scheduler Domain Entities.

- Job: User-defined recurring task (http call or shell command) on a cron schedule
- HttpPayload / ShellPayload: Kind-specific payload, tagged by Job.kind
- ExecutionRecord: Immutable outcome of one invocation (one per fire, not per attempt)
- Identity: Caller identity supplied by the identity provider

Status values are lower-case strings on the wire ("success" / "failure").
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
import uuid


class JobKind(str, Enum):
    """Kind discriminator for Job.payload."""

    HTTP = "http"
    SHELL = "shell"


class ExecutionStatus(str, Enum):
    """
    Outcome of an invocation.

    - SUCCESS: Some attempt succeeded
    - FAILURE: Every attempt failed; the last failure is recorded
    """

    SUCCESS = "success"
    FAILURE = "failure"


class Role(str, Enum):
    """Caller roles understood by the HTTP layer."""

    USER = "user"
    ADMIN = "admin"


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def now_iso() -> str:
    """Get current time as ISO format string."""
    return datetime.utcnow().isoformat() + "Z"


def is_valid_job_id(value: Any) -> bool:
    """Check that a value is a well-formed job id (UUID string)."""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


@dataclass
class HttpPayload:
    """Payload for JobKind.HTTP."""

    url: str
    method: str
    headers: dict = field(default_factory=dict)
    body: Any = None

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "body": self.body,
        }


@dataclass
class ShellPayload:
    """Payload for JobKind.SHELL."""

    command: str

    def to_dict(self) -> dict:
        return {"command": self.command}


JobPayload = Union[HttpPayload, ShellPayload]

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"}


def payload_from_dict(kind: JobKind, data: Any) -> JobPayload:
    """
    Build the typed payload for a kind from raw input.

    Raises:
        ValueError: If the payload shape does not match the kind
    """
    if not isinstance(data, dict):
        raise ValueError("payload must be an object")

    if kind == JobKind.HTTP:
        url = data.get("url")
        method = data.get("method")
        if not url or not method:
            raise ValueError("HTTP jobs require url and method in payload")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid url: {url!r}")
        if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
            raise ValueError(f"Invalid HTTP method: {method!r}")
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ValueError("headers must be an object")
        return HttpPayload(
            url=url,
            method=method.upper(),
            headers={str(k): str(v) for k, v in headers.items()},
            body=data.get("body"),
        )

    if kind == JobKind.SHELL:
        command = data.get("command")
        if not command or not isinstance(command, str):
            raise ValueError("Shell jobs require command in payload")
        return ShellPayload(command=command)

    raise ValueError(f"Unknown job kind: {kind}")


@dataclass
class Identity:
    """Pre-validated caller identity."""

    user_id: str
    org_id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class Job:
    """
    A recurring task owned by a user inside an organization.

    depends_on holds job ids in the same organization; each must have a
    successful latest ExecutionRecord for this job to run on a fire.
    """

    job_id: str
    owner_id: str
    org_id: str
    name: str
    kind: JobKind
    schedule: str
    payload: JobPayload
    enabled: bool = True
    retry_limit: int = 0
    webhook_url: Optional[str] = None
    depends_on: list = field(default_factory=list)
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @classmethod
    def create(
        cls,
        owner_id: str,
        org_id: str,
        name: str,
        kind: JobKind,
        schedule: str,
        payload: JobPayload,
        enabled: bool = True,
        retry_limit: int = 0,
        webhook_url: Optional[str] = None,
        depends_on: Optional[list] = None,
    ) -> "Job":
        """Create a new Job with generated ID."""
        now = now_iso()
        return cls(
            job_id=generate_uuid(),
            owner_id=owner_id,
            org_id=org_id,
            name=name,
            kind=kind,
            schedule=schedule,
            payload=payload,
            enabled=enabled,
            retry_limit=retry_limit,
            webhook_url=webhook_url,
            depends_on=list(depends_on or []),
            created_at=now,
            updated_at=now,
        )


@dataclass(frozen=True)
class ExecutionRecord:
    """
    Outcome of one invocation of a job.

    attempts is the number of executor calls made; retry_count is the
    attempt index at which the final outcome was reached (attempts - 1).
    """

    record_id: str
    job_id: str
    org_id: str
    executed_at: str
    status: ExecutionStatus
    attempts: int
    retry_count: int
    output: Any = None
    error: Any = None

    @classmethod
    def create(
        cls,
        job_id: str,
        org_id: str,
        status: ExecutionStatus,
        retry_count: int,
        output: Any = None,
        error: Any = None,
        executed_at: Optional[str] = None,
    ) -> "ExecutionRecord":
        """Create a new ExecutionRecord with generated ID."""
        return cls(
            record_id=generate_uuid(),
            job_id=job_id,
            org_id=org_id,
            executed_at=executed_at or now_iso(),
            status=status,
            attempts=retry_count + 1,
            retry_count=retry_count,
            output=output,
            error=error,
        )

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS
