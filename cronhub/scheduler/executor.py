"""
Job handlers for the Execution Pipeline.

Each handler runs ONE attempt of a job payload and either returns the
normalized output or raises ExecutionError with the normalized error body.

What handlers MUST NOT do:
- Retry (the pipeline owns the retry loop)
- Write ExecutionRecords
- Send webhooks
"""

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from .entities import HttpPayload, Job, JobKind, ShellPayload
from .errors import ExecutionError


logger = logging.getLogger(__name__)


DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_SHELL_TIMEOUT_SECONDS = 300.0

# Methods that carry a request body
BODY_METHODS = {"POST", "PUT", "PATCH"}

USER_AGENT = "cronhub/1.0"


class JobHandler(ABC):
    """Abstract base class for job kind handlers."""

    kind: JobKind

    @abstractmethod
    def execute(self, job: Job) -> dict:
        """
        Run one attempt of the job.

        Returns:
            Normalized output (JSON-serializable)

        Raises:
            ExecutionError: If the attempt failed
        """
        ...


def _decode_body(response: httpx.Response) -> Any:
    """Return JSON if the response parses as JSON, text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


class HttpJobHandler(JobHandler):
    """
    Executes HttpPayload jobs with httpx.

    Output: {"status", "body", "headers"}.
    A response with status >= 400 is a failure carrying the same normalized body.
    """

    kind = JobKind.HTTP

    def __init__(
        self,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize HTTP handler.

        Args:
            timeout: Request timeout in seconds
            client: Optional shared httpx.Client (injectable for testing)
        """
        self.timeout = timeout
        self._client = client

    def execute(self, job: Job) -> dict:
        payload = job.payload
        if not isinstance(payload, HttpPayload):
            raise ExecutionError(f"Job {job.job_id} has no HTTP payload")

        method = payload.method.upper()
        request_kwargs: dict = {"headers": {"User-Agent": USER_AGENT, **payload.headers}}

        if payload.body is not None and method in BODY_METHODS:
            if isinstance(payload.body, (dict, list)):
                request_kwargs["json"] = payload.body
            else:
                request_kwargs["content"] = str(payload.body)

        logger.info(f"Executing HTTP job {job.job_id}: {method} {payload.url}")

        try:
            if self._client is not None:
                response = self._client.request(method, payload.url, **request_kwargs)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.request(method, payload.url, **request_kwargs)

        except httpx.TimeoutException as e:
            raise ExecutionError(
                f"Timeout after {self.timeout}s",
                detail={"message": f"Timeout after {self.timeout}s", "type": type(e).__name__},
            ) from e

        except httpx.HTTPError as e:
            raise ExecutionError(
                f"Request error: {e}",
                detail={"message": str(e), "type": type(e).__name__},
            ) from e

        result = {
            "status": response.status_code,
            "body": _decode_body(response),
            "headers": dict(response.headers),
        }

        if response.status_code >= 400:
            raise ExecutionError(f"HTTP {response.status_code}", detail=result)

        return result


class ShellJobHandler(JobHandler):
    """
    Executes ShellPayload jobs via subprocess.

    Output: {"stdout", "stderr", "exit_code"}.
    Non-zero exit, spawn failure and timeout are failures.
    Output on stderr with exit code 0 is logged but still a success.
    """

    kind = JobKind.SHELL

    def __init__(
        self,
        timeout: float = DEFAULT_SHELL_TIMEOUT_SECONDS,
        cwd: Optional[str] = None,
    ):
        """
        Initialize shell handler.

        Args:
            timeout: Maximum seconds a command may run
            cwd: Working directory for commands
        """
        self.timeout = timeout
        self.cwd = cwd

    def execute(self, job: Job) -> dict:
        payload = job.payload
        if not isinstance(payload, ShellPayload):
            raise ExecutionError(f"Job {job.job_id} has no shell payload")

        logger.info(f"Executing shell job {job.job_id}: {payload.command}")

        try:
            completed = subprocess.run(
                payload.command,
                shell=True,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )

        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"Command timed out after {self.timeout}s",
                detail={
                    "message": f"Command timed out after {self.timeout}s",
                    "stdout": e.stdout if isinstance(e.stdout, str) else None,
                    "stderr": e.stderr if isinstance(e.stderr, str) else None,
                },
            ) from e

        except OSError as e:
            raise ExecutionError(
                f"Failed to spawn command: {e}",
                detail={"message": str(e), "type": type(e).__name__},
            ) from e

        result = {
            "stdout": completed.stdout,
            "stderr": completed.stderr,
            "exit_code": completed.returncode,
        }

        if completed.returncode != 0:
            raise ExecutionError(
                f"Process exited with code {completed.returncode}",
                detail=result,
            )

        if completed.stderr:
            logger.warning(f"Shell job {job.job_id} stderr: {completed.stderr.strip()}")

        return result


def default_handlers(
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
    shell_timeout: float = DEFAULT_SHELL_TIMEOUT_SECONDS,
) -> dict[JobKind, JobHandler]:
    """One handler per JobKind."""
    return {
        JobKind.HTTP: HttpJobHandler(timeout=http_timeout),
        JobKind.SHELL: ShellJobHandler(timeout=shell_timeout),
    }
