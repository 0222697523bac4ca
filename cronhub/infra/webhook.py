"""
Webhook notification for execution outcomes.

Sends one HTTP POST per ExecutionRecord to the job's webhook_url.
Delivery is best-effort: a single attempt, no retry, and every failure is
converted into a WebhookResult instead of an exception.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from cronhub.scheduler.entities import ExecutionRecord, ExecutionStatus, Job
from cronhub.scheduler.errors import NotificationError

logger = logging.getLogger(__name__)

# Webhook configuration
WEBHOOK_TIMEOUT_SECONDS = 10.0
WEBHOOK_USER_AGENT = "cronhub-webhook/1.0"


@dataclass(frozen=True)
class WebhookResult:
    """Outcome of one delivery attempt."""

    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def build_webhook_payload(job: Job, record: ExecutionRecord) -> dict:
    """
    Build webhook payload from an execution record.

    Carries "output" on success and "error" on failure, never both.
    """
    payload: dict[str, Any] = {
        "jobId": job.job_id,
        "status": record.status.value,
        "executedAt": record.executed_at,
        "retryCount": record.retry_count,
    }
    if record.status == ExecutionStatus.SUCCESS:
        payload["output"] = record.output
    else:
        payload["error"] = record.error
    return payload


def send_webhook(
    url: str,
    payload: dict,
    timeout: float = WEBHOOK_TIMEOUT_SECONDS,
) -> WebhookResult:
    """
    POST a payload to a webhook URL once.

    Args:
        url: Webhook URL
        payload: JSON body
        timeout: Request timeout in seconds

    Returns:
        WebhookResult; never raises
    """
    try:
        status_code = _post_webhook(url, payload, timeout)
        return WebhookResult(delivered=True, status_code=status_code)

    except NotificationError as e:
        return WebhookResult(
            delivered=False,
            status_code=getattr(e, "status_code", None),
            error=str(e),
        )

    except Exception as e:  # noqa: BLE001
        return WebhookResult(delivered=False, error=f"Unexpected error: {e}")


class WebhookHTTPError(NotificationError):
    """The webhook endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, text: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {text[:200]}")


def _post_webhook(url: str, payload: dict, timeout: float) -> int:
    """
    POST the payload and return the response status.

    Raises:
        NotificationError: On transport failure or a non-2xx response
    """
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.post(
                url,
                json=payload,
                headers={
                    "Content-Type": "application/json",
                    "User-Agent": WEBHOOK_USER_AGENT,
                    "X-Job-ID": str(payload.get("jobId", "")),
                    "X-Job-Status": str(payload.get("status", "")),
                },
            )

    except httpx.TimeoutException as e:
        raise NotificationError(f"Timeout after {timeout}s") from e

    except httpx.HTTPError as e:
        raise NotificationError(f"Request error: {e}") from e

    if not 200 <= response.status_code < 300:
        raise WebhookHTTPError(response.status_code, response.text)

    return response.status_code


def notify_execution(
    job: Job,
    record: ExecutionRecord,
    timeout: float = WEBHOOK_TIMEOUT_SECONDS,
) -> Optional[WebhookResult]:
    """
    Deliver the webhook for a recorded execution if the job has one configured.

    Returns:
        None when no webhook is configured, otherwise the delivery result
    """
    if not job.webhook_url:
        return None

    logger.info(
        f"Sending webhook for job {job.job_id} "
        f"(status={record.status.value}, url={job.webhook_url})"
    )

    result = send_webhook(job.webhook_url, build_webhook_payload(job, record), timeout=timeout)

    if result.delivered:
        logger.info(f"Webhook delivered for job {job.job_id} (status={result.status_code})")
    else:
        logger.warning(f"Webhook delivery failed for job {job.job_id}: {result.error}")

    return result
