"""
Job API schemas.

Request bodies are kept loose (payload is a plain object, kind a string):
the scheduler service owns validation so the same rules apply to every
caller.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, Field


# =============================================================================
# Job Schemas
# =============================================================================


class JobCreateRequest(BaseModel):
    """Request to create a new job."""

    name: str = Field(..., description="Human-readable job name")
    kind: str = Field(..., description="Job kind: 'http' or 'shell'")
    schedule: str = Field(
        ...,
        description="Cron expression (5 fields, or 6 with leading seconds)",
    )
    payload: dict = Field(
        ...,
        description="HTTP: {url, method, headers?, body?}; shell: {command}",
    )
    enabled: bool = Field(default=True, description="Install a trigger on create")
    retry_limit: int = Field(default=0, description="Extra attempts after a failure")
    webhook_url: Optional[str] = Field(
        default=None,
        description="URL that receives one POST per execution record",
    )
    depends_on: List[str] = Field(
        default_factory=list,
        description="Job ids in the same organization that must last have succeeded",
    )


class JobUpdateRequest(BaseModel):
    """
    Partial update. Only fields present in the request body are applied.
    """

    name: Optional[str] = Field(default=None, description="New name")
    kind: Optional[str] = Field(default=None, description="New kind")
    schedule: Optional[str] = Field(default=None, description="New cron expression")
    payload: Optional[dict] = Field(default=None, description="New payload")
    enabled: Optional[bool] = Field(default=None, description="New enabled flag")
    retry_limit: Optional[int] = Field(default=None, description="New retry limit")
    webhook_url: Optional[str] = Field(default=None, description="New webhook URL ('' clears it)")
    depends_on: Optional[List[str]] = Field(default=None, description="New dependency set")


class JobResponse(BaseModel):
    """Response representing a Job."""

    job_id: str = Field(..., description="Unique job identifier")
    owner_id: str = Field(..., description="User who created the job")
    org_id: str = Field(..., description="Owning organization")
    name: str = Field(..., description="Job name")
    kind: str = Field(..., description="Job kind (http/shell)")
    schedule: str = Field(..., description="Cron expression")
    payload: dict = Field(default_factory=dict, description="Kind-specific payload")
    enabled: bool = Field(..., description="Whether the job has a live trigger")
    retry_limit: int = Field(default=0, description="Extra attempts after a failure")
    webhook_url: Optional[str] = Field(default=None, description="Webhook URL")
    depends_on: List[str] = Field(default_factory=list, description="Dependency job ids")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")
    updated_at: str = Field(..., description="Last update timestamp (ISO format)")


class JobListResponse(BaseModel):
    """Response for job list endpoint."""

    jobs: List[JobResponse] = Field(default_factory=list)
    total: int = Field(..., description="Total number of jobs")


class JobDeleteResponse(BaseModel):
    """Response from job deletion."""

    job_id: str
    success: bool
    message: Optional[str] = None


# =============================================================================
# Execution Schemas
# =============================================================================


class ExecutionRecordResponse(BaseModel):
    """Response representing one ExecutionRecord."""

    record_id: str = Field(..., description="Unique record identifier")
    job_id: str = Field(..., description="Executed job")
    executed_at: str = Field(..., description="Completion timestamp (ISO format)")
    status: str = Field(..., description="success/failure")
    attempts: int = Field(..., description="Executor calls made")
    retry_count: int = Field(..., description="Attempt index of the final outcome")
    output: Optional[Any] = Field(default=None, description="Output on success")
    error: Optional[Any] = Field(default=None, description="Last error on failure")


class ExecutionRecordListResponse(BaseModel):
    """Response for execution history endpoint."""

    records: List[ExecutionRecordResponse] = Field(default_factory=list)
    total: int = Field(..., description="Number of records returned")


class JobRunResponse(BaseModel):
    """Response from a manual run."""

    job_id: str
    outcome: str = Field(..., description="executed/skipped/busy/missing")
    reason: Optional[str] = Field(default=None, description="Why the run did not execute")
    record: Optional[ExecutionRecordResponse] = Field(
        default=None,
        description="The recorded outcome when the job executed",
    )
