"""
Jobs router for job lifecycle APIs.

Every endpoint is scoped to the caller's organization (X-Org-Id). A job in
another organization answers 404, exactly like a job that does not exist.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from cronhub.scheduler.entities import ExecutionRecord, Identity, Job
from cronhub.scheduler.errors import SchedulerError

from ..schemas.jobs import (
    ExecutionRecordListResponse,
    ExecutionRecordResponse,
    JobCreateRequest,
    JobDeleteResponse,
    JobListResponse,
    JobResponse,
    JobRunResponse,
    JobUpdateRequest,
)
from ..dependencies.identity import get_identity
from ..errors import to_http_exception
from .._scheduler_state import get_scheduler_service


router = APIRouter()


def _job_to_response(job: Job) -> JobResponse:
    """Convert scheduler Job entity to API response."""
    return JobResponse(
        job_id=job.job_id,
        owner_id=job.owner_id,
        org_id=job.org_id,
        name=job.name,
        kind=job.kind.value,
        schedule=job.schedule,
        payload=job.payload.to_dict(),
        enabled=job.enabled,
        retry_limit=job.retry_limit,
        webhook_url=job.webhook_url,
        depends_on=list(job.depends_on),
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _record_to_response(record: ExecutionRecord) -> ExecutionRecordResponse:
    """Convert ExecutionRecord entity to API response."""
    return ExecutionRecordResponse(
        record_id=record.record_id,
        job_id=record.job_id,
        executed_at=record.executed_at,
        status=record.status.value,
        attempts=record.attempts,
        retry_count=record.retry_count,
        output=record.output,
        error=record.error,
    )


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(request: JobCreateRequest, identity: Identity = Depends(get_identity)):
    """
    Create a job in the caller's organization.

    An enabled job gets a live trigger immediately.
    """
    service = get_scheduler_service()

    try:
        job = service.create_job(
            identity,
            name=request.name,
            kind=request.kind,
            schedule=request.schedule,
            payload=request.payload,
            enabled=request.enabled,
            retry_limit=request.retry_limit,
            webhook_url=request.webhook_url,
            depends_on=request.depends_on,
        )
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return _job_to_response(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(identity: Identity = Depends(get_identity)):
    """List jobs in the caller's organization, oldest first."""
    service = get_scheduler_service()

    jobs = service.list_jobs(identity)

    return JobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        total=len(jobs),
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, identity: Identity = Depends(get_identity)):
    """Get a job by ID."""
    service = get_scheduler_service()

    try:
        job = service.get_job(identity, job_id)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return _job_to_response(job)


@router.patch("/{job_id}", response_model=JobResponse)
async def update_job(
    job_id: str,
    request: JobUpdateRequest,
    identity: Identity = Depends(get_identity),
):
    """
    Partially update a job.

    Only fields present in the body change. The trigger is reinstalled
    with the effective schedule if the job is enabled afterwards.
    """
    service = get_scheduler_service()

    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail={"message": "No update fields provided"})

    try:
        job = service.update_job(identity, job_id, changes)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return _job_to_response(job)


@router.delete("/{job_id}", response_model=JobDeleteResponse)
async def delete_job(job_id: str, identity: Identity = Depends(get_identity)):
    """
    Delete a job and stop its trigger.

    Refused with 409 while other jobs depend on it.
    """
    service = get_scheduler_service()

    try:
        service.delete_job(identity, job_id)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return JobDeleteResponse(
        job_id=job_id,
        success=True,
        message="Job deleted successfully",
    )


@router.post("/{job_id}/toggle", response_model=JobResponse)
async def toggle_job(job_id: str, identity: Identity = Depends(get_identity)):
    """Flip the enabled flag; the trigger follows it."""
    service = get_scheduler_service()

    try:
        job = service.toggle_job(identity, job_id)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return _job_to_response(job)


@router.post("/{job_id}/run", response_model=JobRunResponse)
def run_job(job_id: str, identity: Identity = Depends(get_identity)):
    """
    Run a job now through the normal pipeline.

    Blocks until the run is recorded. Runs in the threadpool (plain def)
    because the job itself does blocking I/O.
    """
    service = get_scheduler_service()

    try:
        result = service.run_job_now(identity, job_id)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return JobRunResponse(
        job_id=result.job_id,
        outcome=result.outcome.value,
        reason=result.reason,
        record=_record_to_response(result.record) if result.record else None,
    )


@router.get("/{job_id}/executions", response_model=ExecutionRecordListResponse)
async def list_executions(
    job_id: str,
    limit: int = Query(default=50, ge=1, le=500, description="Maximum records to return"),
    identity: Identity = Depends(get_identity),
):
    """Execution history for a job, newest first."""
    service = get_scheduler_service()

    try:
        records = service.list_execution_records(identity, job_id, limit=limit)
    except SchedulerError as e:
        raise to_http_exception(e) from e

    return ExecutionRecordListResponse(
        records=[_record_to_response(record) for record in records],
        total=len(records),
    )
