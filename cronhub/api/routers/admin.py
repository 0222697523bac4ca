"""
Admin router: cross-organization views.

Requires X-User-Role: admin (403 otherwise).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..schemas.admin import JobStatsResponse
from ..schemas.jobs import JobListResponse
from ..dependencies.identity import require_admin
from .._scheduler_state import get_scheduler_service
from .jobs import _job_to_response


router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/jobs", response_model=JobListResponse)
async def list_all_jobs(
    enabled: Optional[bool] = Query(default=None, description="Filter by enabled flag"),
):
    """List jobs across all organizations."""
    service = get_scheduler_service()

    jobs = service.list_all_jobs(enabled=enabled)

    return JobListResponse(
        jobs=[_job_to_response(job) for job in jobs],
        total=len(jobs),
    )


@router.get("/job-stats", response_model=JobStatsResponse)
async def get_job_stats():
    """Job totals, enabled/disabled split, per-org counts and 24h activity."""
    service = get_scheduler_service()
    return JobStatsResponse(**service.get_job_stats())
