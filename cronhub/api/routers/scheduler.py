"""
Scheduler router for scheduler status.

The scheduler is a system-level control plane, not a sub-resource of Job,
so it lives under /scheduler/* and never conflicts with /jobs/{job_id}.
"""

from fastapi import APIRouter, Depends

from ..schemas.admin import SchedulerStatusResponse
from ..dependencies.identity import get_identity
from .._scheduler_state import get_scheduler_service


router = APIRouter(dependencies=[Depends(get_identity)])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status():
    """
    Get scheduler status.

    Returns:
    - is_running: Whether triggers are firing
    - trigger_count: Number of live triggers
    - in_flight: Job ids currently executing
    - timezone: Timezone used for cron evaluation
    """
    service = get_scheduler_service()
    return SchedulerStatusResponse(**service.get_scheduler_status())
