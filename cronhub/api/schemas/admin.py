"""
Admin and scheduler status API schemas.
"""

from typing import Dict, List
from pydantic import BaseModel, Field


class JobStatsResponse(BaseModel):
    """Job statistics across all organizations."""

    total_jobs: int = Field(..., description="Number of jobs")
    enabled_jobs: int = Field(..., description="Jobs with enabled = true")
    disabled_jobs: int = Field(..., description="Jobs with enabled = false")
    jobs_by_org: Dict[str, int] = Field(default_factory=dict, description="Job count per organization")
    jobs_run_last_24h: int = Field(..., description="Distinct jobs executed in the last 24 hours")


class SchedulerStatusResponse(BaseModel):
    """Trigger registry and pipeline status."""

    is_running: bool = Field(..., description="Whether triggers are firing")
    trigger_count: int = Field(..., description="Number of live triggers")
    in_flight: List[str] = Field(default_factory=list, description="Job ids currently executing")
    timezone: str = Field(..., description="Timezone cron expressions are evaluated in")
