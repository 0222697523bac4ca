"""
API Schemas package.

Pydantic models for request/response validation.
"""

from .jobs import (
    JobCreateRequest,
    JobUpdateRequest,
    JobResponse,
    JobListResponse,
    JobDeleteResponse,
    ExecutionRecordResponse,
    ExecutionRecordListResponse,
    JobRunResponse,
)
from .admin import (
    JobStatsResponse,
    SchedulerStatusResponse,
)

__all__ = [
    "JobCreateRequest",
    "JobUpdateRequest",
    "JobResponse",
    "JobListResponse",
    "JobDeleteResponse",
    "ExecutionRecordResponse",
    "ExecutionRecordListResponse",
    "JobRunResponse",
    "JobStatsResponse",
    "SchedulerStatusResponse",
]
