"""
Mapping from scheduler exceptions to HTTP errors.

- ValidationError -> 400
- JobNotFoundError -> 404
- DependencyError (missing dependency, cycle, dependents) -> 409
- StoreUnavailableError -> 503
- anything else -> 500
"""

from fastapi import HTTPException, status

from cronhub.scheduler.errors import (
    DependencyCycleError,
    DependencyError,
    DependentJobsError,
    JobNotFoundError,
    MissingDependencyError,
    SchedulerError,
    StoreUnavailableError,
    ValidationError,
)


def to_http_exception(exc: SchedulerError) -> HTTPException:
    """Convert a scheduler exception into the HTTPException for it."""
    if isinstance(exc, ValidationError):
        detail = {"message": str(exc)}
        if exc.field:
            detail["field"] = exc.field
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

    if isinstance(exc, JobNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": f"Job not found: {exc.job_id}"},
        )

    if isinstance(exc, MissingDependencyError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "missing": exc.missing_ids},
        )

    if isinstance(exc, DependencyCycleError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "cycle": exc.path},
        )

    if isinstance(exc, DependentJobsError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "dependents": exc.dependent_ids},
        )

    if isinstance(exc, DependencyError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail={"message": str(exc)})

    if isinstance(exc, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"message": str(exc)},
        )

    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(exc)},
    )
