"""
Scheduler state management for API integration.

Provides singleton access to the SchedulerService instance.
Initialized and started during the FastAPI lifespan.

Usage:
    from ._scheduler_state import get_scheduler_service, init_scheduler_service

    # In lifespan:
    init_scheduler_service(settings).start()

    # In routers:
    service = get_scheduler_service()
"""

from typing import Optional

from cronhub.infra.config import Settings
from cronhub.scheduler.service import SchedulerService


# Global scheduler service instance
_scheduler_service: Optional[SchedulerService] = None


def init_scheduler_service(
    settings: Settings,
    **overrides,
) -> SchedulerService:
    """
    Initialize the scheduler service singleton.

    Does NOT start the scheduler; the caller starts it so a reconciliation
    failure surfaces at the call site.

    Args:
        settings: Runtime settings
        **overrides: Extra keyword arguments for SchedulerService.create
            (scheduler, handlers, notifier)

    Returns:
        Initialized SchedulerService
    """
    global _scheduler_service

    if _scheduler_service is not None:
        return _scheduler_service

    _scheduler_service = SchedulerService.create(
        db_path=settings.db_path,
        timezone=settings.timezone,
        http_timeout=settings.http_timeout,
        shell_timeout=settings.shell_timeout,
        webhook_timeout=settings.webhook_timeout,
        **overrides,
    )

    return _scheduler_service


def set_scheduler_service(service: Optional[SchedulerService]) -> None:
    """Replace the singleton (used by tests and embedding applications)."""
    global _scheduler_service
    _scheduler_service = service


def get_scheduler_service() -> SchedulerService:
    """
    Get the scheduler service singleton.

    Raises:
        RuntimeError: If scheduler service not initialized
    """
    if _scheduler_service is None:
        raise RuntimeError(
            "Scheduler service not initialized. "
            "Ensure init_scheduler_service() is called during startup."
        )

    return _scheduler_service


def shutdown_scheduler_service() -> None:
    """
    Shutdown the scheduler service.

    Called during FastAPI lifespan shutdown.
    Waits for in-flight executions to be recorded.
    """
    global _scheduler_service

    if _scheduler_service is not None:
        if _scheduler_service.is_running:
            _scheduler_service.stop()

        _scheduler_service = None
