"""
API Routers package.
"""

from . import jobs, admin, scheduler

__all__ = ["jobs", "admin", "scheduler"]
