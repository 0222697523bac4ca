"""
cronhub - multi-tenant cron job orchestration service.
"""

__version__ = "1.0.0"
