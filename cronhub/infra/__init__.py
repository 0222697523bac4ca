"""
Infrastructure module - configuration, logging, and webhook delivery.
"""

from .config import Settings
from .logging_config import setup_logging

__all__ = [
    "Settings",
    "setup_logging",
]
