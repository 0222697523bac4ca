"""
API Dependencies package.

Cross-cutting concerns: API key gate and caller identity.
"""

from .auth import verify_api_key
from .identity import get_identity, require_admin

__all__ = ["verify_api_key", "get_identity", "require_admin"]
