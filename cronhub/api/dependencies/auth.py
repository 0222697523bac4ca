"""
API Key authentication dependency.

Optional authentication controlled by Settings.api_auth_enabled
(API_AUTH_ENABLED, from the environment or .env). When enabled, requires an
X-API-Key header matching Settings.api_key (API_KEY).

Settings are loaded once when the app is built and kept on app.state.
"""

from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from cronhub.infra.config import Settings

# Header definition
api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,
    description="API key for authentication (required when API_AUTH_ENABLED=true)",
)


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Verify API key from X-API-Key header.

    Behavior:
    - When api_auth_enabled is false: Always passes (returns None)
    - When api_auth_enabled is true: Requires valid API key

    Raises:
        HTTPException: 401 if auth enabled and key is missing/invalid
    """
    settings: Settings = request.app.state.settings

    if not settings.api_auth_enabled:
        return None

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key
