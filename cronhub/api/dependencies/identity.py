"""
Caller identity dependency.

Credentials are verified upstream (gateway / identity provider), which
forwards the caller as trusted headers:
- X-User-Id: user id
- X-Org-Id: organization id
- X-User-Role: "user" (default) or "admin"

Requests without user or org are rejected with 401.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from cronhub.scheduler.entities import Identity, Role


async def get_identity(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    x_org_id: Optional[str] = Header(default=None, alias="X-Org-Id"),
    x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
) -> Identity:
    """Build the caller Identity from forwarded headers."""
    if not x_user_id or not x_org_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing identity. Provide X-User-Id and X-Org-Id headers.",
        )

    try:
        role = Role((x_user_role or Role.USER.value).lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        ) from None

    return Identity(user_id=x_user_id, org_id=x_org_id, role=role)


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    """Allow only admin callers."""
    if not identity.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return identity
