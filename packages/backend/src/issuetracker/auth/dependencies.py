"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current user identity from the request.

- get_current_user: Bearer JWT required (401 otherwise)
- require_admin: the user must exist, be ACTIVE and have role ADMIN
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from issuetracker.auth.jwt import TokenError, verify_token
from issuetracker.db.engine import get_db
from issuetracker.db.models import User


class CurrentIdentity:
    """The authenticated user making the request.

    Learn: Only the id is carried — it is the same opaque identity the
    real-time registry routes on. Handlers load the User row when they
    need more than that.
    """

    def __init__(self, user_id: uuid.UUID):
        self.user_id = user_id

    def __repr__(self) -> str:
        return f"CurrentIdentity(user_id={self.user_id})"


def identity_from_token(token: str) -> CurrentIdentity:
    """Decode a JWT into an identity. Raises TokenError."""
    payload = verify_token(token)
    try:
        return CurrentIdentity(user_id=uuid.UUID(payload["sub"]))
    except ValueError:
        raise TokenError("Token subject is not a user id")


async def get_current_user(
    authorization: Optional[str] = Header(None),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no valid token)."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return identity_from_token(authorization[7:])
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    identity: CurrentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> CurrentIdentity:
    """Admin-only guard."""
    user = await db.get(User, identity.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.status != "ACTIVE":
        raise HTTPException(status_code=403, detail="Account is not active")
    if user.role != "ADMIN":
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
