"""FastAPI identity dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nftdrop.auth.jwt import verify_token
from nftdrop.config import get_settings
from nftdrop.database import get_session
from nftdrop.db.models import User

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller: user id plus the address the request came from."""

    user_id: str
    source_ip: str | None = None


def client_ip(request: Request) -> str | None:
    """Source address of the request, honouring X-Forwarded-For when trusted."""
    if get_settings().trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
) -> Identity:
    """Verify the bearer token and return the caller's identity. Raises 401."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    return Identity(user_id=str(payload["sub"]), source_ip=client_ip(request))


async def get_current_user(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> User:
    """Resolve the identity to a User row. Raises 401 if the user is gone."""
    result = await db.execute(select(User).where(User.id == identity.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user
