"""
Request authentication: verify the identity provider's bearer token and build
the request context once per request.
"""
from __future__ import annotations

from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from services.access import RequestContext
from services.tenants import load_context

security = HTTPBearer()


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token issued by the identity provider."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db, scope="function"),
) -> RequestContext:
    """Any authenticated identity, registered or not."""
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing user identifier (sub)",
        )
    return await load_context(db, str(user_id), payload.get("email"))


async def get_member_context(ctx: RequestContext = Depends(get_context)) -> RequestContext:
    """A registered broker or vendor who has finished first-login setup."""
    if ctx.role is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not registered")
    if ctx.must_change_password:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Password change required before continuing",
        )
    return ctx
