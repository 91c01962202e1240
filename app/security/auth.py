# ==== AUTHENTICATION AND AUTHORIZATION ==== #

"""
Authentication and authorization for Procurement Hub.

Callers present the access token issued by the identity provider (Supabase
Auth). The token is verified with the shared JWT secret, its subject is
mapped onto a row of ``users`` and the resulting ``AuthUser`` drives every
role gate in the route handlers.
"""

import datetime as dt
from typing import Callable, Optional

import jwt
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.errors import AccessDeniedError, AuthenticationError
from app.business.statuses import UserRole, UserStatus
from app.schemas.auth import AuthUser
from app.settings import settings
from app.storage.db import get_db_session
from app.storage.models import User


# ==== TOKEN HANDLING ==== #

def _extract_bearer(authorization: Optional[str]) -> str:
    # --► AUTHORIZATION HEADER VALIDATION
    if not authorization:
        raise AuthenticationError("Authorization header required")

    # --► BEARER TOKEN FORMAT VALIDATION
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization header format")

    return authorization.split(" ", 1)[1].strip()


def decode_access_token(token: str) -> dict:
    """
    Verify an identity provider access token.

    Args:
        token (str): Encoded JWT

    Returns:
        dict: Verified claims

    Raises:
        AuthenticationError: If the signature, audience or expiry is invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def create_access_token(
    supabase_user_id: str,
    email: str | None = None,
    expires_in_hours: int = 24
) -> str:
    """Create a token shaped like the identity provider's access tokens.

    Args:
        supabase_user_id: Identity provider user id (``sub`` claim)
        email: Optional email claim
        expires_in_hours: Token expiration time in hours

    Returns:
        JWT token string
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = {
        "sub": supabase_user_id,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "iat": now,
        "exp": now + dt.timedelta(hours=expires_in_hours),
    }
    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


# ==== USER RESOLUTION ==== #

def to_auth_user(user: User) -> AuthUser:
    """Project a loaded ``User`` row onto the request principal."""
    return AuthUser(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        supabase_user_id=user.supabase_user_id,
        member_id=user.member_id,
        partner_id=user.partner_id,
        member_name=user.member.name if user.member else None,
        partner_name=user.partner.name if user.partner else None,
    )


async def resolve_user(db: AsyncSession, token: str) -> AuthUser:
    """Map a verified token onto an active application user."""
    claims = decode_access_token(token)

    subject = claims.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")

    query = (
        select(User)
        .where(User.supabase_user_id == subject)
        .options(selectinload(User.member), selectinload(User.partner))
    )
    user = (await db.execute(query)).scalar_one_or_none()

    if user is None:
        raise AuthenticationError("User is not registered")
    if user.status != UserStatus.ACTIVE.value:
        raise AuthenticationError("User is inactive")

    return to_auth_user(user)


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session)
) -> AuthUser:
    """
    FastAPI dependency returning the authenticated caller.

    Raises:
        AuthenticationError: If the token is missing, invalid or unmapped
    """
    return await resolve_user(db, _extract_bearer(authorization))


async def get_optional_user(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db_session)
) -> Optional[AuthUser]:
    """Authenticated caller, or ``None`` when no token was sent."""
    if not authorization:
        return None
    return await resolve_user(db, _extract_bearer(authorization))


def require_roles(*roles: UserRole) -> Callable:
    """Build a dependency that admits only the given roles.

    Args:
        *roles: Roles allowed to call the endpoint

    Returns:
        Dependency returning the authenticated ``AuthUser``
    """
    allowed = {role.value for role in roles}

    async def _dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in allowed:
            raise AccessDeniedError("Insufficient privileges")
        return user

    return _dependency


require_admin = require_roles(UserRole.ADMIN)
