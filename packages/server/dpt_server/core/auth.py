"""
Authentication and authorization for the tracker API.

Supports:
- Email/password login with bcrypt hashes
- JWT sessions, sent as ``Authorization: Bearer`` or the ``dpt_session`` cookie
- Sign-in with a token issued by the collaborating dashboard
- Role checks for management endpoints
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.config import get_settings
from dpt_server.core.database import get_session
from dpt_server.models.user import User
from dpt_shared.schemas.common import Role, UserStatus

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "dpt_session"

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def verify_cross_project_token(token: str) -> dict:
    """Validate a sign-in token from the collaborating dashboard.

    The token is signed with a secret shared between both systems and must
    carry at least ``email``; ``name`` and ``userId`` are optional.
    """
    if not settings.cross_project_secret:
        raise HTTPException(status_code=503, detail="Cross-project sign-in is not configured")
    try:
        claims = jwt.decode(token, settings.cross_project_secret, algorithms=["HS256"])
    except jwt.PyJWTError as exc:
        log.warning("auth.cross_project_rejected", reason=str(exc))
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if not claims.get("email"):
        raise HTTPException(status_code=401, detail="Token has no email")
    return claims


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
) -> User:
    """Main authentication dependency. Tries the bearer header, then the cookie."""
    token = _bearer_token(authorization) or request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=403, detail="User is inactive")
    request.state.user = user
    return user


def require_role(*roles: Role) -> Callable:
    """Dependency factory: the current user must hold one of ``roles``."""
    allowed = {r.value for r in roles}

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail=f"Requires role: {', '.join(sorted(allowed))}")
        return user

    return dependency


require_director = require_role(Role.DIRECTOR)
