"""
Authentication endpoints.

- Email/password login
- Sign-in with a token from the collaborating dashboard
- Logout
"""

from __future__ import annotations

import secrets

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.auth import (
    SESSION_COOKIE,
    create_jwt,
    verify_cross_project_token,
    verify_password,
)
from dpt_server.core.config import get_settings
from dpt_server.core.database import get_session
from dpt_server.core.middleware import CSRF_COOKIE
from dpt_server.models.user import User
from dpt_server.services.users import find_or_create_external_user, get_user_by_email
from dpt_shared.schemas.common import UserStatus
from dpt_shared.schemas.users import CrossProjectLogin, LoginRequest, SessionResponse, UserRead

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,  # allow non-HTTPS in dev
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _start_session(response: Response, user: User) -> SessionResponse:
    if user.status != UserStatus.ACTIVE.value:
        raise HTTPException(status_code=403, detail="User is inactive")
    token = create_jwt(user.id, user.role)
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(key=CSRF_COOKIE, value=secrets.token_urlsafe(32), **{**COOKIE_KWARGS, "httponly": False})
    return SessionResponse(user=UserRead.model_validate(user, from_attributes=True), token=token)


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    user = await get_user_by_email(session, body.email)
    if not user or not user.password_hash:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    result = _start_session(response, user)
    log.info("auth.login", user_id=str(user.id))
    return result


@router.post("/cross-project", response_model=SessionResponse)
async def cross_project_login(
    body: CrossProjectLogin,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Sign in a user handed over by the collaborating dashboard."""
    claims = verify_cross_project_token(body.token)
    user = await find_or_create_external_user(session, claims["email"], claims.get("name"))
    result = _start_session(response, user)
    log.info("auth.cross_project_login", user_id=str(user.id), external_id=claims.get("userId"))
    return result


@router.post("/logout", status_code=204)
async def logout(response: Response):
    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
