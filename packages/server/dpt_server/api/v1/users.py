"""
User management endpoints.

GET    /api/v1/users             List users (any signed-in user; advisor lookup)
POST   /api/v1/users             Create a user (Dirección only)
GET    /api/v1/users/me          The current user
PATCH  /api/v1/users/{userId}    Update name, role or active flag (Dirección only)
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.auth import get_current_user, require_director
from dpt_server.core.database import get_session
from dpt_server.models.user import User
from dpt_server.services import users as user_service
from dpt_shared.schemas.users import UserCreate, UserRead, UserUpdate

router = APIRouter()


def _read(user: User) -> UserRead:
    return UserRead.model_validate(user, from_attributes=True)


@router.get("", response_model=List[UserRead], tags=["Users"])
async def list_users(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return [_read(u) for u in await user_service.list_users(session)]


@router.post("", response_model=UserRead, status_code=201, tags=["Users"])
async def add_user(
    body: UserCreate,
    user: User = Depends(require_director),
    session: AsyncSession = Depends(get_session),
):
    return _read(await user_service.create_user(session, body))


@router.get("/me", response_model=UserRead, tags=["Users"])
async def get_me(user: User = Depends(get_current_user)):
    return _read(user)


@router.patch("/{userId}", response_model=UserRead, tags=["Users"])
async def update_user(
    userId: uuid.UUID,
    body: UserUpdate,
    user: User = Depends(require_director),
    session: AsyncSession = Depends(get_session),
):
    target = await user_service.get_user_or_404(session, userId)
    return _read(await user_service.update_user(session, target, body))
