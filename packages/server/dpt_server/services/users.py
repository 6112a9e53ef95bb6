"""
User service: the people who create, produce and receive requests.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dpt_server.core.auth import hash_password
from dpt_server.models.user import User
from dpt_shared.schemas.common import Role, UserStatus
from dpt_shared.schemas.users import UserCreate, UserUpdate

log = structlog.get_logger()


async def list_users(session: AsyncSession) -> list[User]:
    result = await session.execute(select(User).order_by(User.name))
    return list(result.scalars().all())


async def get_user_or_404(session: AsyncSession, user_id: uuid.UUID) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    if await get_user_by_email(session, data.email):
        raise HTTPException(status_code=409, detail="Email already registered")
    user = User(
        email=data.email.lower(),
        name=data.name,
        role=data.role.value,
        status=UserStatus.ACTIVE.value,
        password_hash=hash_password(data.password) if data.password else None,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.added", user_id=str(user.id), role=user.role)
    return user


async def update_user(session: AsyncSession, user: User, data: UserUpdate) -> User:
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(user, field, getattr(value, "value", value))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.updated", user_id=str(user.id), fields=sorted(changes))
    return user


async def find_or_create_external_user(session: AsyncSession, email: str, name: Optional[str]) -> User:
    """User arriving from the collaborating dashboard; created as an advisor on first visit."""
    user = await get_user_by_email(session, email)
    if user:
        return user
    user = User(
        email=email.lower(),
        name=name or email.split("@", 1)[0],
        role=Role.ADVISOR.value,
        status=UserStatus.ACTIVE.value,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    log.info("user.provisioned", user_id=str(user.id), source="cross_project")
    return user
