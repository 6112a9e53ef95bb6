"""User management schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, UUID4

from .common import Role, UserStatus


class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=200)
    role: Role = Role.ADVISOR
    password: Optional[str] = Field(default=None, min_length=8)


class UserUpdate(BaseModel):
    """Update a user's role, display name, or active flag."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[Role] = None
    status: Optional[UserStatus] = None


class UserRead(BaseModel):
    id: UUID4
    email: str
    name: str
    role: Role
    status: UserStatus
    avatar_url: Optional[str] = None
    created_at: datetime


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CrossProjectLogin(BaseModel):
    token: str


class SessionResponse(BaseModel):
    user: UserRead
    token: str
