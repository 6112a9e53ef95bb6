"""Per-user key/value settings (notification toggles)."""

import uuid
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class UserSetting(SQLModel, table=True):
    __tablename__ = "user_settings"

    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    key: str = Field(primary_key=True)
    value: Any = Field(default=None, sa_type=sa.JSON)
