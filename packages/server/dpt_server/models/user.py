"""User model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class User(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "users"

    email: str = Field(nullable=False, unique=True, index=True)
    name: str = Field(nullable=False)
    role: str = Field(nullable=False, default="Asesor")  # Productor | Dirección | Diseñador | Asesor
    status: str = Field(nullable=False, default="Activo")  # Activo | Inactivo
    avatar_url: Optional[str] = None
    password_hash: Optional[str] = Field(default=None)  # bcrypt; NULL for cross-project users
