"""In-app notification model (inbox)."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, UUIDMixin


class Notification(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "notifications"

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    request_id: Optional[uuid.UUID] = Field(default=None, foreign_key="design_requests.id")
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)
    category: str = Field(nullable=False)  # solicitud_creada | solicitud_entregada
    is_read: bool = Field(default=False, nullable=False, index=True)
