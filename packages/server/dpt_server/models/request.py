"""Design request model. Current status is not stored here; see status_events."""

from datetime import datetime
from typing import List, Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class DesignRequest(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "design_requests"

    folio: int = Field(nullable=False, unique=True, index=True)
    client: str = Field(nullable=False)
    product: str = Field(nullable=False)
    type: str = Field(nullable=False, default="Nueva solicitud")  # Nueva solicitud | Corrección/Añadido | Ajuste
    priority: str = Field(nullable=False, default="Media")  # Alta | Media | Baja | Urgente
    description: str = Field(default="", nullable=False)
    brief: str = Field(default="", nullable=False)
    downloadable_links: List[str] = Field(default_factory=list, sa_type=sa.JSON)
    attachments: List[dict] = Field(default_factory=list, sa_type=sa.JSON)
    final_design: Optional[dict] = Field(default=None, sa_type=sa.JSON)

    advisor_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    created_by_user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")

    completed_at: Optional[datetime] = Field(default=None, index=True, sa_type=sa.DateTime(timezone=True))

    # Soft delete
    is_deleted: bool = Field(default=False, nullable=False, index=True)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    deleted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
