"""Status event model (append-only audit trail, source of truth for status)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import utcnow


class EventImmutableError(RuntimeError):
    """Raised when a flush would update or delete a recorded status event."""


class StatusEvent(SQLModel, table=True):
    __tablename__ = "status_events"

    # Autoincrement id doubles as insertion sequence (tie-break for equal timestamps)
    id: Optional[int] = Field(default=None, primary_key=True)
    request_id: uuid.UUID = Field(foreign_key="design_requests.id", nullable=False, index=True)
    status: str = Field(nullable=False)
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    timestamp: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_type=sa.DateTime(timezone=True),
    )
    note: Optional[str] = None


@sa.event.listens_for(StatusEvent, "before_update")
def _reject_update(mapper, connection, target):
    raise EventImmutableError(f"Status event {target.id} is immutable; UPDATE is not permitted")


@sa.event.listens_for(StatusEvent, "before_delete")
def _reject_delete(mapper, connection, target):
    raise EventImmutableError(f"Status event {target.id} is immutable; DELETE is not permitted")
