"""Status event and audit log schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, UUID4

from .common import RequestStatus


class StatusEventRead(BaseModel):
    id: int
    request_id: UUID4
    status: RequestStatus
    user_id: Optional[UUID4] = None
    timestamp: datetime
    note: Optional[str] = None


class AuditLogEntry(BaseModel):
    """One status event joined with folio and user display names."""
    event_id: int
    timestamp: datetime
    folio: str
    user: str
    status: RequestStatus
    action: str
    request_id: UUID4
