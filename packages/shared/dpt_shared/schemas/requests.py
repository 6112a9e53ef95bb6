"""Design request schemas shared by the server API and the dashboard client."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic import UUID4

from .common import RequestPriority, RequestStatus, RequestType


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class Attachment(BaseModel):
    """Reference material uploaded to object storage (images, inspiration)."""
    id: str
    name: str
    url: str
    size: int = 0
    type: str = ""
    uploaded_at: datetime


class FinalDesign(BaseModel):
    """The single delivered artifact of a request."""
    id: str
    name: str
    url: str
    size: int = 0
    type: str = ""
    uploaded_at: datetime


# ---------------------------------------------------------------------------
# Request CRUD
# ---------------------------------------------------------------------------

class RequestBase(BaseModel):
    client: str = Field(min_length=1, max_length=200)
    product: str = Field(min_length=1, max_length=200)
    type: RequestType = RequestType.NEW
    priority: RequestPriority = RequestPriority.MEDIUM
    description: str = ""
    brief: str = ""
    downloadable_links: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)


class RequestCreate(RequestBase):
    advisor_id: Optional[UUID4] = None
    # Creator in the collaborating system, when the request arrived from there
    created_by_user_id: Optional[UUID4] = None


class RequestUpdate(BaseModel):
    client: Optional[str] = Field(default=None, min_length=1, max_length=200)
    product: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[RequestType] = None
    priority: Optional[RequestPriority] = None
    advisor_id: Optional[UUID4] = None
    description: Optional[str] = None
    brief: Optional[str] = None
    downloadable_links: Optional[List[str]] = None
    attachments: Optional[List[Attachment]] = None


class RequestRead(BaseModel):
    """Persisted request fields. Status is deliberately absent: it is projected."""
    id: UUID4
    folio: int
    client: str
    product: str
    type: str
    priority: str
    description: str = ""
    brief: str = ""
    downloadable_links: List[str] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    final_design: Optional[FinalDesign] = None
    advisor_id: Optional[UUID4] = None
    created_by_user_id: Optional[UUID4] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[UUID4] = None


class RequestView(RequestRead):
    """A request as the dashboard shows it, with its projected current status."""
    status: RequestStatus
    folio_display: str
    advisor_name: str = "Sin Asignar"


# ---------------------------------------------------------------------------
# Transition
# ---------------------------------------------------------------------------

class TransitionRequest(BaseModel):
    """Request body for POST /requests/{ref}/transition."""
    to_status: RequestStatus
    note: Optional[str] = None


class TransitionResult(BaseModel):
    """Outcome of a status change.

    ``ok`` tells the caller whether to keep or revert its optimistic state.
    ``applied`` is False when the request was already at the target status
    and nothing was written.
    """
    ok: bool
    message: str = ""
    request_id: Optional[UUID4] = None
    folio: Optional[int] = None
    status: Optional[RequestStatus] = None
    event_id: Optional[int] = None
    applied: bool = False
