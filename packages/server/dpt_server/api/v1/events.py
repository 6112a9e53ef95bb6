"""
Event log endpoints.

The log is read-only over HTTP; events are created only by transitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dpt_server.core.auth import get_current_user
from dpt_server.core.database import get_session
from dpt_server.models.request import DesignRequest
from dpt_server.models.user import User
from dpt_server.services.event_store import MAX_EVENTS_PER_FETCH, list_events, list_recent_events
from dpt_server.services.users import list_users
from dpt_shared.projection import build_audit_log
from dpt_shared.schemas.events import AuditLogEntry, StatusEventRead

router = APIRouter()
audit_router = APIRouter()


@router.get("", response_model=List[StatusEventRead])
async def list_events_endpoint(
    since: Optional[datetime] = None,
    limit: int = Query(MAX_EVENTS_PER_FETCH, ge=1, le=MAX_EVENTS_PER_FETCH),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """All events in ascending order, optionally from ``since`` on."""
    events = await list_events(session, since, limit)
    return [StatusEventRead.model_validate(e, from_attributes=True) for e in events]


@router.get("/recent", response_model=List[StatusEventRead])
async def list_recent_events_endpoint(
    limit: int = Query(50, ge=1, le=500),
    before: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Newest events first; pass the oldest timestamp seen as ``before`` to page."""
    events = await list_recent_events(session, limit, before)
    return [StatusEventRead.model_validate(e, from_attributes=True) for e in events]


@audit_router.get("", response_model=List[AuditLogEntry])
async def audit_log_endpoint(
    limit: int = Query(200, ge=1, le=2000),
    before: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Events joined with folio and user names, newest first."""
    events = await list_recent_events(session, limit, before)
    request_ids = {e.request_id for e in events}
    requests = []
    if request_ids:
        result = await session.execute(select(DesignRequest).where(DesignRequest.id.in_(request_ids)))
        requests = list(result.scalars().all())
    return build_audit_log(events, requests, await list_users(session))
