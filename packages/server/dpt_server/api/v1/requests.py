"""
Design request endpoints: CRUD, trash, transitions, files.

Status is never a field of the request body; it changes only through
POST /requests/{ref}/transition, which appends an event. Every response
carries the status projected from the event log.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.api.deps import get_dispatcher
from dpt_server.core.auth import get_current_user
from dpt_server.core.database import get_session
from dpt_server.models.request import DesignRequest
from dpt_server.models.user import User
from dpt_server.services import requests as repo
from dpt_server.services.event_store import list_events_for, list_latest_events
from dpt_server.services.notifications import NotificationDispatcher
from dpt_server.services.storage import ObjectStorage, get_storage
from dpt_server.services.transitions import create_request, transition_request
from dpt_server.services.users import list_users
from dpt_shared.projection import project_requests
from dpt_shared.schemas.common import RequestStatus
from dpt_shared.schemas.events import StatusEventRead
from dpt_shared.schemas.requests import (
    FinalDesign,
    RequestCreate,
    RequestUpdate,
    RequestView,
    TransitionRequest,
    TransitionResult,
)

router = APIRouter()


async def _view(session: AsyncSession, req: DesignRequest) -> RequestView:
    """Project a single request from its own events."""
    events = await list_events_for(session, req.id)
    users = [u for u in [await session.get(User, req.advisor_id)] if u] if req.advisor_id else []
    return project_requests([req], events, users)[0]


async def _views(session: AsyncSession, reqs: List[DesignRequest]) -> list[RequestView]:
    return project_requests(reqs, await list_latest_events(session), await list_users(session))


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("", response_model=List[RequestView])
async def list_requests_endpoint(
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    status: Optional[RequestStatus] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Active requests with their projected status, newest first."""
    reqs = await repo.list_active_requests(session, created_from, created_to)
    views = await _views(session, reqs)
    if status:
        views = [v for v in views if v.status is status]
    return views


@router.post("", response_model=RequestView, status_code=201)
async def create_request_endpoint(
    body: RequestCreate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Create a request; it starts as Pendiente."""
    req = await create_request(session, body, user, dispatcher)
    return await _view(session, req)


@router.get("/trash", response_model=List[RequestView])
async def list_trash_endpoint(
    limit: int = Query(repo.TRASH_LIMIT, ge=1, le=repo.TRASH_LIMIT),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Soft-deleted requests, most recently deleted first."""
    reqs = await repo.list_deleted_requests(session, limit)
    return await _views(session, reqs)


# ---------------------------------------------------------------------------
# Single request
# ---------------------------------------------------------------------------


@router.get("/{ref}", response_model=RequestView)
async def get_request_endpoint(
    ref: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    req = await repo.resolve_request(session, ref)
    return await _view(session, req)


@router.patch("/{ref}", response_model=RequestView)
async def update_request_endpoint(
    ref: str,
    body: RequestUpdate,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Edit request fields. Status is not editable here."""
    req = await repo.resolve_request(session, ref, include_deleted=False)
    req = await repo.update_request(session, req, body)
    return await _view(session, req)


@router.delete("/{ref}", response_model=RequestView)
async def delete_request_endpoint(
    ref: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    """Move a request to the trash and remove its stored files."""
    req = await repo.resolve_request(session, ref)
    req = await repo.soft_delete_request(session, req, user.id, storage)
    return await _view(session, req)


@router.post("/{ref}/restore", response_model=RequestView)
async def restore_request_endpoint(
    ref: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    req = await repo.resolve_request(session, ref)
    req = await repo.restore_request(session, req)
    return await _view(session, req)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


@router.post("/{ref}/transition", response_model=TransitionResult)
async def transition_request_endpoint(
    ref: str,
    body: TransitionRequest,
    response: Response,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Change status by appending an event.

    Answers 200 with ``applied=false`` when the request already has the
    target status, and 503 with ``ok=false`` when the event could not be
    written.
    """
    result = await transition_request(session, ref, body.to_status, user, dispatcher, note=body.note)
    if not result.ok:
        response.status_code = 503
    return result


@router.get("/{ref}/events", response_model=List[StatusEventRead])
async def list_request_events_endpoint(
    ref: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Status history of one request, oldest first."""
    req = await repo.resolve_request(session, ref)
    events = await list_events_for(session, req.id)
    return [StatusEventRead.model_validate(e, from_attributes=True) for e in events]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@router.delete("/{ref}/attachments/{attachment_id}", response_model=RequestView)
async def remove_attachment_endpoint(
    ref: str,
    attachment_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    req = await repo.resolve_request(session, ref, include_deleted=False)
    req = await repo.remove_attachment(session, req, attachment_id, storage)
    return await _view(session, req)


@router.put("/{ref}/final-design", response_model=RequestView)
async def set_final_design_endpoint(
    ref: str,
    body: FinalDesign,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    req = await repo.resolve_request(session, ref, include_deleted=False)
    req = await repo.set_final_design(session, req, body, storage)
    return await _view(session, req)


@router.delete("/{ref}/final-design", response_model=RequestView)
async def remove_final_design_endpoint(
    ref: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    storage: ObjectStorage = Depends(get_storage),
):
    req = await repo.resolve_request(session, ref, include_deleted=False)
    req = await repo.remove_final_design(session, req, storage)
    return await _view(session, req)
