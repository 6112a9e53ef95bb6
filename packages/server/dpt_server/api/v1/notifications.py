"""
Inbox endpoints for the current user.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.auth import get_current_user
from dpt_server.core.database import get_session
from dpt_server.models.user import User
from dpt_server.services import notifications as inbox
from dpt_shared.schemas.notifications import NotificationRead, UnreadCount

router = APIRouter()


@router.get("", response_model=List[NotificationRead])
async def list_notifications_endpoint(
    limit: int = Query(inbox.INBOX_SIZE, ge=1, le=100),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    notes = await inbox.list_notifications(session, user.id, limit)
    return [NotificationRead.model_validate(n, from_attributes=True) for n in notes]


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return UnreadCount(unread=await inbox.unread_count(session, user.id))


@router.post("/read-all", response_model=UnreadCount)
async def mark_all_read_endpoint(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Mark every notification of the current user as read."""
    await inbox.mark_all_read(session, user.id)
    return UnreadCount(unread=0)


@router.post("/{notification_id}/read", response_model=NotificationRead)
async def mark_read_endpoint(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    note = await inbox.mark_read(session, user.id, notification_id)
    return NotificationRead.model_validate(note, from_attributes=True)
