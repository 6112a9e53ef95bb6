"""
Event store: the append-only status history of every design request.

Events are only ever inserted. Nothing in this module updates or deletes a
row, and the ORM listeners on ``StatusEvent`` reject any attempt to do so.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import func
from sqlalchemy import select as sa_select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dpt_server.models.event import StatusEvent
from dpt_server.models.base import utcnow
from dpt_shared.schemas.common import RequestStatus

log = structlog.get_logger()

MAX_EVENTS_PER_FETCH = 20000


class EventAppendError(RuntimeError):
    """The event could not be durably written."""


async def append_event(
    session: AsyncSession,
    request_id: uuid.UUID,
    status: RequestStatus,
    user_id: Optional[uuid.UUID],
    note: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> StatusEvent:
    """Insert one status event and commit it.

    A failed write is rolled back and surfaced as ``EventAppendError``; on
    failure nothing is written.
    """
    event = StatusEvent(
        request_id=request_id,
        status=RequestStatus(status).value,
        user_id=user_id,
        note=note,
        timestamp=timestamp or utcnow(),
    )
    session.add(event)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("event.append_failed", request_id=str(request_id), status=event.status, error=str(exc))
        raise EventAppendError(str(exc)) from exc
    await session.refresh(event)
    log.info("event.appended", event_id=event.id, request_id=str(request_id), status=event.status)
    return event


async def list_events_for(session: AsyncSession, request_id: uuid.UUID) -> list[StatusEvent]:
    """All events of one request, oldest first."""
    result = await session.execute(
        select(StatusEvent)
        .where(StatusEvent.request_id == request_id)
        .order_by(StatusEvent.timestamp, StatusEvent.id)
    )
    return list(result.scalars().all())


async def count_events_for(session: AsyncSession, request_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(StatusEvent).where(StatusEvent.request_id == request_id)
    )
    return result.scalar_one()


async def list_events(
    session: AsyncSession,
    since: Optional[datetime] = None,
    limit: int = MAX_EVENTS_PER_FETCH,
) -> list[StatusEvent]:
    """Events across all requests in ascending order, as consumed by a refresh."""
    stmt = select(StatusEvent)
    if since is not None:
        stmt = stmt.where(StatusEvent.timestamp >= since)
    stmt = stmt.order_by(StatusEvent.timestamp, StatusEvent.id).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_latest_events(session: AsyncSession) -> list[StatusEvent]:
    """The current event of every request, one row each.

    Enough for projecting status server-side without reading the whole log.
    """
    ranked = (
        sa_select(
            StatusEvent.id,
            func.row_number()
            .over(
                partition_by=StatusEvent.request_id,
                order_by=(StatusEvent.timestamp.desc(), StatusEvent.id.desc()),
            )
            .label("position"),
        )
    ).subquery()
    stmt = (
        select(StatusEvent)
        .join(ranked, ranked.c.id == StatusEvent.id)
        .where(ranked.c.position == 1)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_recent_events(
    session: AsyncSession,
    limit: int = 50,
    before: Optional[datetime] = None,
) -> list[StatusEvent]:
    """Newest events first. ``before`` pages to events strictly older than it."""
    stmt = select(StatusEvent)
    if before is not None:
        stmt = stmt.where(StatusEvent.timestamp < before)
    stmt = stmt.order_by(StatusEvent.timestamp.desc(), StatusEvent.id.desc()).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
