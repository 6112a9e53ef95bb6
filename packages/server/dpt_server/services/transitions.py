"""
Status transition service.

A transition is one appended event. Once that event is committed the
transition has happened: stamping ``completed_at`` and dispatching
notifications afterwards are best-effort and never undo it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.models.base import utcnow
from dpt_server.models.event import StatusEvent
from dpt_server.models.request import DesignRequest
from dpt_server.models.user import User
from dpt_server.services.event_store import EventAppendError, append_event, list_events_for
from dpt_server.services.notifications import NotificationDispatcher, TransitionContext
from dpt_server.services.requests import insert_request, resolve_request, stamp_completed
from dpt_shared.projection import current_status, format_folio
from dpt_shared.schemas.common import DEFAULT_STATUS, TERMINAL_STATUS, RequestStatus
from dpt_shared.schemas.requests import RequestCreate, TransitionResult

log = structlog.get_logger()


async def transition_request(
    session: AsyncSession,
    ref: str,
    new_status: RequestStatus,
    actor: User,
    dispatcher: NotificationDispatcher,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Move a request to ``new_status``.

    Raises 404 for an unknown (or trashed) request. Moving to the status the
    request already has is accepted without writing anything. A failed
    append is reported as ``ok=False`` so the caller can revert.
    """
    req = await resolve_request(session, ref, include_deleted=False)
    new_status = RequestStatus(new_status)
    folio, request_id, actor_id = req.folio, req.id, actor.id

    previous = current_status(await list_events_for(session, request_id))
    if previous is new_status:
        log.info("transition.noop", folio=folio, status=new_status.value)
        return TransitionResult(
            ok=True,
            applied=False,
            message=f"{format_folio(folio)} ya está en {new_status.value}",
            request_id=request_id,
            folio=folio,
            status=new_status,
        )

    when = now or utcnow()
    try:
        event = await append_event(session, request_id, new_status, actor_id, note=note, timestamp=when)
    except EventAppendError as exc:
        log.error("transition.failed", folio=folio, status=new_status.value, error=str(exc))
        return TransitionResult(
            ok=False,
            message=f"No se pudo actualizar el estado de {format_folio(folio)}",
            request_id=request_id,
            folio=folio,
            status=previous,
        )
    event_id = event.id
    context = TransitionContext.capture(req, previous, new_status, actor)

    if new_status is TERMINAL_STATUS:
        try:
            await stamp_completed(session, req, when)
        except Exception as exc:
            await session.rollback()
            log.warning("transition.stamp_failed", folio=folio, error=str(exc))

    try:
        await dispatcher.dispatch_transition(context)
    except Exception as exc:
        log.warning("transition.dispatch_failed", folio=folio, status=new_status.value, error=str(exc))

    log.info(
        "transition.applied",
        folio=folio,
        from_status=previous.value,
        to_status=new_status.value,
        event_id=event_id,
        user_id=str(actor_id),
    )
    return TransitionResult(
        ok=True,
        applied=True,
        message=f"{format_folio(folio)} actualizado a {new_status.value}",
        request_id=request_id,
        folio=folio,
        status=new_status,
        event_id=event_id,
    )


async def create_request(
    session: AsyncSession,
    data: RequestCreate,
    actor: User,
    dispatcher: NotificationDispatcher,
    now: Optional[datetime] = None,
) -> DesignRequest:
    """Insert a request together with its initial ``Pendiente`` event.

    Both rows are written in one commit, so a request never exists without
    its first event. Creation notifications follow, best-effort.
    """
    if data.advisor_id and not await session.get(User, data.advisor_id):
        raise HTTPException(status_code=422, detail="Advisor not found")

    when = now or utcnow()
    req = await insert_request(session, data, created_at=when)
    session.add(
        StatusEvent(
            request_id=req.id,
            status=DEFAULT_STATUS.value,
            user_id=actor.id,
            timestamp=when,
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="Folio already taken, retry the request")
    await session.refresh(req)
    log.info("request.created", folio=req.folio, client=req.client, product=req.product)

    try:
        await dispatcher.dispatch_created(req, actor)
    except Exception as exc:
        log.warning("request.dispatch_failed", folio=req.folio, error=str(exc))
    await session.refresh(req)
    return req
