"""
Request repository: persistence of design request records.

Handles:
- Lookup by id or folio (``42``, ``#REQ-42``)
- Folio assignment and field edits (never status, which lives in the event log)
- Soft delete to the trash and restore
- Attachment and final design references, with best-effort object cleanup
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Iterable, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dpt_server.core.config import get_settings
from dpt_server.models.base import utcnow
from dpt_server.models.request import DesignRequest
from dpt_server.services.storage import ObjectStorage, collect_paths
from dpt_shared.projection import format_folio, parse_folio
from dpt_shared.schemas.requests import FinalDesign, RequestCreate, RequestUpdate

log = structlog.get_logger()

TRASH_LIMIT = 500


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


async def get_request_or_404(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    include_deleted: bool = True,
) -> DesignRequest:
    req = await session.get(DesignRequest, request_id)
    if not req or (req.is_deleted and not include_deleted):
        raise HTTPException(status_code=404, detail="Request not found")
    return req


async def resolve_request(
    session: AsyncSession,
    ref: str,
    *,
    include_deleted: bool = True,
) -> DesignRequest:
    """Find a request by UUID, integer folio or display folio."""
    try:
        request_id = uuid.UUID(str(ref))
    except ValueError:
        request_id = None
    if request_id is not None:
        return await get_request_or_404(session, request_id, include_deleted=include_deleted)

    folio = parse_folio(ref)
    if folio is None:
        raise HTTPException(status_code=404, detail="Request not found")
    result = await session.execute(select(DesignRequest).where(DesignRequest.folio == folio))
    req = result.scalar_one_or_none()
    if not req or (req.is_deleted and not include_deleted):
        raise HTTPException(status_code=404, detail="Request not found")
    return req


async def next_folio(session: AsyncSession) -> int:
    """Folios are never reused: rows are never hard-deleted, so max + 1 is fresh."""
    result = await session.execute(select(func.max(DesignRequest.folio)))
    return (result.scalar_one_or_none() or 0) + 1


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------


async def insert_request(
    session: AsyncSession,
    data: RequestCreate,
    *,
    created_at: Optional[datetime] = None,
) -> DesignRequest:
    """Add a new request row and flush it. The caller commits."""
    req = DesignRequest(
        folio=await next_folio(session),
        client=data.client,
        product=data.product,
        type=data.type.value,
        priority=data.priority.value,
        description=data.description,
        brief=data.brief,
        downloadable_links=list(data.downloadable_links),
        attachments=[a.model_dump(mode="json") for a in data.attachments],
        advisor_id=data.advisor_id,
        created_by_user_id=data.created_by_user_id,
    )
    if created_at is not None:
        req.created_at = created_at
    session.add(req)
    await session.flush()
    return req


async def update_request(
    session: AsyncSession,
    req: DesignRequest,
    data: RequestUpdate,
) -> DesignRequest:
    """Apply a partial field edit. Status is not editable here."""
    changes = data.model_dump(exclude_unset=True)
    if "attachments" in changes and data.attachments is not None:
        changes["attachments"] = [a.model_dump(mode="json") for a in data.attachments]
    for field, value in changes.items():
        if field in ("type", "priority") and value is not None:
            value = getattr(value, "value", value)
        if value is None and field != "advisor_id":
            continue
        setattr(req, field, value)
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.updated", folio=req.folio, fields=sorted(changes))
    return req


async def stamp_completed(session: AsyncSession, req: DesignRequest, when: datetime) -> DesignRequest:
    req.completed_at = when
    session.add(req)
    await session.commit()
    return req


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


async def list_active_requests(
    session: AsyncSession,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
) -> list[DesignRequest]:
    """Non-deleted requests, newest first, optionally within a creation window."""
    stmt = select(DesignRequest).where(DesignRequest.is_deleted == False)  # noqa: E712
    if created_from is not None:
        stmt = stmt.where(DesignRequest.created_at >= created_from)
    if created_to is not None:
        stmt = stmt.where(DesignRequest.created_at <= created_to)
    result = await session.execute(stmt.order_by(DesignRequest.created_at.desc()))
    return list(result.scalars().all())


async def list_deleted_requests(session: AsyncSession, limit: int = TRASH_LIMIT) -> list[DesignRequest]:
    """The trash, most recently deleted first."""
    result = await session.execute(
        select(DesignRequest)
        .where(DesignRequest.is_deleted == True)  # noqa: E712
        .order_by(DesignRequest.deleted_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_archivable(session: AsyncSession, cutoff: datetime) -> list[DesignRequest]:
    """Non-deleted requests completed before ``cutoff``."""
    result = await session.execute(
        select(DesignRequest).where(
            DesignRequest.is_deleted == False,  # noqa: E712
            DesignRequest.completed_at.is_not(None),
            DesignRequest.completed_at < cutoff,
        )
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Soft delete / restore
# ---------------------------------------------------------------------------


def _stored_urls(req: DesignRequest) -> list[str]:
    # Download links point at material the request does not own
    urls = [a.get("url", "") for a in req.attachments or []]
    if req.final_design:
        urls.append(req.final_design.get("url", ""))
    return [u for u in urls if u]


async def discard_objects(storage: Optional[ObjectStorage], urls: Iterable[str], *, folio: int) -> None:
    """Delete stored payloads. Failures are logged, never raised."""
    if storage is None:
        return
    paths = collect_paths(urls, get_settings().storage_bucket)
    if not paths:
        return
    try:
        await storage.delete(paths)
    except Exception as exc:
        log.warning("storage.delete_failed", folio=folio, paths=paths, error=str(exc))


async def soft_delete_request(
    session: AsyncSession,
    req: DesignRequest,
    deleted_by: Optional[uuid.UUID],
    storage: Optional[ObjectStorage] = None,
    *,
    now: Optional[datetime] = None,
) -> DesignRequest:
    """Move a request to the trash.

    File references are cleared and the deletion markers set in one commit;
    the referenced payloads are then removed from storage best-effort. The
    event log is left untouched, so a restored request keeps its status.
    """
    if req.is_deleted:
        raise HTTPException(status_code=409, detail=f"Request {format_folio(req.folio)} is already deleted")

    urls = _stored_urls(req)
    req.is_deleted = True
    req.deleted_at = now or utcnow()
    req.deleted_by = deleted_by
    req.attachments = []
    req.final_design = None
    req.downloadable_links = []
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.soft_deleted", folio=req.folio, deleted_by=str(deleted_by) if deleted_by else None)

    await discard_objects(storage, urls, folio=req.folio)
    return req


async def restore_request(session: AsyncSession, req: DesignRequest) -> DesignRequest:
    """Bring a request back from the trash. Its files are not recovered."""
    if not req.is_deleted:
        raise HTTPException(status_code=409, detail=f"Request {format_folio(req.folio)} is not deleted")
    req.is_deleted = False
    req.deleted_at = None
    req.deleted_by = None
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.restored", folio=req.folio)
    return req


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


async def remove_attachment(
    session: AsyncSession,
    req: DesignRequest,
    attachment_id: str,
    storage: Optional[ObjectStorage] = None,
) -> DesignRequest:
    attachments = list(req.attachments or [])
    removed = [a for a in attachments if a.get("id") == attachment_id]
    if not removed:
        raise HTTPException(status_code=404, detail="Attachment not found")
    req.attachments = [a for a in attachments if a.get("id") != attachment_id]
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.attachment_removed", folio=req.folio, attachment_id=attachment_id)
    await discard_objects(storage, [a.get("url", "") for a in removed], folio=req.folio)
    return req


async def set_final_design(
    session: AsyncSession,
    req: DesignRequest,
    design: FinalDesign,
    storage: Optional[ObjectStorage] = None,
) -> DesignRequest:
    """Attach (or replace) the delivered artifact."""
    previous = req.final_design
    req.final_design = design.model_dump(mode="json")
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.final_design_set", folio=req.folio, name=design.name)
    if previous and previous.get("url") and previous.get("url") != design.url:
        await discard_objects(storage, [previous["url"]], folio=req.folio)
    return req


async def remove_final_design(
    session: AsyncSession,
    req: DesignRequest,
    storage: Optional[ObjectStorage] = None,
) -> DesignRequest:
    previous = req.final_design
    if not previous:
        raise HTTPException(status_code=404, detail="Request has no final design")
    req.final_design = None
    session.add(req)
    await session.commit()
    await session.refresh(req)
    log.info("request.final_design_removed", folio=req.folio)
    await discard_objects(storage, [previous.get("url", "")], folio=req.folio)
    return req
