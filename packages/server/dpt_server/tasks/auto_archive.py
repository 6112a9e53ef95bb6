"""
ARQ background task: archive delivered requests past the retention window.

A request whose ``completed_at`` is older than ``archive_retention_days`` is
soft-deleted with no acting user. Its event log is left as it is.
Scheduled to run daily.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import structlog

from dpt_server.core.config import get_settings
from dpt_server.core.database import get_session_context
from dpt_server.models.base import utcnow
from dpt_server.services.requests import list_archivable, soft_delete_request
from dpt_server.services.storage import get_storage

log = structlog.get_logger()


async def archive_completed_requests(ctx: dict, now: Optional[datetime] = None) -> list[int]:
    """Soft-delete every request completed before the retention cutoff.

    Returns the folios archived.
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=get_settings().archive_retention_days)
    storage = ctx.get("storage") or get_storage()
    archived: list[int] = []

    async with get_session_context() as session:
        for req in await list_archivable(session, cutoff):
            await soft_delete_request(session, req, None, storage, now=now)
            archived.append(req.folio)

    if archived:
        log.info("auto_archive.batch_archived", count=len(archived), folios=archived)
    return archived


# ARQ worker settings
class WorkerSettings:
    """ARQ worker configuration."""

    functions = [archive_completed_requests]
    cron_jobs = [
        # Run once a day
        {
            "coroutine": archive_completed_requests,
            "hour": 3,
            "minute": 0,
        },
    ]
