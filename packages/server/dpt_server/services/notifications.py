"""
Notification dispatcher and in-app inbox.

Dispatch runs after the fact it reports on is already committed, so every
step here is best-effort: a failure is logged and the next step still runs.
Notifications are not deduplicated; a repeated transition notifies again.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dpt_server.core.config import get_settings
from dpt_server.models.notification import Notification
from dpt_server.models.request import DesignRequest
from dpt_server.models.user import User
from dpt_server.services.cross_project import CrossProjectNotifier
from dpt_server.services.settings_store import UserSettingsStore
from dpt_shared.projection import format_folio
from dpt_shared.schemas.common import (
    PRODUCTION_ROLES,
    CrossProjectType,
    NotificationCategory,
    RequestStatus,
    UserStatus,
)
from dpt_shared.schemas.notifications import CrossProjectPayload, NotificationSettings

log = structlog.get_logger()

INBOX_SIZE = 20

CROSS_PROJECT_TYPES = {
    RequestStatus.CORRECTION: CrossProjectType.CORRECTION,
    RequestStatus.DELIVERED: CrossProjectType.READY,
}


@dataclass(frozen=True)
class TransitionContext:
    """Plain values of a committed transition, read before any later commit."""

    request_id: uuid.UUID
    folio: int
    product: str
    advisor_id: Optional[uuid.UUID]
    created_by_user_id: Optional[uuid.UUID]
    previous_status: RequestStatus
    new_status: RequestStatus
    actor_id: uuid.UUID

    @classmethod
    def capture(
        cls, request: DesignRequest, previous_status: RequestStatus, new_status: RequestStatus, actor: User
    ) -> "TransitionContext":
        return cls(
            request_id=request.id,
            folio=request.folio,
            product=request.product,
            advisor_id=request.advisor_id,
            created_by_user_id=request.created_by_user_id,
            previous_status=previous_status,
            new_status=new_status,
            actor_id=actor.id,
        )


class NotificationDispatcher:
    def __init__(
        self,
        session: AsyncSession,
        settings_store: UserSettingsStore,
        notifier: Optional[CrossProjectNotifier] = None,
    ):
        self.session = session
        self.settings_store = settings_store
        self.notifier = notifier

    async def dispatch_transition(self, ctx: TransitionContext) -> list[Notification]:
        """Side effects of a committed status change."""
        folio, request_id, advisor_id = ctx.folio, ctx.request_id, ctx.advisor_id
        creator_id, product = ctx.created_by_user_id, ctx.product
        created: list[Notification] = []
        toggles = await self._toggles(ctx.actor_id)

        if ctx.new_status is RequestStatus.DELIVERED and toggles.notify_advisor and advisor_id:
            delivered = await self._insert(
                [
                    Notification(
                        user_id=advisor_id,
                        request_id=request_id,
                        title="Solicitud entregada",
                        message=f"{format_folio(folio)} ha sido entregada.",
                        category=NotificationCategory.REQUEST_DELIVERED.value,
                    )
                ],
                folio=folio,
            )
            created.extend(delivered)

        kind = CROSS_PROJECT_TYPES.get(ctx.new_status)
        if kind is not None and creator_id:
            await self._notify_cross_project(folio, request_id, creator_id, product, kind)

        return created

    async def dispatch_created(self, request: DesignRequest, actor: User) -> list[Notification]:
        """Tell production staff about a new request."""
        toggles = await self._toggles(actor.id)
        if not toggles.notify_production:
            return []

        try:
            result = await self.session.execute(
                select(User.id).where(
                    User.role.in_([r.value for r in PRODUCTION_ROLES]),
                    User.status == UserStatus.ACTIVE.value,
                )
            )
            recipients = [row[0] for row in result.all()]
        except Exception as exc:
            log.warning("notify.recipients_failed", folio=request.folio, error=str(exc))
            return []

        message = f"{format_folio(request.folio)} — {request.client} — {request.product}"
        return await self._insert(
            [
                Notification(
                    user_id=user_id,
                    request_id=request.id,
                    title="Nueva solicitud",
                    message=message,
                    category=NotificationCategory.REQUEST_CREATED.value,
                )
                for user_id in recipients
            ],
            folio=request.folio,
        )

    async def _toggles(self, user_id: uuid.UUID) -> NotificationSettings:
        try:
            return await self.settings_store.get_notification_settings(user_id)
        except Exception as exc:
            log.warning("notify.settings_unavailable", user_id=str(user_id), error=str(exc))
            return NotificationSettings()

    async def _insert(self, notifications: list[Notification], *, folio: int) -> list[Notification]:
        if not notifications:
            return []
        self.session.add_all(notifications)
        try:
            await self.session.commit()
        except Exception as exc:
            await self.session.rollback()
            log.warning("notify.insert_failed", folio=folio, count=len(notifications), error=str(exc))
            return []
        log.info("notify.created", folio=folio, count=len(notifications))
        return notifications

    async def _notify_cross_project(
        self,
        folio: int,
        request_id: uuid.UUID,
        creator_id: uuid.UUID,
        product: str,
        kind: CrossProjectType,
    ) -> bool:
        if self.notifier is None:
            return False
        try:
            creator = await self.session.get(User, creator_id)
        except Exception as exc:
            log.warning("cross_project.creator_lookup_failed", folio=folio, error=str(exc))
            return False
        if creator is None or not creator.email:
            log.info("cross_project.no_creator", folio=folio)
            return False
        payload = CrossProjectPayload(
            user_email=creator.email,
            request_id=format_folio(folio),
            request_uuid=str(request_id),
            type=kind.value,
            product_name=product,
            dashboard_source=get_settings().dashboard_source,
        )
        try:
            return await self.notifier.notify(payload)
        except Exception as exc:
            log.warning("cross_project.failed", folio=folio, error=str(exc))
            return False


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


async def list_notifications(
    session: AsyncSession, user_id: uuid.UUID, limit: int = INBOX_SIZE
) -> list[Notification]:
    result = await session.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def unread_count(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
    )
    return result.scalar_one()


async def mark_read(session: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
    note = await session.get(Notification, notification_id)
    if not note or note.user_id != user_id:
        raise HTTPException(status_code=404, detail="Notification not found")
    note.is_read = True
    session.add(note)
    await session.commit()
    return note


async def mark_all_read(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    await session.commit()
    return result.rowcount or 0
