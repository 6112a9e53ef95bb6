"""Per-user settings persisted in ``user_settings`` as JSON values."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.models.user_setting import UserSetting
from dpt_shared.schemas.notifications import NotificationSettings, SettingsUpdate

log = structlog.get_logger()

NOTIFY_PRODUCTION = "notify_production"
NOTIFY_ADVISOR = "notify_advisor"


class UserSettingsStore:
    """Key/value settings for one database session.

    Built per request and handed to whoever needs it; there is no
    process-wide cache.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: uuid.UUID, key: str, default: Any = None) -> Any:
        row = await self.session.get(UserSetting, (user_id, key))
        if row is None:
            return default
        return row.value

    async def set(self, user_id: uuid.UUID, key: str, value: Any) -> None:
        row = await self.session.get(UserSetting, (user_id, key))
        if row is None:
            row = UserSetting(user_id=user_id, key=key, value=value)
        else:
            row.value = value
        self.session.add(row)
        await self.session.commit()
        log.info("settings.updated", user_id=str(user_id), key=key)

    async def get_notification_settings(self, user_id: uuid.UUID) -> NotificationSettings:
        defaults = NotificationSettings()
        return NotificationSettings(
            notify_production=bool(await self.get(user_id, NOTIFY_PRODUCTION, defaults.notify_production)),
            notify_advisor=bool(await self.get(user_id, NOTIFY_ADVISOR, defaults.notify_advisor)),
        )

    async def update_notification_settings(
        self, user_id: uuid.UUID, update: SettingsUpdate
    ) -> NotificationSettings:
        for key, value in update.model_dump(exclude_none=True).items():
            await self.set(user_id, key, value)
        return await self.get_notification_settings(user_id)
