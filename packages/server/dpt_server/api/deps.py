"""Shared FastAPI dependencies for the service collaborators."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.database import get_session
from dpt_server.services.cross_project import CrossProjectNotifier, get_notifier
from dpt_server.services.notifications import NotificationDispatcher
from dpt_server.services.settings_store import UserSettingsStore


def get_settings_store(session: AsyncSession = Depends(get_session)) -> UserSettingsStore:
    return UserSettingsStore(session)


def get_dispatcher(
    session: AsyncSession = Depends(get_session),
    settings_store: UserSettingsStore = Depends(get_settings_store),
    notifier: CrossProjectNotifier = Depends(get_notifier),
) -> NotificationDispatcher:
    return NotificationDispatcher(session, settings_store, notifier)
