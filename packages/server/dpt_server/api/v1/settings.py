"""
Notification settings of the current user.
"""

from fastapi import APIRouter, Depends

from dpt_server.api.deps import get_settings_store
from dpt_server.core.auth import get_current_user
from dpt_server.models.user import User
from dpt_server.services.settings_store import UserSettingsStore
from dpt_shared.schemas.notifications import NotificationSettings, SettingsUpdate

router = APIRouter()


@router.get("/notifications", response_model=NotificationSettings)
async def get_notification_settings_endpoint(
    user: User = Depends(get_current_user),
    store: UserSettingsStore = Depends(get_settings_store),
):
    return await store.get_notification_settings(user.id)


@router.put("/notifications", response_model=NotificationSettings)
async def update_notification_settings_endpoint(
    body: SettingsUpdate,
    user: User = Depends(get_current_user),
    store: UserSettingsStore = Depends(get_settings_store),
):
    return await store.update_notification_settings(user.id, body)
