"""In-app notification and notification settings schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, UUID4


class NotificationRead(BaseModel):
    id: UUID4
    user_id: UUID4
    request_id: Optional[UUID4] = None
    title: str
    message: str
    category: str
    is_read: bool = False
    created_at: datetime


class UnreadCount(BaseModel):
    unread: int


class NotificationSettings(BaseModel):
    """Per-user toggles read by the notification dispatcher."""
    notify_production: bool = True
    notify_advisor: bool = True


class SettingsUpdate(BaseModel):
    notify_production: Optional[bool] = None
    notify_advisor: Optional[bool] = None


class CrossProjectPayload(BaseModel):
    """Body sent to the collaborating system's notification endpoint."""
    user_email: str
    request_id: str
    request_uuid: str
    type: str
    product_name: str
    dashboard_source: str
