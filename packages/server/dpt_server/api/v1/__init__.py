"""
API v1 Router

All resource endpoints live under /api/v1. Authentication is mounted
separately at /auth.
"""

from fastapi import APIRouter
from . import events, notifications, requests, settings, stats, users

router = APIRouter()

router.include_router(requests.router, prefix="/requests", tags=["Requests"])
router.include_router(events.router, prefix="/events", tags=["Events"])
router.include_router(events.audit_router, prefix="/audit-log", tags=["Events"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(settings.router, prefix="/settings", tags=["Settings"])
router.include_router(users.router, prefix="/users")
router.include_router(stats.router, prefix="/stats", tags=["Stats"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/requests",
            "/events",
            "/audit-log",
            "/notifications",
            "/settings",
            "/users",
            "/stats",
        ],
    }
