"""
Dashboard statistics, computed from projected statuses.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dpt_server.core.auth import get_current_user
from dpt_server.core.database import get_session
from dpt_server.models.user import User
from dpt_server.services.event_store import list_latest_events
from dpt_server.services.requests import list_active_requests
from dpt_server.services.users import list_users
from dpt_shared.projection import project_requests
from dpt_shared.schemas.stats import AdvisorStat, DashboardStats
from dpt_shared.stats import advisor_breakdown, dashboard_stats

router = APIRouter()


async def _active_views(session: AsyncSession, created_from, created_to):
    reqs = await list_active_requests(session, created_from, created_to)
    return project_requests(reqs, await list_latest_events(session), await list_users(session))


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard_stats_endpoint(
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return dashboard_stats(await _active_views(session, created_from, created_to))


@router.get("/advisors", response_model=List[AdvisorStat])
async def advisor_stats_endpoint(
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return advisor_breakdown(await _active_views(session, created_from, created_to))
