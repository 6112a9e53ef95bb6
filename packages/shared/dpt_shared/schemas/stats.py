"""Dashboard statistics schemas."""

from __future__ import annotations

from pydantic import BaseModel


class DashboardStats(BaseModel):
    total: int = 0
    pending: int = 0
    production: int = 0
    completed: int = 0


class AdvisorStat(BaseModel):
    name: str
    count: int
    percent: float
