"""Aggregate counts over projected request views."""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from .schemas.common import RequestStatus
from .schemas.requests import RequestView
from .schemas.stats import AdvisorStat, DashboardStats

# "In production" on the dashboard includes requests sent back for correction
PRODUCTION_STATUSES = (RequestStatus.IN_PRODUCTION, RequestStatus.CORRECTION)


def dashboard_stats(views: Iterable[RequestView]) -> DashboardStats:
    counts = Counter(v.status for v in views)
    return DashboardStats(
        total=sum(counts.values()),
        pending=counts[RequestStatus.PENDING],
        production=sum(counts[s] for s in PRODUCTION_STATUSES),
        completed=counts[RequestStatus.DELIVERED],
    )


def advisor_breakdown(views: Iterable[RequestView]) -> list[AdvisorStat]:
    """Requests per advisor, largest first, with share of the total in percent."""
    counts = Counter(v.advisor_name for v in views)
    total = sum(counts.values())
    return [
        AdvisorStat(name=name, count=count, percent=round(count * 100 / total, 1))
        for name, count in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
