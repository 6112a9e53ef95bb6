"""
Immutable dashboard snapshot.

A ``WorkingSet`` is never changed in place. Optimistic edits produce a new
snapshot; the refresh coordinator replaces snapshots wholesale.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Optional

from dpt_shared.projection import parse_folio
from dpt_shared.schemas.common import RequestStatus
from dpt_shared.schemas.events import AuditLogEntry
from dpt_shared.schemas.requests import RequestView
from dpt_shared.schemas.stats import DashboardStats
from dpt_shared.schemas.users import UserRead
from dpt_shared.stats import dashboard_stats


@dataclass(frozen=True)
class WorkingSet:
    requests: tuple[RequestView, ...] = ()
    audit_log: tuple[AuditLogEntry, ...] = ()
    users: tuple[UserRead, ...] = ()
    generation: int = 0

    def find(self, ref: str | int | uuid.UUID) -> Optional[RequestView]:
        """Look a request up by id, folio or display folio."""
        try:
            request_id = ref if isinstance(ref, uuid.UUID) else uuid.UUID(str(ref))
        except ValueError:
            request_id = None
        folio = None if request_id else parse_folio(ref)
        for view in self.requests:
            if view.id == request_id or (folio is not None and view.folio == folio):
                return view
        return None

    def with_status(self, request_id: uuid.UUID, status: RequestStatus) -> "WorkingSet":
        views = tuple(
            v.model_copy(update={"status": status}) if v.id == request_id else v
            for v in self.requests
        )
        return replace(self, requests=views)

    def without_request(self, request_id: uuid.UUID) -> "WorkingSet":
        return replace(self, requests=tuple(v for v in self.requests if v.id != request_id))

    @property
    def stats(self) -> DashboardStats:
        return dashboard_stats(self.requests)
