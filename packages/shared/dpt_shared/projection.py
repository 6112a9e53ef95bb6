"""
Status projection: derives each request's current status from its event log.

Status is never read from the request row. It is always the status of the
event with the greatest ``(timestamp, id)`` key, where ``id`` is the insertion
sequence and only matters for exact timestamp ties. Arrival order is ignored,
so a delayed event carrying an older timestamp does not become current.

Everything here is pure: no I/O, no mutation of the inputs. Functions accept
ORM rows or pydantic models alike (attribute access only).
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Sequence

from .schemas.common import DEFAULT_STATUS, RequestStatus
from .schemas.events import AuditLogEntry
from .schemas.requests import RequestRead, RequestView

FOLIO_PREFIX = "#REQ-"
UNASSIGNED_ADVISOR = "Sin Asignar"
UNKNOWN_FOLIO = "Desconocido"
UNKNOWN_USER = "Usuario"

_FOLIO_RE = re.compile(r"^(?:#?REQ-)?(\d+)$", re.IGNORECASE)


def format_folio(folio: Optional[int]) -> str:
    """Human-facing folio, e.g. ``#REQ-42``."""
    return f"{FOLIO_PREFIX}{folio}" if folio else "PENDING"


def parse_folio(ref: str | int) -> Optional[int]:
    """Parse ``42``, ``"42"``, ``"REQ-42"`` or ``"#REQ-42"`` into 42."""
    if isinstance(ref, int):
        return ref
    match = _FOLIO_RE.match(ref.strip())
    return int(match.group(1)) if match else None


def as_utc(ts: datetime) -> datetime:
    """Naive timestamps are taken to be UTC."""
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def event_sort_key(event: Any) -> tuple[datetime, int]:
    return (as_utc(event.timestamp), event.id or 0)


def current_status(events: Sequence[Any]) -> RequestStatus:
    """Current status of one request given its events, in any order."""
    if not events:
        return DEFAULT_STATUS
    latest = max(events, key=event_sort_key)
    return RequestStatus(latest.status)


def latest_status_map(events: Iterable[Any]) -> dict[uuid.UUID, RequestStatus]:
    """Map request id to current status in a single pass over all events."""
    latest: dict[uuid.UUID, Any] = {}
    for event in events:
        seen = latest.get(event.request_id)
        if seen is None or event_sort_key(event) > event_sort_key(seen):
            latest[event.request_id] = event
    return {rid: RequestStatus(ev.status) for rid, ev in latest.items()}


def user_names(users: Iterable[Any]) -> dict[uuid.UUID, str]:
    return {u.id: u.name for u in users}


def project_requests(
    requests: Iterable[Any],
    events: Iterable[Any],
    users: Iterable[Any] = (),
) -> list[RequestView]:
    """Attach the projected status and display fields to every request.

    The status map is built once, so this is O(requests + events).
    """
    status_map = latest_status_map(events)
    names = user_names(users)
    views = []
    for req in requests:
        read = RequestRead.model_validate(req, from_attributes=True)
        views.append(
            RequestView(
                **read.model_dump(),
                status=status_map.get(read.id, DEFAULT_STATUS),
                folio_display=format_folio(read.folio),
                advisor_name=names.get(read.advisor_id, UNASSIGNED_ADVISOR),
            )
        )
    return views


def describe_event(status: str, note: Optional[str]) -> str:
    status = RequestStatus(status)
    if status is RequestStatus.PENDING and not note:
        return "Solicitud creada"
    return f"Cambio de estado: {status.value}"


def build_audit_log(
    events: Iterable[Any],
    requests: Iterable[Any],
    users: Iterable[Any] = (),
) -> list[AuditLogEntry]:
    """Events joined with folio and user names, newest first."""
    folios: Mapping[uuid.UUID, str] = {r.id: format_folio(r.folio) for r in requests}
    names = user_names(users)
    ordered = sorted(events, key=event_sort_key, reverse=True)
    return [
        AuditLogEntry(
            event_id=ev.id,
            timestamp=ev.timestamp,
            folio=folios.get(ev.request_id, UNKNOWN_FOLIO),
            user=names.get(ev.user_id, UNKNOWN_USER),
            status=RequestStatus(ev.status),
            action=describe_event(ev.status, ev.note),
            request_id=ev.request_id,
        )
        for ev in ordered
    ]
