"""
Shared fixtures for dashboard client tests.

The API is replaced by in-memory fakes; no server is started.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from dpt_client.api import FetchError, MutationError
from dpt_shared.schemas.common import RequestStatus, Role, UserStatus
from dpt_shared.schemas.events import StatusEventRead
from dpt_shared.schemas.requests import RequestRead, RequestView, TransitionResult
from dpt_shared.schemas.users import UserRead

T0 = datetime(2026, 4, 1, 10, 0, tzinfo=timezone.utc)


class Builder:
    """Builds schema objects with sensible defaults."""

    def __init__(self):
        self._event_id = 0
        self.user = UserRead(
            id=uuid.uuid4(),
            email="pablo@example.com",
            name="Pablo",
            role=Role.PRODUCER,
            status=UserStatus.ACTIVE,
            created_at=T0,
        )

    def request(self, folio: int) -> RequestRead:
        return RequestRead(
            id=uuid.uuid4(),
            folio=folio,
            client=f"Cliente {folio}",
            product="Banner",
            type="Nueva solicitud",
            priority="Media",
            created_at=T0,
        )

    def event(self, req: RequestRead, status: RequestStatus, seconds: float = 0) -> StatusEventRead:
        self._event_id += 1
        return StatusEventRead(
            id=self._event_id,
            request_id=req.id,
            status=status,
            user_id=self.user.id,
            timestamp=T0 + timedelta(seconds=seconds),
        )


class InMemoryAPI:
    """A tracker API backed by lists; transitions append events like the server."""

    def __init__(self, builder: Builder):
        self.builder = builder
        self.requests: list[RequestRead] = []
        self.events: list[StatusEventRead] = []
        self.deleted: set[uuid.UUID] = set()
        self.transition_calls: list[tuple[str, RequestStatus]] = []
        self.fail_fetch = False
        self.fail_transition = False
        self.fail_delete = False
        self.transition_delay = 0.0
        self.during_transition = None
        self.clock = 100.0

    def add(self, folio: int, status: RequestStatus = RequestStatus.PENDING) -> RequestRead:
        req = self.builder.request(folio)
        self.requests.append(req)
        self.events.append(self.builder.event(req, RequestStatus.PENDING, 0))
        if status is not RequestStatus.PENDING:
            self.events.append(self.builder.event(req, status, 1))
        return req

    async def fetch_requests(self, created_from=None, created_to=None):
        if self.fail_fetch:
            raise FetchError("GET /api/v1/requests failed: 503", 503)
        return [r for r in self.requests if r.id not in self.deleted]

    async def fetch_events(self, since=None):
        return list(self.events)

    async def fetch_users(self):
        return [self.builder.user]

    async def transition(self, ref, status, note=None) -> TransitionResult:
        self.transition_calls.append((ref, status))
        if self.during_transition:
            self.during_transition()
        if self.transition_delay:
            await asyncio.sleep(self.transition_delay)
        if self.fail_transition:
            return TransitionResult(ok=False, message="backend unavailable")
        req = next(r for r in self.requests if str(r.id) == ref)
        self.clock += 1
        event = self.builder.event(req, status, self.clock)
        self.events.append(event)
        return TransitionResult(ok=True, applied=True, request_id=req.id, folio=req.folio, status=status, event_id=event.id)

    async def soft_delete(self, ref) -> RequestView:
        if self.fail_delete:
            raise MutationError("DELETE failed", 503)
        req = next(r for r in self.requests if str(r.id) == ref)
        self.deleted.add(req.id)
        return RequestView(**req.model_dump(), status=RequestStatus.PENDING, folio_display=f"#REQ-{req.folio}")

    async def restore(self, ref) -> RequestView:
        req = next(r for r in self.requests if str(r.id) == ref)
        if req.id not in self.deleted:
            raise MutationError("Request is not deleted", 409)
        self.deleted.discard(req.id)
        return RequestView(**req.model_dump(), status=RequestStatus.PENDING, folio_display=f"#REQ-{req.folio}")


@pytest.fixture
def builder():
    return Builder()


@pytest.fixture
def api(builder):
    return InMemoryAPI(builder)


