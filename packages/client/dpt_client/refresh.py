"""
Refresh coordinator: owns the dashboard working set.

Refreshes are started by several independent causes (timer, filter change,
after a mutation) and can overlap. Each one takes a generation number when
it starts; when its fetches complete it publishes only if no newer refresh
was started in the meantime. Superseded refreshes are not cancelled, their
results are dropped.

A refresh publishes everything or nothing. If any fetch fails the previous
working set stays visible and ``last_error`` describes the failure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog

from dpt_shared.projection import as_utc, build_audit_log, project_requests

from .api import FetchError, TrackerAPI
from .working_set import WorkingSet

log = structlog.get_logger()

Listener = Callable[[WorkingSet], None]
Transform = Callable[[WorkingSet], WorkingSet]


@dataclass(frozen=True)
class RequestFilter:
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    # Audit log only shows events from here on; status always uses the full history
    audit_since: Optional[datetime] = None


class RefreshCoordinator:
    def __init__(self, api: TrackerAPI, request_filter: RequestFilter | None = None):
        self._api = api
        self.filter = request_filter or RequestFilter()
        self._latest_requested = 0
        self._published = WorkingSet()
        self._overlay: WorkingSet | None = None
        # Unconfirmed optimistic edits, replayed over the published set in order
        self._pending: dict[int, Transform] = {}
        self._next_token = 0
        self._listeners: list[Listener] = []
        self.last_error: str | None = None

    @property
    def latest_requested(self) -> int:
        return self._latest_requested

    @property
    def published(self) -> WorkingSet:
        """Last set confirmed by the server."""
        return self._published

    @property
    def current(self) -> WorkingSet:
        """What the dashboard shows: the optimistic copy if there is one."""
        return self._overlay if self._overlay is not None else self._published

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    async def set_filter(self, request_filter: RequestFilter) -> Optional[WorkingSet]:
        self.filter = request_filter
        return await self.refresh()

    async def refresh(self) -> Optional[WorkingSet]:
        """Fetch and publish a new working set.

        Returns the published set, or None when the results were stale or a
        fetch failed.
        """
        self._latest_requested += 1
        generation = self._latest_requested
        flt = self.filter

        try:
            requests, events, users = await asyncio.gather(
                self._api.fetch_requests(flt.created_from, flt.created_to),
                self._api.fetch_events(),
                self._api.fetch_users(),
            )
        except (FetchError, ValueError) as exc:
            if generation != self._latest_requested:
                log.debug("refresh.stale_failure_ignored", generation=generation)
                return None
            self.last_error = str(exc)
            log.error("refresh.failed", generation=generation, error=str(exc))
            return None

        if generation != self._latest_requested:
            log.debug("refresh.stale_discarded", generation=generation, latest=self._latest_requested)
            return None

        audit_events = events
        if flt.audit_since is not None:
            since = as_utc(flt.audit_since)
            audit_events = [e for e in events if as_utc(e.timestamp) >= since]

        working_set = WorkingSet(
            requests=tuple(project_requests(requests, events, users)),
            audit_log=tuple(build_audit_log(audit_events, requests, users)),
            users=tuple(users),
            generation=generation,
        )
        self._publish(working_set)
        return working_set

    def _publish(self, working_set: WorkingSet) -> None:
        self._published = working_set
        self._pending.clear()
        self._overlay = None
        self.last_error = None
        log.info(
            "refresh.published",
            generation=working_set.generation,
            requests=len(working_set.requests),
            audit_entries=len(working_set.audit_log),
        )
        for listener in self._listeners:
            try:
                listener(working_set)
            except Exception as exc:
                log.warning("refresh.listener_failed", error=str(exc))

    # --- Optimistic state ---

    def apply_optimistic(self, transform: Transform) -> int:
        """Show ``transform`` applied to the current view until the next publish.

        Returns a token for ``rollback``. Several edits can be pending at
        once; each is undone on its own.
        """
        self._next_token += 1
        token = self._next_token
        self._pending[token] = transform
        self._rebuild_overlay()
        return token

    def rollback(self, token: int) -> None:
        """Drop one optimistic edit. A publish since then already dropped it."""
        if self._pending.pop(token, None) is None:
            return
        self._rebuild_overlay()

    def _rebuild_overlay(self) -> None:
        if not self._pending:
            self._overlay = None
            return
        working_set = self._published
        for transform in self._pending.values():
            working_set = transform(working_set)
        self._overlay = working_set
