"""
Dashboard session: user actions with optimistic feedback.

A status change is shown immediately on a copy of the working set. If the
server does not confirm it within the timeout, the copy is dropped and the
previous view comes back. On success the next refresh replaces the copy
with server data.
"""

from __future__ import annotations

import asyncio

import structlog

from dpt_shared.projection import format_folio
from dpt_shared.schemas.common import RequestStatus
from dpt_shared.schemas.requests import TransitionResult

from .api import MutationError, TrackerAPI
from .refresh import RefreshCoordinator

log = structlog.get_logger()

DEFAULT_TRANSITION_TIMEOUT = 15.0


class DashboardSession:
    def __init__(
        self,
        api: TrackerAPI,
        coordinator: RefreshCoordinator,
        transition_timeout_seconds: float = DEFAULT_TRANSITION_TIMEOUT,
    ):
        self._api = api
        self._coordinator = coordinator
        self._timeout = transition_timeout_seconds

    async def change_status(self, ref: str | int, status: RequestStatus, note: str | None = None) -> TransitionResult:
        status = RequestStatus(status)
        view = self._coordinator.current.find(ref)
        if view is None:
            return TransitionResult(ok=False, message=f"Solicitud {ref} no encontrada")
        if view.status is status:
            return TransitionResult(
                ok=True, applied=False, request_id=view.id, folio=view.folio, status=status
            )

        token = self._coordinator.apply_optimistic(lambda ws: ws.with_status(view.id, status))
        try:
            result = await asyncio.wait_for(self._api.transition(str(view.id), status, note), self._timeout)
        except asyncio.TimeoutError:
            # The event may still land server-side; the next refresh will show it
            result = TransitionResult(
                ok=False,
                message=f"Sin respuesta al actualizar {format_folio(view.folio)}",
                request_id=view.id,
                folio=view.folio,
            )

        if not result.ok:
            self._coordinator.rollback(token)
            log.warning("session.transition_reverted", folio=view.folio, status=status.value, reason=result.message)
            return result

        log.info("session.transition_confirmed", folio=view.folio, status=status.value, applied=result.applied)
        await self._coordinator.refresh()
        return result

    async def soft_delete(self, ref: str | int) -> bool:
        view = self._coordinator.current.find(ref)
        if view is None:
            return False

        token = self._coordinator.apply_optimistic(lambda ws: ws.without_request(view.id))
        try:
            await asyncio.wait_for(self._api.soft_delete(str(view.id)), self._timeout)
        except (MutationError, asyncio.TimeoutError) as exc:
            self._coordinator.rollback(token)
            log.warning("session.delete_reverted", folio=view.folio, error=str(exc) or "timeout")
            return False

        await self._coordinator.refresh()
        return True

    async def restore(self, ref: str) -> bool:
        """Bring a request back from the trash. It shows up on the next refresh."""
        try:
            restored = await asyncio.wait_for(self._api.restore(ref), self._timeout)
        except (MutationError, asyncio.TimeoutError) as exc:
            log.warning("session.restore_failed", ref=ref, error=str(exc) or "timeout")
            return False

        log.info("session.restored", folio=restored.folio)
        await self._coordinator.refresh()
        return True
