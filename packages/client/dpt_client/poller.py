"""
Dashboard poller: keeps the working set and inbox fresh until shutdown.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import datetime, timedelta, timezone

import structlog

from .api import APIError, TrackerAPI
from .config import DashboardConfig
from .refresh import RefreshCoordinator, RequestFilter
from .working_set import WorkingSet

log = structlog.get_logger()

SHUTDOWN_TIMEOUT = 15.0


class DashboardPoller:
    """
    Logs in, then refreshes the working set and polls the inbox on their
    own intervals until a shutdown signal arrives.
    """

    def __init__(self, config: DashboardConfig, api: TrackerAPI | None = None):
        self._config = config
        self._api = api or TrackerAPI(
            config.server.url,
            verify_tls=config.server.verify_tls,
            request_timeout=config.server.request_timeout_seconds,
        )
        self.coordinator = RefreshCoordinator(self._api, self._initial_filter())
        self.coordinator.subscribe(self._log_summary)
        self._shutdown_event = asyncio.Event()
        self._last_unread: int | None = None

    def _initial_filter(self) -> RequestFilter:
        days = self._config.refresh.window_days
        if days is None:
            return RequestFilter()
        return RequestFilter(created_from=datetime.now(timezone.utc) - timedelta(days=days))

    async def start(self) -> None:
        await self._api.open()
        creds = self._config.credentials
        if creds.cross_project_token:
            await self._api.login_cross_project(creds.cross_project_token)
        elif creds.email and creds.password:
            await self._api.login(creds.email, creds.password)
        else:
            raise APIError(f"No credentials: set {creds.password_env} or {creds.cross_project_token_env}")
        log.info("dashboard.started", server=self._config.server.url)

    async def stop(self) -> None:
        await self._api.close()
        log.info("dashboard.stopped")

    def shutdown(self) -> None:
        self._shutdown_event.set()

    async def run_forever(self) -> None:
        """Run until shutdown signal."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.shutdown)

        tasks: list[asyncio.Task] = []
        try:
            await self.start()
            tasks = [
                asyncio.create_task(self._every(self._config.refresh.interval_seconds, self.coordinator.refresh)),
                asyncio.create_task(self._every(self._config.refresh.inbox_interval_seconds, self.poll_inbox)),
            ]
            await self._shutdown_event.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await asyncio.wait_for(self.stop(), timeout=SHUTDOWN_TIMEOUT)

    async def _every(self, interval: float, action) -> None:
        while not self._shutdown_event.is_set():
            try:
                await action()
            except Exception as exc:
                log.error("poller.action_failed", action=getattr(action, "__name__", str(action)), error=str(exc))
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def poll_inbox(self) -> int | None:
        try:
            unread = await self._api.unread_count()
        except APIError as exc:
            log.warning("inbox.poll_failed", error=str(exc))
            return None
        if unread != self._last_unread:
            log.info("inbox.unread", unread=unread)
            self._last_unread = unread
        return unread

    def _log_summary(self, working_set: WorkingSet) -> None:
        stats = working_set.stats
        log.info(
            "dashboard.summary",
            total=stats.total,
            pending=stats.pending,
            production=stats.production,
            completed=stats.completed,
        )
