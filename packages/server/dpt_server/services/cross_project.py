"""
Cross-system notifier.

The collaborating dashboard exposes a notification endpoint. When a request
created by one of its users goes to correction or is delivered, we tell it so
it can notify the creator. This is always best-effort: failures are logged
and never propagate.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from dpt_server.core.config import get_settings
from dpt_shared.schemas.notifications import CrossProjectPayload

log = structlog.get_logger()


class CrossProjectNotifier:
    def __init__(
        self,
        url: str,
        service_key: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    async def notify(self, payload: CrossProjectPayload) -> bool:
        """POST the payload. Returns True on a 2xx answer, False otherwise."""
        if not self.url:
            log.warning("cross_project.not_configured", request_id=payload.request_id)
            return False
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    json=payload.model_dump(),
                    headers={"Authorization": f"Bearer {self.service_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            log.warning(
                "cross_project.rejected",
                request_id=payload.request_id,
                status_code=exc.response.status_code,
            )
            return False
        except httpx.HTTPError as exc:
            log.warning("cross_project.unreachable", request_id=payload.request_id, error=str(exc))
            return False
        log.info("cross_project.sent", request_id=payload.request_id, type=payload.type)
        return True


def get_notifier() -> CrossProjectNotifier:
    settings = get_settings()
    return CrossProjectNotifier(
        settings.cross_project_notify_url,
        settings.cross_project_service_key,
        timeout=settings.cross_project_timeout_seconds,
    )
