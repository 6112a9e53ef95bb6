"""
Tracker API client.

Handles:
- Session login (password or cross-project token)
- Reads with retry on transient failures
- Status transitions that never raise and are never retried
- Trash, restore and inbox calls
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any, Optional

import httpx
import structlog

from dpt_shared.schemas.common import RequestStatus
from dpt_shared.schemas.events import StatusEventRead
from dpt_shared.schemas.notifications import NotificationRead
from dpt_shared.schemas.requests import RequestRead, RequestView, TransitionResult
from dpt_shared.schemas.users import SessionResponse, UserRead

log = structlog.get_logger()

# Retry configuration (reads only)
MAX_RETRIES = 3
RETRY_BASE_SECONDS = 0.5


class APIError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FetchError(APIError):
    """A read could not be completed."""


class MutationError(APIError):
    """A write was rejected or did not reach the server."""


class TrackerAPI:
    """
    Async client for the tracker REST API.

    Reads retry connection problems and 5xx answers with exponential backoff;
    4xx answers fail immediately. Writes are sent once.
    """

    def __init__(
        self,
        base_url: str,
        verify_tls: bool = True,
        request_timeout: float = 30,
        *,
        retry_base_seconds: float = RETRY_BASE_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._retry_base_seconds = retry_base_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._token: str | None = None
        self.user: UserRead | None = None

    async def open(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TrackerAPI":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"} if self._token else {}

    # --- Session ---

    async def login(self, email: str, password: str) -> UserRead:
        return await self._start_session("/auth/login", {"email": email, "password": password})

    async def login_cross_project(self, token: str) -> UserRead:
        return await self._start_session("/auth/cross-project", {"token": token})

    async def _start_session(self, path: str, body: dict) -> UserRead:
        assert self._client
        try:
            resp = await self._client.post(path, json=body)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise APIError(f"Login rejected: {exc.response.status_code}", exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            raise APIError(f"Login failed: {exc}") from exc
        session = SessionResponse.model_validate(resp.json())
        self._token = session.token
        self.user = session.user
        log.info("api.logged_in", user_id=str(session.user.id), role=session.user.role.value)
        return session.user

    # --- Reads ---

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        assert self._client
        params = {k: v for k, v in (params or {}).items() if v is not None}
        last_exc: Exception | None = None
        for attempt in range(MAX_RETRIES):
            try:
                resp = await self._client.get(path, params=params, headers=self._headers)
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code < 500:
                    log.error("api.fetch_rejected", path=path, status=exc.response.status_code)
                    raise FetchError(
                        f"GET {path} failed: {exc.response.status_code}", exc.response.status_code
                    ) from exc
                last_exc = exc
            except httpx.HTTPError as exc:
                last_exc = exc

            backoff = self._retry_base_seconds * (2 ** attempt)
            log.warning("api.fetch_retry", path=path, attempt=attempt + 1, backoff=backoff, error=str(last_exc))
            await asyncio.sleep(backoff)

        raise FetchError(f"GET {path} failed after {MAX_RETRIES} attempts: {last_exc}")

    async def fetch_requests(
        self,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> list[RequestRead]:
        """Active requests. Their projected status is recomputed locally from events."""
        data = await self._get(
            "/api/v1/requests",
            {
                "created_from": created_from.isoformat() if created_from else None,
                "created_to": created_to.isoformat() if created_to else None,
            },
        )
        return [RequestRead.model_validate(item) for item in data]

    async def fetch_trash(self) -> list[RequestView]:
        return [RequestView.model_validate(item) for item in await self._get("/api/v1/requests/trash")]

    async def fetch_events(self, since: Optional[datetime] = None) -> list[StatusEventRead]:
        data = await self._get("/api/v1/events", {"since": since.isoformat() if since else None})
        return [StatusEventRead.model_validate(item) for item in data]

    async def fetch_users(self) -> list[UserRead]:
        return [UserRead.model_validate(item) for item in await self._get("/api/v1/users")]

    async def fetch_notifications(self, limit: int = 20) -> list[NotificationRead]:
        data = await self._get("/api/v1/notifications", {"limit": limit})
        return [NotificationRead.model_validate(item) for item in data]

    async def unread_count(self) -> int:
        return (await self._get("/api/v1/notifications/unread-count"))["unread"]

    async def check_health(self) -> bool:
        if not self._client:
            return False
        try:
            resp = await self._client.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    # --- Writes ---

    async def transition(self, ref: str, status: RequestStatus, note: str | None = None) -> TransitionResult:
        """Ask the server to append a status event.

        Never raises: transport and HTTP errors come back as ``ok=False``.
        Not retried, so a lost answer never appends a second event.
        """
        assert self._client
        body = {"to_status": RequestStatus(status).value, "note": note}
        try:
            resp = await self._client.post(
                f"/api/v1/requests/{ref}/transition", json=body, headers=self._headers
            )
        except httpx.HTTPError as exc:
            log.error("api.transition_unreachable", ref=ref, error=str(exc))
            return TransitionResult(ok=False, message=f"Sin conexión con el servidor: {exc}")

        if resp.status_code in (200, 503):
            try:
                return TransitionResult.model_validate(resp.json())
            except ValueError:
                pass
        detail = _detail(resp)
        log.error("api.transition_rejected", ref=ref, status=resp.status_code, detail=detail)
        return TransitionResult(ok=False, message=detail)

    async def _write(self, method: str, path: str, json: Any = None) -> Any:
        assert self._client
        try:
            resp = await self._client.request(method, path, json=json, headers=self._headers)
        except httpx.HTTPError as exc:
            raise MutationError(f"{method} {path} failed: {exc}") from exc
        if resp.is_error:
            raise MutationError(_detail(resp), resp.status_code)
        return resp.json() if resp.content else None

    async def soft_delete(self, ref: str) -> RequestView:
        return RequestView.model_validate(await self._write("DELETE", f"/api/v1/requests/{ref}"))

    async def restore(self, ref: str) -> RequestView:
        return RequestView.model_validate(await self._write("POST", f"/api/v1/requests/{ref}/restore"))

    async def mark_read(self, notification_id: uuid.UUID) -> NotificationRead:
        data = await self._write("POST", f"/api/v1/notifications/{notification_id}/read")
        return NotificationRead.model_validate(data)

    async def mark_all_read(self) -> None:
        await self._write("POST", "/api/v1/notifications/read-all")


def _detail(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    detail = data.get("detail") if isinstance(data, dict) else None
    return str(detail or f"HTTP {resp.status_code}")
