"""
Object storage adapter for request attachments and final designs.

Payloads live in a storage bucket; request rows only keep their public URLs.
Deletion goes through the storage REST API with the service key.
"""

from __future__ import annotations

from typing import Iterable, Optional, Protocol
from urllib.parse import unquote, urlparse

import httpx
import structlog

from dpt_server.core.config import get_settings

log = structlog.get_logger()


class ObjectStorage(Protocol):
    async def delete(self, paths: list[str]) -> None: ...


def object_path(url: str, bucket: str) -> Optional[str]:
    """Path of an object inside ``bucket`` given its public URL.

    ``https://x/storage/v1/object/public/design-attachments/a/b.png`` with
    bucket ``design-attachments`` gives ``a/b.png``. URLs that do not point
    into the bucket give None.
    """
    if not url:
        return None
    marker = f"/{bucket}/"
    path = unquote(urlparse(url).path)
    if marker not in path:
        return None
    remainder = path.split(marker, 1)[1]
    return remainder or None


def collect_paths(urls: Iterable[str], bucket: str) -> list[str]:
    paths = []
    for url in urls:
        path = object_path(url, bucket)
        if path and path not in paths:
            paths.append(path)
    return paths


class HttpObjectStorage:
    """Deletes objects with ``DELETE {base_url}/object/{bucket}``."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self._transport = transport

    async def delete(self, paths: list[str]) -> None:
        if not paths:
            return
        if not self.base_url:
            log.warning("storage.not_configured", paths=len(paths))
            return
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(
                "DELETE",
                f"{self.base_url}/object/{self.bucket}",
                json={"prefixes": paths},
                headers={"Authorization": f"Bearer {self.service_key}"},
            )
            response.raise_for_status()
        log.info("storage.deleted", bucket=self.bucket, count=len(paths))


def get_storage() -> ObjectStorage:
    """FastAPI dependency for the configured object storage."""
    settings = get_settings()
    return HttpObjectStorage(
        settings.storage_url,
        settings.storage_service_key,
        settings.storage_bucket,
    )
