"""Blob store backed by the Supabase Storage REST API.

Usage:
    store = SupabaseBlobStore("https://xyz.supabase.co", service_key)
    async with store:
        url = await store.sign(StorageNamespace.PRODUCTION, "user/photo.jpg")
"""

from __future__ import annotations

import os
from urllib.parse import quote

import httpx

from nameplate.domain.errors import StorageError
from nameplate.domain.models import StorageNamespace
from nameplate.infrastructure.observability.logging import get_logger

from .blob_store import DEFAULT_SIGNED_URL_TTL_SECONDS

logger = get_logger(__name__)


class SupabaseBlobStore:
    """Async client for Supabase Storage buckets."""

    def __init__(
        self,
        base_url: str | None = None,
        service_key: str | None = None,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            base_url: Project URL. Defaults to the SUPABASE_URL env var.
            service_key: Service role key. Defaults to SUPABASE_SERVICE_KEY.
            timeout: Request timeout in seconds.
            client: Optional pre-built HTTP client (used by tests).
        """
        resolved_url = base_url or os.environ.get("SUPABASE_URL")
        if not resolved_url:
            raise StorageError("Supabase URL not configured (set SUPABASE_URL)")
        self.base_url = resolved_url.rstrip("/")
        self.service_key = service_key or os.environ.get("SUPABASE_SERVICE_KEY")
        self.timeout = timeout
        self._client = client

    async def __aenter__(self) -> "SupabaseBlobStore":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key or "",
        }

    def _object_url(self, kind: str, namespace: StorageNamespace, path: str) -> str:
        return (
            f"{self.base_url}/storage/v1/{kind}/{namespace.bucket}/"
            f"{quote(path.lstrip('/'))}"
        )

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        headers = {**self._headers, **kwargs.pop("headers", {})}
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Storage request failed: %s", str(e))
            raise StorageError(f"Storage request failed: {e}") from e
        if response.status_code >= 400:
            logger.error(
                "Storage API error: status=%d, url=%s",
                response.status_code,
                url,
            )
            raise StorageError(
                f"Storage API error: {response.status_code} {response.text[:200]}"
            )
        return response

    async def put(
        self,
        namespace: StorageNamespace,
        path: str,
        data: bytes,
        content_type: str | None = None,
    ) -> None:
        await self._send(
            "POST",
            self._object_url("object", namespace, path),
            content=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "true",
            },
        )

    async def sign(
        self,
        namespace: StorageNamespace,
        path: str,
        ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> str:
        response = await self._send(
            "POST",
            self._object_url("object/sign", namespace, path),
            json={"expiresIn": ttl_seconds},
        )
        signed = response.json().get("signedURL") or response.json().get("signedUrl")
        if not signed:
            raise StorageError(f"Failed to get signed URL for {path}")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"

    async def get(self, namespace: StorageNamespace, path: str) -> bytes:
        response = await self._send(
            "GET", self._object_url("object", namespace, path))
        return response.content

    async def delete(self, namespace: StorageNamespace, path: str) -> None:
        await self._send(
            "DELETE",
            f"{self.base_url}/storage/v1/object/{namespace.bucket}",
            json={"prefixes": [path]},
        )
