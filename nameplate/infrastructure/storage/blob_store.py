"""Blob store interface and local filesystem implementation.

The pipeline only needs a URL the remote extractors can read. Stores are
namespaced by :class:`StorageNamespace`, which selects the bucket.
"""

from __future__ import annotations

import asyncio
import base64
import mimetypes
from pathlib import Path, PurePosixPath
from typing import Protocol

from nameplate.domain.errors import StorageError
from nameplate.domain.models import StorageNamespace
from nameplate.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SIGNED_URL_TTL_SECONDS = 3600


class BlobStore(Protocol):
    """Object storage consumed by the pipeline and the upload flow."""

    async def put(
        self,
        namespace: StorageNamespace,
        path: str,
        data: bytes,
        content_type: str | None = None,
    ) -> None: ...

    async def sign(
        self,
        namespace: StorageNamespace,
        path: str,
        ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> str: ...

    async def get(self, namespace: StorageNamespace, path: str) -> bytes: ...

    async def delete(self, namespace: StorageNamespace, path: str) -> None: ...

    async def close(self) -> None: ...


class LocalBlobStore:
    """Stores blobs as files under ``{root}/{bucket}/{path}``.

    Files on local disk are not reachable by remote services, so ``sign``
    returns a base64 ``data:`` URL carrying the file content. The TTL is
    accepted for interface compatibility and has no effect.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, namespace: StorageNamespace, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise StorageError(f"Invalid storage path: {path}")
        return self.root / namespace.bucket / Path(*relative.parts)

    async def put(
        self,
        namespace: StorageNamespace,
        path: str,
        data: bytes,
        content_type: str | None = None,
    ) -> None:
        target = self._resolve(namespace, path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Failed to store {path}: {e}") from e
        logger.debug("Stored %d bytes at %s", len(data), target)

    async def get(self, namespace: StorageNamespace, path: str) -> bytes:
        target = self._resolve(namespace, path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {namespace.bucket}/{path}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    async def sign(
        self,
        namespace: StorageNamespace,
        path: str,
        ttl_seconds: int = DEFAULT_SIGNED_URL_TTL_SECONDS,
    ) -> str:
        data = await self.get(namespace, path)
        mime_type = mimetypes.guess_type(path)[0] or "image/jpeg"
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"

    async def delete(self, namespace: StorageNamespace, path: str) -> None:
        target = self._resolve(namespace, path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise StorageError(f"Object not found: {namespace.bucket}/{path}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e

    async def close(self) -> None:
        pass
