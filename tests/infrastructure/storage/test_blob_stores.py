"""Tests for the local and Supabase blob stores."""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from nameplate.domain.errors import StorageError
from nameplate.domain.models import StorageNamespace
from nameplate.infrastructure.storage import LocalBlobStore, SupabaseBlobStore

PROD = StorageNamespace.PRODUCTION
TEST = StorageNamespace.EPHEMERAL


class TestLocalBlobStore:
    def test_put_get_delete(self, tmp_path):
        store = LocalBlobStore(tmp_path)

        async def run():
            await store.put(PROD, "owner/a.jpg", b"jpeg-data", "image/jpeg")
            data = await store.get(PROD, "owner/a.jpg")
            await store.delete(PROD, "owner/a.jpg")
            return data

        assert asyncio.run(run()) == b"jpeg-data"
        assert not (tmp_path / "nameplate-images" / "owner" / "a.jpg").exists()

    def test_namespaces_are_separate_buckets(self, tmp_path):
        store = LocalBlobStore(tmp_path)
        asyncio.run(store.put(TEST, "owner/a.jpg", b"x"))
        assert (tmp_path / "test-images" / "owner" / "a.jpg").exists()
        with pytest.raises(StorageError, match="not found"):
            asyncio.run(store.get(PROD, "owner/a.jpg"))

    def test_sign_returns_data_url(self, tmp_path):
        store = LocalBlobStore(tmp_path)

        async def run():
            await store.put(PROD, "owner/a.png", b"png-data")
            return await store.sign(PROD, "owner/a.png")

        url = asyncio.run(run())
        header, payload = url.split(",", 1)
        assert header == "data:image/png;base64"
        assert base64.b64decode(payload) == b"png-data"

    def test_sign_missing_object(self, tmp_path):
        with pytest.raises(StorageError):
            asyncio.run(LocalBlobStore(tmp_path).sign(PROD, "nope.jpg"))

    @pytest.mark.parametrize("path", ["../escape.jpg", "/etc/passwd", "a/../../b"])
    def test_rejects_paths_outside_bucket(self, tmp_path, path):
        with pytest.raises(StorageError, match="Invalid storage path"):
            asyncio.run(LocalBlobStore(tmp_path).put(PROD, path, b"x"))


class TestSupabaseBlobStore:
    def _store(self, handler) -> SupabaseBlobStore:
        return SupabaseBlobStore(
            "https://project.supabase.test/",
            "service-key",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    def test_sign_builds_absolute_url(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={"signedURL": "/object/sign/nameplate-images/o/a.jpg?token=t"},
            )

        url = asyncio.run(self._store(handler).sign(PROD, "o/a.jpg", 600))

        assert url == (
            "https://project.supabase.test/storage/v1/object/sign/"
            "nameplate-images/o/a.jpg?token=t"
        )
        request = requests[0]
        assert request.url.path == "/storage/v1/object/sign/nameplate-images/o/a.jpg"
        assert json.loads(request.content) == {"expiresIn": 600}
        assert request.headers["Authorization"] == "Bearer service-key"

    def test_put_uploads_to_bucket(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"Key": "test-images/o/a.jpg"})

        asyncio.run(self._store(handler).put(TEST, "o/a.jpg", b"bytes", "image/jpeg"))

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/storage/v1/object/test-images/o/a.jpg"
        assert request.headers["content-type"] == "image/jpeg"
        assert request.content == b"bytes"

    def test_delete_by_prefix(self):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=[])

        asyncio.run(self._store(handler).delete(PROD, "o/a.jpg"))
        assert bodies == [{"prefixes": ["o/a.jpg"]}]

    def test_api_error_becomes_storage_error(self):
        store = self._store(lambda request: httpx.Response(404, text="not found"))
        with pytest.raises(StorageError, match="404"):
            asyncio.run(store.sign(PROD, "missing.jpg"))

    def test_missing_url(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        with pytest.raises(StorageError):
            SupabaseBlobStore()
