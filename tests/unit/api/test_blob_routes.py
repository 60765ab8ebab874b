"""End-to-end tests for the capability-addressed blob endpoints."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from urllib.parse import urlsplit

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.types import Message

from gridserve.api.routers import blobs
from gridserve.errors import ContentMismatchError
from gridserve.security.capability import CapabilitySigner, Purpose
from gridserve.storage.checksum import compute_checksum
from gridserve.storage.service import BlobStore
from gridserve.storage.urls import UrlIssuer
from tests.conftest import InMemoryByteStore

PAYLOAD = b"Hello, GridFS!"


def _path(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


def _upload_path(
    issuer: UrlIssuer,
    key: str = "greeting",
    *,
    body: bytes = PAYLOAD,
    content_type: str = "text/plain",
    checksum: str | None = None,
) -> str:
    return _path(
        issuer.url_for_direct_upload(
            key, content_type=content_type, content_length=len(body), checksum=checksum
        )
    )


def _read_path(issuer: UrlIssuer, key: str = "greeting", **options: object) -> str:
    options.setdefault("filename", "greeting.txt")
    options.setdefault("content_type", "text/plain")
    return _path(issuer.private_url(key, **options))  # type: ignore[arg-type]


class TestRoundTrip:
    def test_upload_then_download(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.put(
            _upload_path(url_issuer, checksum=compute_checksum(PAYLOAD)),
            content=PAYLOAD,
            headers={"Content-Type": "text/plain"},
        )
        assert response.status_code == 204

        response = client.get(_read_path(url_issuer))

        assert response.status_code == 200
        assert response.content == PAYLOAD
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-length"] == "14"
        assert response.headers["accept-ranges"] == "bytes"
        assert response.headers["content-disposition"].startswith('inline; filename="greeting.txt"')

    def test_download_defaults_without_content_type(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        engine.objects["greeting"] = PAYLOAD
        engine.object_metadata["greeting"] = {}

        response = client.get(_read_path(url_issuer, content_type=None))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/octet-stream"

    def test_head(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        engine.objects["greeting"] = PAYLOAD
        engine.object_metadata["greeting"] = {}

        response = client.head(_read_path(url_issuer))

        assert response.status_code == 200
        assert response.headers["content-length"] == "14"
        assert response.content == b""
        assert engine.reads == []


class TestRanges:
    @pytest.fixture(autouse=True)
    def stored(self, engine: InMemoryByteStore) -> None:
        engine.objects["greeting"] = PAYLOAD
        engine.object_metadata["greeting"] = {}

    def test_partial_content(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.get(_read_path(url_issuer), headers={"Range": "bytes=7-12"})

        assert response.status_code == 206
        assert response.content == b"GridFS"
        assert response.headers["content-range"] == "bytes 7-12/14"
        assert response.headers["content-length"] == "6"

    def test_suffix_range(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.get(_read_path(url_issuer), headers={"Range": "bytes=-2"})

        assert response.status_code == 206
        assert response.content == b"S!"
        assert response.headers["content-range"] == "bytes 12-13/14"

    def test_large_range_is_streamed(
        self, app: FastAPI, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        store: BlobStore = app.state.blob_store
        store.chunk_size = 4

        with TestClient(app) as client:
            response = client.get(_read_path(url_issuer), headers={"Range": "bytes=1-10"})

        assert response.status_code == 206
        assert response.content == PAYLOAD[1:11]
        assert [length for _, _, length in engine.reads] == [4, 4, 2]

    def test_unsatisfiable(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.get(_read_path(url_issuer), headers={"Range": "bytes=100-"})

        assert response.status_code == 416
        assert response.headers["content-range"] == "bytes */14"
        assert response.content == b""

    def test_multiple_ranges_serve_full_body(
        self, client: TestClient, url_issuer: UrlIssuer
    ) -> None:
        response = client.get(_read_path(url_issuer), headers={"Range": "bytes=0-1,4-5"})

        assert response.status_code == 200
        assert response.content == PAYLOAD

    def test_unparseable_range_serves_full_body(
        self, client: TestClient, url_issuer: UrlIssuer
    ) -> None:
        response = client.get(_read_path(url_issuer), headers={"Range": "bytes=9-3"})

        assert response.status_code == 200
        assert response.content == PAYLOAD

    def test_head_with_range(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.head(_read_path(url_issuer), headers={"Range": "bytes=0-4"})

        assert response.status_code == 206
        assert response.headers["content-range"] == "bytes 0-4/14"
        assert response.headers["content-length"] == "5"


class TestCapabilities:
    @pytest.fixture(autouse=True)
    def stored(self, engine: InMemoryByteStore) -> None:
        engine.objects["greeting"] = PAYLOAD
        engine.object_metadata["greeting"] = {}

    def test_garbage_token_is_not_found(self, client: TestClient) -> None:
        response = client.get("/storage/gridfs/not-a-token/greeting.txt")

        assert response.status_code == 404
        assert response.content == b""

    def test_missing_object_is_not_found(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        response = client.get(_read_path(url_issuer, "missing"))

        assert response.status_code == 404
        assert response.content == b""

    def test_upload_token_cannot_read(self, client: TestClient, url_issuer: UrlIssuer) -> None:
        token = _upload_path(url_issuer).rsplit("/", 1)[1]

        response = client.get(f"/storage/gridfs/{token}/greeting.txt")

        assert response.status_code == 404

    def test_read_token_cannot_upload(
        self, client: TestClient, signer: CapabilitySigner, engine: InMemoryByteStore
    ) -> None:
        token = signer.generate(
            {"key": "greeting", "content_type": "text/plain", "content_length": 3},
            purpose=Purpose.BLOB_KEY,
        )

        response = client.put(
            f"/storage/gridfs/{token}", content=b"bad", headers={"Content-Type": "text/plain"}
        )

        assert response.status_code == 404
        assert engine.objects["greeting"] == PAYLOAD

    def test_expired_token(self, client: TestClient, signer: CapabilitySigner) -> None:
        token = signer.generate(
            {"key": "greeting"},
            purpose=Purpose.BLOB_KEY,
            expires_at=datetime(2000, 1, 1, tzinfo=UTC),
        )

        response = client.get(f"/storage/gridfs/{token}/greeting.txt")

        assert response.status_code == 404

    def test_token_from_other_secret(self, client: TestClient) -> None:
        token = CapabilitySigner("another-secret").generate(
            {"key": "greeting"}, purpose=Purpose.BLOB_KEY
        )

        response = client.get(f"/storage/gridfs/{token}/greeting.txt")

        assert response.status_code == 404


class TestUploads:
    def test_content_type_mismatch(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        response = client.put(
            _upload_path(url_issuer), content=PAYLOAD, headers={"Content-Type": "image/png"}
        )

        assert response.status_code == 422
        assert "greeting" not in engine.objects

    def test_content_type_parameters_ignored(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        response = client.put(
            _upload_path(url_issuer),
            content=PAYLOAD,
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

        assert response.status_code == 204
        assert engine.objects["greeting"] == PAYLOAD

    def test_content_length_mismatch(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        response = client.put(
            _upload_path(url_issuer),
            content=PAYLOAD + b"extra",
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 422
        assert "greeting" not in engine.objects

    def test_checksum_mismatch(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        response = client.put(
            _upload_path(url_issuer, checksum=compute_checksum(b"Hello, Mongo!!")),
            content=PAYLOAD,
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 422
        assert "greeting" not in engine.objects

    def test_streaming_upload_without_checksum(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        def body() -> Iterator[bytes]:
            yield b"Hello, "
            yield b"GridFS!"

        response = client.put(
            _upload_path(url_issuer), content=body(), headers={"Content-Type": "text/plain"}
        )

        assert response.status_code == 204
        assert engine.objects["greeting"] == PAYLOAD

    def test_streaming_upload_too_short(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        def body() -> Iterator[bytes]:
            yield b"Hello"

        response = client.put(
            _upload_path(url_issuer), content=body(), headers={"Content-Type": "text/plain"}
        )

        assert response.status_code == 422
        assert "greeting" not in engine.objects

    def test_upload_replaces_existing_object(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        engine.objects["greeting"] = b"old"
        engine.object_metadata["greeting"] = {}

        response = client.put(
            _upload_path(url_issuer), content=PAYLOAD, headers={"Content-Type": "text/plain"}
        )

        assert response.status_code == 204
        assert engine.objects["greeting"] == PAYLOAD

    def test_chunked_checksummed_body_too_long(
        self, client: TestClient, url_issuer: UrlIssuer, engine: InMemoryByteStore
    ) -> None:
        def body() -> Iterator[bytes]:
            yield PAYLOAD
            yield b"and then some"

        response = client.put(
            _upload_path(url_issuer, checksum=compute_checksum(PAYLOAD)),
            content=body(),
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 422
        assert "greeting" not in engine.objects

    @pytest.mark.asyncio
    async def test_oversized_checksummed_body_is_not_buffered(
        self,
        blob_store: BlobStore,
        signer: CapabilitySigner,
        url_issuer: UrlIssuer,
        engine: InMemoryByteStore,
    ) -> None:
        """A chunked body larger than the capability allows is rejected on the first chunk."""
        token = _upload_path(url_issuer, checksum=compute_checksum(PAYLOAD)).rsplit("/", 1)[1]
        pulled = 0

        async def receive() -> Message:
            nonlocal pulled
            pulled += 1
            return {"type": "http.request", "body": b"x" * 1024 * 1024, "more_body": pulled < 50}

        request = Request(
            {
                "type": "http",
                "method": "PUT",
                "path": f"/storage/gridfs/{token}",
                "query_string": b"",
                "headers": [(b"content-type", b"text/plain")],
            },
            receive,
        )

        with pytest.raises(ContentMismatchError):
            await blobs.update(token, request, blob_store, signer)

        assert pulled == 1
        assert "greeting" not in engine.objects


class TestHealth:
    def test_live(self, client: TestClient) -> None:
        assert client.get("/health/live").json() == {"status": "healthy"}

    def test_ready(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_not_ready_when_engine_fails(
        self, client: TestClient, engine: InMemoryByteStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken_exists(name: str) -> bool:
            raise ConnectionError("mongo is down")

        monkeypatch.setattr(engine, "exists", broken_exists)

        response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


def test_engine_failure_is_internal_error(
    app: FastAPI, url_issuer: UrlIssuer, engine: InMemoryByteStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken_size(name: str) -> int:
        raise ConnectionError("mongo is down")

    monkeypatch.setattr(engine, "size", broken_size)

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get(_read_path(url_issuer))

    assert response.status_code == 500
    assert response.json()["code"] == "InternalServerError"
