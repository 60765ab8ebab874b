"""Global pytest configuration and fixtures.

Provides an in-memory storage engine and a fully wired application so
tests exercise the service, capability and HTTP layers without MongoDB.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gridserve.api.app import create_app
from gridserve.config import Settings
from gridserve.errors import BlobNotFoundError
from gridserve.security.capability import CapabilitySigner
from gridserve.storage.base import ByteStore
from gridserve.storage.metadata import InMemoryMetadataLookup
from gridserve.storage.service import BlobStore
from gridserve.storage.urls import UrlIssuer

SECRET_KEY = "test-secret-key-not-for-production"


class InMemoryByteStore(ByteStore):
    """Dict-backed engine that records ranged reads."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.object_metadata: dict[str, dict[str, Any]] = {}
        self.reads: list[tuple[str, int, int]] = []
        self.closed = False

    async def put(
        self,
        name: str,
        chunks: AsyncIterator[bytes],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        data = b"".join([chunk async for chunk in chunks])
        self.objects[name] = data
        self.object_metadata[name] = dict(metadata or {})
        return len(data)

    async def size(self, name: str) -> int:
        if name not in self.objects:
            raise BlobNotFoundError(name)
        return len(self.objects[name])

    async def read_range(self, name: str, offset: int, length: int) -> bytes:
        if name not in self.objects:
            raise BlobNotFoundError(name)
        self.reads.append((name, offset, length))
        return self.objects[name][offset : offset + length]

    async def metadata(self, name: str) -> dict[str, Any]:
        if name not in self.objects:
            raise BlobNotFoundError(name)
        return self.object_metadata[name]

    async def exists(self, name: str) -> bool:
        return name in self.objects

    async def delete(self, name: str) -> bool:
        self.object_metadata.pop(name, None)
        return self.objects.pop(name, None) is not None

    async def delete_prefixed(self, prefix: str) -> int:
        names = [name for name in self.objects if name.startswith(prefix)]
        for name in names:
            await self.delete(name)
        return len(names)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def engine() -> InMemoryByteStore:
    return InMemoryByteStore()


@pytest.fixture
def metadata_lookup() -> InMemoryMetadataLookup:
    return InMemoryMetadataLookup()


@pytest.fixture
def blob_store(engine: InMemoryByteStore, metadata_lookup: InMemoryMetadataLookup) -> BlobStore:
    return BlobStore(engine, metadata_lookup)


@pytest.fixture
def signer() -> CapabilitySigner:
    return CapabilitySigner(SECRET_KEY)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        secret_key=SECRET_KEY,
        storage_backend="local",
        base_url="https://example.com",
        route_prefix="/storage/gridfs",
    )


@pytest.fixture
def url_issuer(signer: CapabilitySigner, test_settings: Settings) -> UrlIssuer:
    return UrlIssuer(
        signer,
        base_url=test_settings.base_url,
        route_prefix=test_settings.route_prefix,
    )


@pytest.fixture
def app(test_settings: Settings, blob_store: BlobStore, signer: CapabilitySigner) -> FastAPI:
    return create_app(test_settings, blob_store=blob_store, signer=signer)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
