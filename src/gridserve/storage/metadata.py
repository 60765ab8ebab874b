"""Lookups into the external blob metadata store.

Blob metadata (filename, content type, size) lives in a database this
service does not own. The service reaches it only through the
``MetadataLookup`` protocol, to record the original filename alongside
the stored bytes.
"""

from __future__ import annotations

from typing import Protocol

from gridserve.storage.base import BlobMetadata


class MetadataLookup(Protocol):
    async def find(self, key: str) -> BlobMetadata | None:
        """Return metadata for ``key``, or None if the store has no record."""
        ...


class NullMetadataLookup:
    """Lookup for deployments without a metadata store."""

    async def find(self, key: str) -> BlobMetadata | None:
        return None


class InMemoryMetadataLookup:
    """Dict-backed lookup, populated by the embedding application."""

    def __init__(self, records: dict[str, BlobMetadata] | None = None) -> None:
        self._records: dict[str, BlobMetadata] = dict(records or {})

    def register(self, metadata: BlobMetadata) -> None:
        self._records[metadata.key] = metadata

    def forget(self, key: str) -> None:
        self._records.pop(key, None)

    async def find(self, key: str) -> BlobMetadata | None:
        return self._records.get(key)
