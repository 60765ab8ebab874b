"""Storage factory for gridserve."""

from __future__ import annotations

from gridserve.config import Settings, settings
from gridserve.storage.base import ByteStore
from gridserve.storage.gridfs import GridFSByteStore
from gridserve.storage.local import LocalByteStore
from gridserve.storage.metadata import MetadataLookup
from gridserve.storage.service import BlobStore

_store: BlobStore | None = None


def create_byte_store(config: Settings) -> ByteStore:
    """Build the storage engine named by ``config.storage_backend``."""
    backend = config.storage_backend.lower()
    if backend in {"gridfs", "mongo", "mongodb"}:
        if not config.mongo_database:
            raise ValueError("MONGODB_DATABASE is required for storage_backend='gridfs'")
        return GridFSByteStore(
            uri=config.mongo_uri,
            database=config.mongo_database,
            bucket_name=config.gridfs_bucket,
        )
    if backend == "local":
        return LocalByteStore(base_path=config.local_storage_path)
    raise ValueError("Unsupported storage_backend. Supported values: gridfs, local.")


def create_blob_store(
    config: Settings, metadata_lookup: MetadataLookup | None = None
) -> BlobStore:
    return BlobStore(
        create_byte_store(config),
        metadata_lookup,
        chunk_size=config.stream_chunk_size,
    )


def get_blob_store() -> BlobStore:
    """Return a singleton BlobStore based on settings."""
    global _store
    if _store is None:
        _store = create_blob_store(settings)
    return _store
