"""Object storage module for gridserve.

Provides the blob storage service and its pluggable engines:
- MongoDB GridFS (default)
- Local filesystem storage

On top of an engine, the service adds:
- Checksum verification before anything is committed
- Chunked streaming and true partial reads for HTTP Range requests
- Capability-bearing URLs for direct download and direct upload
"""

from gridserve.storage.base import BlobMetadata, ByteStore
from gridserve.storage.checksum import ChecksumVerifier, compute_checksum, verify_checksum
from gridserve.storage.factory import create_blob_store, get_blob_store
from gridserve.storage.gridfs import GridFSByteStore
from gridserve.storage.local import LocalByteStore
from gridserve.storage.metadata import InMemoryMetadataLookup, MetadataLookup
from gridserve.storage.ranges import ByteRange, RangeKind, RangeSelection, select_range
from gridserve.storage.service import BlobStore
from gridserve.storage.urls import UrlIssuer, content_disposition

__all__ = [
    "BlobMetadata",
    "BlobStore",
    "ByteRange",
    "ByteStore",
    "ChecksumVerifier",
    "GridFSByteStore",
    "InMemoryMetadataLookup",
    "LocalByteStore",
    "MetadataLookup",
    "RangeKind",
    "RangeSelection",
    "UrlIssuer",
    "compute_checksum",
    "content_disposition",
    "create_blob_store",
    "get_blob_store",
    "select_range",
    "verify_checksum",
]
