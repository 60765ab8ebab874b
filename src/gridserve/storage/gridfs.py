"""MongoDB GridFS byte store.

Uses motor's asyncio GridFS bucket. GridFS splits every file into chunks
itself; this engine only talks to the bucket API and never touches the
chunk layout.

GridFS keeps every upload of a filename as a separate revision. Reads use
the newest revision, and older revisions are deleted once a new upload has
completed, which gives last-write-wins semantics.
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, cast

from gridfs.errors import NoFile

from gridserve.errors import BlobNotFoundError
from gridserve.storage.base import ByteStore

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorGridFSBucket

logger = logging.getLogger(__name__)


def prefix_filter(prefix: str) -> dict[str, Any]:
    """Build a filename query matching ``prefix`` literally."""
    return {"filename": {"$regex": f"^{re.escape(prefix)}"}}


class GridFSByteStore(ByteStore):
    """GridFS storage engine.

    Configuration via:
    - uri: MongoDB connection string
    - database: Database holding the bucket
    - bucket_name: GridFS bucket name (collections ``{bucket}.files`` and
      ``{bucket}.chunks``)
    """

    def __init__(
        self,
        uri: str,
        database: str,
        bucket_name: str = "fs",
        bucket: AsyncIOMotorGridFSBucket | None = None,
    ):
        """Initialize GridFS byte store.

        Args:
            uri: MongoDB connection URI
            database: Database name
            bucket_name: GridFS bucket name
            bucket: Pre-built bucket (the client is then not owned here)
        """
        self.uri = uri
        self.database = database
        self.bucket_name = bucket_name
        self._client: AsyncIOMotorClient | None = None
        self._bucket = bucket

    def _get_bucket(self) -> AsyncIOMotorGridFSBucket:
        """Get or create the GridFS bucket.

        The motor client pools connections and is shared by all requests.
        """
        if self._bucket is None:
            from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorGridFSBucket

            self._client = AsyncIOMotorClient(self.uri)
            self._bucket = AsyncIOMotorGridFSBucket(
                self._client[self.database], bucket_name=self.bucket_name
            )
        return self._bucket

    async def _file_ids(self, query: dict[str, Any]) -> list[Any]:
        bucket = self._get_bucket()
        return [grid_out._id async for grid_out in bucket.find(query)]

    async def put(
        self,
        name: str,
        chunks: AsyncIterator[bytes],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Upload a new revision, then drop the older ones."""
        bucket = self._get_bucket()
        grid_in = bucket.open_upload_stream(name, metadata=metadata or {})
        size_bytes = 0
        try:
            async for chunk in chunks:
                await grid_in.write(chunk)
                size_bytes += len(chunk)
        except BaseException:
            await grid_in.abort()
            raise
        await grid_in.close()

        for file_id in await self._file_ids({"filename": name, "_id": {"$ne": grid_in._id}}):
            try:
                await bucket.delete(file_id)
            except NoFile:
                pass  # removed by a concurrent writer

        logger.debug(f"Stored GridFS file {name} ({size_bytes} bytes)")
        return size_bytes

    async def size(self, name: str) -> int:
        try:
            grid_out = await self._get_bucket().open_download_stream_by_name(name)
        except NoFile:
            raise BlobNotFoundError(name) from None
        return cast(int, grid_out.length)

    async def read_range(self, name: str, offset: int, length: int) -> bytes:
        """Seek within the newest revision and read at most ``length`` bytes."""
        try:
            grid_out = await self._get_bucket().open_download_stream_by_name(name)
        except NoFile:
            raise BlobNotFoundError(name) from None
        grid_out.seek(offset)
        return cast(bytes, await grid_out.read(length))

    async def metadata(self, name: str) -> dict[str, Any]:
        try:
            grid_out = await self._get_bucket().open_download_stream_by_name(name)
        except NoFile:
            raise BlobNotFoundError(name) from None
        return dict(grid_out.metadata or {})

    async def exists(self, name: str) -> bool:
        async for _ in self._get_bucket().find({"filename": name}, limit=1):
            return True
        return False

    async def delete(self, name: str) -> bool:
        """Delete every revision stored under ``name``."""
        file_ids = await self._file_ids({"filename": name})
        for file_id in file_ids:
            try:
                await self._get_bucket().delete(file_id)
            except NoFile:
                pass  # removed by a concurrent delete
        return bool(file_ids)

    async def delete_prefixed(self, prefix: str) -> int:
        """Delete files whose name starts with ``prefix``, escaped as a literal."""
        deleted = 0
        for file_id in await self._file_ids(prefix_filter(prefix)):
            try:
                await self._get_bucket().delete(file_id)
                deleted += 1
            except NoFile:
                pass
        logger.debug(f"Deleted {deleted} GridFS files with prefix {prefix!r}")
        return deleted

    async def close(self) -> None:
        """Close the MongoDB client if this store created it."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._bucket = None
