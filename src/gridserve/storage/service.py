"""Blob storage service.

``BlobStore`` is what the HTTP layer talks to. It layers checksum
verification, metadata merging, chunked streaming and ranged reads on top
of a ``ByteStore`` engine, so engines can be swapped without touching any
of that logic.

Every call is independent: the service keeps no per-request state, and the
only shared resources are the engine's own connection pool and the
metadata lookup.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterator
from contextlib import contextmanager
from typing import Any

from gridserve.storage.base import ByteStore
from gridserve.storage.checksum import ChecksumVerifier, Content
from gridserve.storage.metadata import MetadataLookup, NullMetadataLookup
from gridserve.storage.ranges import ByteRange

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024  # 5MiB


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data


async def _file_chunks(content: Any, chunk_size: int) -> AsyncIterator[bytes]:
    while True:
        chunk = content.read(chunk_size)
        if not chunk:
            break
        yield chunk


class BlobStore:
    """Storage service over a pluggable engine."""

    def __init__(
        self,
        engine: ByteStore,
        metadata_lookup: MetadataLookup | None = None,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """Initialize the service.

        Args:
            engine: Storage engine holding the bytes
            metadata_lookup: External metadata store, used for filenames
            chunk_size: Size of each read when streaming
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.engine = engine
        self.metadata_lookup: MetadataLookup = metadata_lookup or NullMetadataLookup()
        self.chunk_size = chunk_size
        self.checksum_verifier = ChecksumVerifier()

    @contextmanager
    def _instrument(self, operation: str, **payload: Any) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            logger.debug(
                f"{operation} {payload.get('key') or payload.get('prefix')}",
                extra={
                    "operation": operation,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    **payload,
                },
            )

    async def upload(
        self,
        key: str,
        content: Content,
        *,
        checksum: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Store ``content`` under ``key``.

        With a checksum the body is buffered and verified before anything
        else happens, so a mismatch leaves no trace in the engine or the
        metadata store. Without one, async-iterable content is streamed
        straight through.

        Raises:
            IntegrityError: If the content does not match ``checksum``
        """
        with self._instrument("upload", key=key, checksum=checksum):
            if checksum is not None:
                data = await self.checksum_verifier.verify(key, content, checksum)
                chunks: AsyncIterator[bytes] = _single_chunk(data)
            elif isinstance(content, (bytes, bytearray, memoryview)):
                chunks = _single_chunk(bytes(content))
            elif isinstance(content, AsyncIterable):
                chunks = aiter(content)
            else:
                chunks = _file_chunks(content, self.chunk_size)

            stored_metadata: dict[str, Any] = {}
            record = await self.metadata_lookup.find(key)
            if record is not None and record.filename:
                stored_metadata["original_filename"] = record.filename
            if metadata:
                stored_metadata.update(metadata)

            await self.engine.put(key, chunks, stored_metadata)

    async def download(self, key: str) -> bytes:
        """Return the whole object.

        Raises:
            BlobNotFoundError: If ``key`` does not exist
        """
        with self._instrument("download", key=key):
            return b"".join([chunk async for chunk in self.stream(key)])

    async def stream(self, key: str, byte_range: ByteRange | None = None) -> AsyncIterator[bytes]:
        """Yield the object (or one range of it) in ``chunk_size`` pieces.

        Each piece is a separate ranged read, so memory use is bounded by
        the chunk size and nothing more is read once the consumer stops
        iterating (for example when the client disconnects).

        Raises:
            BlobNotFoundError: If ``key`` does not exist
        """
        if byte_range is None:
            offset, end = 0, await self.engine.size(key) - 1
        else:
            offset, end = byte_range.start, byte_range.end

        while offset <= end:
            length = min(self.chunk_size, end - offset + 1)
            chunk = await self.engine.read_range(key, offset, length)
            if not chunk:
                break  # object shrank underneath us
            yield chunk
            offset += len(chunk)

    async def download_streaming(
        self, key: str, consumer: Callable[[bytes], Awaitable[None] | None]
    ) -> None:
        """Feed successive chunks of the object to ``consumer``."""
        with self._instrument("download_streaming", key=key):
            async for chunk in self.stream(key):
                result = consumer(chunk)
                if result is not None:
                    await result

    async def download_chunk(self, key: str, byte_range: ByteRange) -> bytes:
        """Return exactly the bytes covered by ``byte_range``.

        The range is expected to lie inside the object (as produced by
        ``select_range`` against ``length``); a range running past the end
        is truncated to what exists.

        Raises:
            BlobNotFoundError: If ``key`` does not exist
        """
        with self._instrument("download_chunk", key=key, range=[byte_range.start, byte_range.end]):
            return await self.engine.read_range(key, byte_range.start, byte_range.size)

    async def exists(self, key: str) -> bool:
        with self._instrument("exist", key=key):
            return await self.engine.exists(key)

    async def delete(self, key: str) -> None:
        """Delete ``key``; deleting a missing key is not an error."""
        with self._instrument("delete", key=key):
            await self.engine.delete(key)

    async def delete_prefixed(self, prefix: str) -> int:
        """Delete every object whose key literally starts with ``prefix``."""
        with self._instrument("delete_prefixed", prefix=prefix):
            return await self.engine.delete_prefixed(prefix)

    async def length(self, key: str) -> int:
        """Authoritative byte length, read from the engine (not metadata).

        Raises:
            BlobNotFoundError: If ``key`` does not exist
        """
        return await self.engine.size(key)

    async def metadata(self, key: str) -> dict[str, Any]:
        """Custom metadata stored with the object."""
        return await self.engine.metadata(key)

    async def close(self) -> None:
        await self.engine.close()
