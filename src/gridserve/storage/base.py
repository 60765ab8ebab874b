"""Base byte store interface.

Defines the abstract interface for storage engines. An engine is an opaque
byte store keyed by name: it owns its own chunk layout, and callers only
read and write through the operations below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class BlobMetadata:
    """Metadata for a stored blob.

    Produced by an external metadata store; the service only reads the
    filename from it (through a MetadataLookup) and never trusts its
    byte size for range math.
    """

    key: str
    filename: str | None = None
    content_type: str = "application/octet-stream"
    byte_size: int = 0
    checksum: str | None = None
    disposition: str | None = None
    custom: dict[str, Any] = field(default_factory=dict)


class ByteStore(ABC):
    """Abstract base class for storage engines.

    Implementations must be safe for concurrent use by simultaneous
    requests; the service adds no locking of its own.
    """

    @abstractmethod
    async def put(
        self,
        name: str,
        chunks: AsyncIterator[bytes],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Store an object under ``name``, replacing any previous one.

        The commit is atomic: if writing fails, nothing new becomes
        visible under ``name``.

        Args:
            name: Object name (the blob key)
            chunks: Object content
            metadata: Custom metadata kept alongside the object

        Returns:
            Number of bytes written
        """
        ...

    @abstractmethod
    async def size(self, name: str) -> int:
        """Return the current stored length of ``name``.

        Raises:
            BlobNotFoundError: If no object exists under ``name``
        """
        ...

    @abstractmethod
    async def read_range(self, name: str, offset: int, length: int) -> bytes:
        """Read up to ``length`` bytes starting at ``offset``.

        Engines seek to ``offset`` rather than reading the object from
        the beginning.

        Raises:
            BlobNotFoundError: If no object exists under ``name``
        """
        ...

    @abstractmethod
    async def metadata(self, name: str) -> dict[str, Any]:
        """Return the custom metadata stored with ``name``.

        Raises:
            BlobNotFoundError: If no object exists under ``name``
        """
        ...

    @abstractmethod
    async def exists(self, name: str) -> bool:
        """Check if an object exists under ``name``."""
        ...

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Delete an object.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def delete_prefixed(self, prefix: str) -> int:
        """Delete every object whose name literally starts with ``prefix``.

        Returns:
            Number of objects deleted
        """
        ...

    async def close(self) -> None:
        """Release engine connections."""
        return None
