"""Local filesystem byte store.

Stores objects in a local directory structure:
    {base_path}/data/{name[:2]}/{name}
    {base_path}/meta/{name[:2]}/{name}.json

Names are percent-encoded (dots included) so any key maps to one safe
file name. This provides:
- Simple deployment (no external services)
- Reasonable performance for moderate workloads
- Easy backup and inspection
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, cast
from urllib.parse import quote, unquote
from uuid import uuid4

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]
import orjson

from gridserve.errors import BlobNotFoundError
from gridserve.storage.base import ByteStore

logger = logging.getLogger(__name__)


def encode_name(name: str) -> str:
    """Map an object name to a file name that cannot escape its directory."""
    return quote(name, safe="").replace(".", "%2E")


def decode_name(file_name: str) -> str:
    return unquote(file_name)


class LocalByteStore(ByteStore):
    """Local filesystem storage engine."""

    def __init__(self, base_path: str | Path = "/var/lib/gridserve/blobs"):
        """Initialize local byte store.

        Args:
            base_path: Base directory for object storage
        """
        self.base_path = Path(base_path)
        self.data_path = self.base_path / "data"
        self.meta_path = self.base_path / "meta"

    async def _ensure_directory(self, path: Path) -> None:
        """Ensure directory exists."""
        if not await aiofiles.os.path.exists(path):
            await aiofiles.os.makedirs(path, exist_ok=True)

    def _shard(self, file_name: str) -> str:
        """Shard on the first 2 chars to avoid too many files in one directory."""
        return file_name[:2] if len(file_name) >= 2 else "00"

    def _object_path(self, name: str) -> Path:
        file_name = encode_name(name)
        return self.data_path / self._shard(file_name) / file_name

    def _meta_path(self, name: str) -> Path:
        file_name = encode_name(name)
        return self.meta_path / self._shard(file_name) / f"{file_name}.json"

    async def put(
        self,
        name: str,
        chunks: AsyncIterator[bytes],
        metadata: dict[str, Any] | None = None,
    ) -> int:
        """Write data and sidecar to temp files, then replace the object.

        The sidecar is swapped in only after the data file, so a failed
        write never pairs new metadata with old bytes.
        """
        object_path = self._object_path(name)
        meta_path = self._meta_path(name)
        await self._ensure_directory(object_path.parent)
        await self._ensure_directory(meta_path.parent)

        suffix = f"{uuid4().hex}.tmp"
        tmp_path = object_path.with_name(f".{object_path.name}.{suffix}")
        tmp_meta_path = meta_path.with_name(f".{meta_path.name}.{suffix}")
        size_bytes = 0
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    size_bytes += len(chunk)
            async with aiofiles.open(tmp_meta_path, "wb") as f:
                await f.write(orjson.dumps(metadata or {}))
            await aiofiles.os.replace(tmp_path, object_path)
            await aiofiles.os.replace(tmp_meta_path, meta_path)
        except BaseException:
            for path in (tmp_path, tmp_meta_path):
                if await aiofiles.os.path.exists(path):
                    await aiofiles.os.remove(path)
            raise

        logger.debug(f"Stored object {name} at {object_path} ({size_bytes} bytes)")
        return size_bytes

    async def size(self, name: str) -> int:
        object_path = self._object_path(name)
        try:
            stat = await aiofiles.os.stat(object_path)
        except FileNotFoundError:
            raise BlobNotFoundError(name) from None
        return cast(int, stat.st_size)

    async def read_range(self, name: str, offset: int, length: int) -> bytes:
        """Seek to ``offset`` and read at most ``length`` bytes."""
        object_path = self._object_path(name)
        try:
            async with aiofiles.open(object_path, "rb") as f:
                await f.seek(offset)
                return cast(bytes, await f.read(length))
        except FileNotFoundError:
            raise BlobNotFoundError(name) from None

    async def metadata(self, name: str) -> dict[str, Any]:
        if not await self.exists(name):
            raise BlobNotFoundError(name)
        try:
            async with aiofiles.open(self._meta_path(name), "rb") as f:
                return cast(dict[str, Any], orjson.loads(await f.read()))
        except FileNotFoundError:
            return {}

    async def exists(self, name: str) -> bool:
        return cast(bool, await aiofiles.os.path.isfile(self._object_path(name)))

    async def delete(self, name: str) -> bool:
        """Delete an object and its metadata sidecar."""
        object_path = self._object_path(name)
        if not await aiofiles.os.path.exists(object_path):
            return False

        await aiofiles.os.remove(object_path)
        meta_path = self._meta_path(name)
        if await aiofiles.os.path.exists(meta_path):
            await aiofiles.os.remove(meta_path)
        logger.debug(f"Deleted object at {object_path}")

        # Try to remove empty shard directories
        for parent in (object_path.parent, meta_path.parent):
            try:
                if not await aiofiles.os.listdir(parent):
                    await aiofiles.os.rmdir(parent)
            except OSError:
                pass  # Shard is shared or already gone

        return True

    async def delete_prefixed(self, prefix: str) -> int:
        """Delete objects whose decoded name starts with ``prefix``.

        Matching is done on decoded names with ``str.startswith``, so the
        prefix is always literal.
        """
        names = [name async for name in self._iter_names()]
        deleted = 0
        for name in names:
            if name.startswith(prefix) and await self.delete(name):
                deleted += 1
        return deleted

    async def _iter_names(self) -> AsyncIterator[str]:
        if not await aiofiles.os.path.isdir(self.data_path):
            return
        for shard in await aiofiles.os.listdir(self.data_path):
            shard_path = self.data_path / shard
            if not await aiofiles.os.path.isdir(shard_path):
                continue
            for file_name in await aiofiles.os.listdir(shard_path):
                if file_name.startswith("."):
                    continue  # in-flight temp file
                yield decode_name(file_name)
