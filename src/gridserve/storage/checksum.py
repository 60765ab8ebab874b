"""Upload integrity verification.

Checksums are base64-encoded MD5 digests, the encoding clients compute
before a direct upload and declare in the upload capability.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from collections.abc import AsyncIterable
from typing import BinaryIO

from gridserve.errors import IntegrityError

Content = bytes | bytearray | memoryview | BinaryIO | AsyncIterable[bytes]


def compute_checksum(data: bytes) -> str:
    """Compute the base64-encoded MD5 digest of ``data``."""
    digest = hashlib.md5(data, usedforsecurity=False).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_checksum(data: bytes, expected: str | None, key: str = "") -> None:
    """Raise IntegrityError unless ``data`` hashes to ``expected``.

    A missing ``expected`` checksum skips verification.
    """
    if expected is None:
        return
    actual = compute_checksum(data)
    if not hmac.compare_digest(actual.encode("ascii"), expected.encode("utf-8")):
        raise IntegrityError(key, expected, actual)


class ChecksumVerifier:
    """Buffers upload content and checks it against a declared checksum."""

    @staticmethod
    async def buffer(content: Content) -> bytes:
        """Fully materialize content so it can be hashed and then forwarded.

        File-like objects are rewound afterwards when they support it.
        """
        if isinstance(content, (bytes, bytearray, memoryview)):
            return bytes(content)
        if isinstance(content, AsyncIterable):
            return b"".join([chunk async for chunk in content])

        data = content.read()
        if content.seekable():
            content.seek(0)
        return bytes(data)

    async def verify(self, key: str, content: Content, expected: str | None) -> bytes:
        """Buffer ``content``, verify it, and return the verified bytes."""
        data = await self.buffer(content)
        verify_checksum(data, expected, key)
        return data
