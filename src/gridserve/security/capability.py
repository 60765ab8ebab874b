"""Signed, purpose-scoped capability tokens.

A capability is a bearer credential that grants one narrow action on one
stored object: reading it (``Purpose.BLOB_KEY``) or writing it
(``Purpose.BLOB_TOKEN``). It replaces session-based authorization for the
blob endpoints.

Token format::

    base64url(orjson({"claims": {...}, "purpose": "...", "expires_at": 1700000000.0}))
    + "." +
    base64url(HMAC-SHA256(secret, <encoded payload>))

The MAC covers the whole encoded payload, so claims, purpose and expiry are
all tamper-evident.

Example:
    signer = CapabilitySigner(secret_key)
    token = signer.generate({"key": "abc"}, purpose=Purpose.BLOB_KEY, expires_in=300)

    claims = signer.verified(token, purpose=Purpose.BLOB_KEY)
    if claims is None:
        ...  # treat as not found
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import orjson

from gridserve.errors import CapabilityInvalidError

SEPARATOR = "."


class Purpose(str, Enum):
    """What a capability may be used for. Purposes are never interchangeable."""

    BLOB_KEY = "blob_key"
    BLOB_TOKEN = "blob_token"


class InvalidCapability(ValueError):
    """Raised internally when a token cannot be decoded or verified."""


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(data + padding)
    except (binascii.Error, ValueError) as exc:
        raise InvalidCapability("Malformed base64 segment") from exc


class CapabilitySigner:
    """Generates and verifies HMAC-signed capability tokens.

    The signer holds only the read-only secret and is safe to share across
    concurrent requests.
    """

    def __init__(
        self,
        secret_key: str | bytes,
        *,
        digest: str = "sha256",
        clock: Callable[[], float] = time.time,
    ):
        if isinstance(secret_key, str):
            secret_key = secret_key.encode("utf-8")
        if not secret_key:
            raise ValueError("Capability secret key must not be empty")
        self.secret_key = secret_key
        self.digest = digest
        self._clock = clock

    def generate(
        self,
        claims: Mapping[str, Any],
        *,
        purpose: Purpose,
        expires_in: float | timedelta | None = None,
        expires_at: datetime | None = None,
    ) -> str:
        """Sign claims for a purpose, optionally expiring.

        Args:
            claims: JSON-serializable claims payload
            purpose: Purpose the token is valid for
            expires_in: Lifetime in seconds (or timedelta); None never expires
            expires_at: Absolute expiry, takes precedence over expires_in

        Returns:
            URL-safe token string
        """
        payload = {
            "claims": dict(claims),
            "purpose": Purpose(purpose).value,
            "expires_at": self._expiry(expires_in, expires_at),
        }
        encoded = _b64encode(orjson.dumps(payload))
        return f"{encoded}{SEPARATOR}{self._sign(encoded)}"

    def verified(self, token: object, *, purpose: Purpose) -> dict[str, Any] | None:
        """Return the claims if the token is valid for ``purpose``, else None.

        Never raises: callers map every failure to "not found" so that a bad
        token is indistinguishable from a missing object.
        """
        try:
            return self._decode(token, purpose)
        except InvalidCapability:
            return None

    def verify(self, token: object, *, purpose: Purpose) -> dict[str, Any]:
        """Strict variant of :meth:`verified`.

        Raises:
            CapabilityInvalidError: If the token fails any check
        """
        claims = self.verified(token, purpose=purpose)
        if claims is None:
            raise CapabilityInvalidError()
        return claims

    def _expiry(
        self, expires_in: float | timedelta | None, expires_at: datetime | None
    ) -> float | None:
        if expires_at is not None:
            return expires_at.timestamp()
        if expires_in is None:
            return None
        if isinstance(expires_in, timedelta):
            expires_in = expires_in.total_seconds()
        return self._clock() + float(expires_in)

    def _sign(self, encoded: str) -> str:
        mac = hmac.new(self.secret_key, encoded.encode("ascii"), self.digest)
        return _b64encode(mac.digest())

    def _decode(self, token: object, purpose: Purpose) -> dict[str, Any]:
        if not isinstance(token, str) or SEPARATOR not in token:
            raise InvalidCapability("Token is not a signed capability")

        encoded, _, signature = token.rpartition(SEPARATOR)
        if not encoded or not signature:
            raise InvalidCapability("Token is missing payload or signature")

        try:
            expected = self._sign(encoded)
        except UnicodeEncodeError as exc:
            raise InvalidCapability("Payload is not ASCII") from exc
        if not hmac.compare_digest(signature.encode("ascii", "replace"), expected.encode("ascii")):
            raise InvalidCapability("Signature mismatch")

        try:
            payload = orjson.loads(_b64decode(encoded))
        except orjson.JSONDecodeError as exc:
            raise InvalidCapability("Payload is not JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("claims"), dict):
            raise InvalidCapability("Payload has no claims")

        if payload.get("purpose") != Purpose(purpose).value:
            raise InvalidCapability("Purpose mismatch")

        expires_at = payload.get("expires_at")
        if expires_at is not None:
            if not isinstance(expires_at, (int, float)) or self._clock() >= expires_at:
                raise InvalidCapability("Capability expired")

        return payload["claims"]


def generate_secret_key(length: int = 32) -> str:
    """Generate a cryptographically secure secret key.

    Args:
        length: Length of key in bytes (will be base64 encoded)

    Returns:
        Base64-encoded secret key
    """
    import secrets

    return base64.b64encode(secrets.token_bytes(length)).decode("ascii")
