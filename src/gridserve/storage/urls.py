"""URL issuance for direct downloads and direct uploads.

URLs embed a signed capability instead of relying on a session:

- read:   {base_url}{prefix}/{blob_key token}/{filename}?content_type=...&disposition=...
- upload: {base_url}{prefix}/{blob_token token}

Public and private URLs share the same mechanics; public ones simply never
expire. Host and route come from explicit configuration rather than from
the current request.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Any
from urllib.parse import quote, urlencode

from gridserve.security.capability import CapabilitySigner, Purpose

logger = logging.getLogger(__name__)

DISPOSITION_TYPES = {"inline", "attachment"}

_NON_ASCII_OR_QUOTE = re.compile(r'[^\x20-\x7e]|["\\]')


def content_disposition(disposition: str | None, filename: str | None) -> str:
    """Build a Content-Disposition header value (RFC 6266).

    Unknown disposition types fall back to ``inline``. The filename is sent
    twice: an ASCII fallback in ``filename`` and the exact UTF-8 name in
    ``filename*``.
    """
    disposition_type = (disposition or "inline").lower()
    if disposition_type not in DISPOSITION_TYPES:
        disposition_type = "inline"
    if not filename:
        return disposition_type

    ascii_name = _NON_ASCII_OR_QUOTE.sub(
        lambda m: "\\" + m.group(0) if m.group(0) in '"\\' else "?", filename
    )
    encoded_name = quote(filename, safe="")
    return f"{disposition_type}; filename=\"{ascii_name}\"; filename*=UTF-8''{encoded_name}"


class UrlIssuer:
    """Builds capability-bearing URLs for the blob endpoints."""

    def __init__(
        self,
        signer: CapabilitySigner,
        *,
        base_url: str,
        route_prefix: str = "/storage/gridfs",
        public: bool = False,
        default_expires_in: float | timedelta | None = 300,
    ):
        """Initialize the issuer.

        Args:
            signer: Signs the embedded capabilities
            base_url: Scheme and host clients reach the service on
            route_prefix: Path the blob router is mounted at
            public: Whether url() hands out public (non-expiring) URLs
            default_expires_in: Lifetime of private URLs when not given
        """
        self.signer = signer
        self.base_url = base_url.rstrip("/")
        self.route_prefix = "/" + route_prefix.strip("/") if route_prefix.strip("/") else ""
        self.public = public
        self.default_expires_in = default_expires_in

    def _endpoint(self, token: str) -> str:
        return f"{self.base_url}{self.route_prefix}/{token}"

    def url_for_read(
        self,
        key: str,
        *,
        filename: str,
        content_type: str | None,
        disposition: str | None,
        expires_in: float | timedelta | None,
    ) -> str:
        """Build a download URL carrying a BLOB_KEY capability."""
        header = content_disposition(disposition, filename)
        token = self.signer.generate(
            {"key": key, "disposition": header, "content_type": content_type},
            purpose=Purpose.BLOB_KEY,
            expires_in=expires_in,
        )

        query = {"disposition": header}
        if content_type:
            query["content_type"] = content_type
        url = f"{self._endpoint(token)}/{quote(filename, safe='')}?{urlencode(query)}"
        logger.debug(f"Issued read URL for {key}", extra={"key": key, "expires_in": expires_in})
        return url

    def private_url(
        self,
        key: str,
        *,
        filename: str,
        content_type: str | None,
        disposition: str | None = "inline",
        expires_in: float | timedelta | None = None,
    ) -> str:
        """Expiring download URL."""
        if expires_in is None:
            expires_in = self.default_expires_in
        return self.url_for_read(
            key,
            filename=filename,
            content_type=content_type,
            disposition=disposition,
            expires_in=expires_in,
        )

    def public_url(
        self,
        key: str,
        *,
        filename: str,
        content_type: str | None = None,
        disposition: str | None = "attachment",
    ) -> str:
        """Non-expiring download URL."""
        return self.url_for_read(
            key,
            filename=filename,
            content_type=content_type,
            disposition=disposition,
            expires_in=None,
        )

    def url(self, key: str, **options: Any) -> str:
        """Public or private download URL depending on configuration."""
        if self.public:
            options.pop("expires_in", None)
            return self.public_url(key, **options)
        return self.private_url(key, **options)

    def url_for_direct_upload(
        self,
        key: str,
        *,
        content_type: str,
        content_length: int,
        checksum: str | None,
        expires_in: float | timedelta | None = None,
    ) -> str:
        """Build an upload URL carrying a BLOB_TOKEN capability."""
        if expires_in is None:
            expires_in = self.default_expires_in
        token = self.signer.generate(
            {
                "key": key,
                "content_type": content_type,
                "content_length": content_length,
                "checksum": checksum,
            },
            purpose=Purpose.BLOB_TOKEN,
            expires_in=expires_in,
        )
        logger.debug(f"Issued upload URL for {key}", extra={"key": key, "expires_in": expires_in})
        return self._endpoint(token)

    def headers_for_direct_upload(self, key: str, *, content_type: str, **_: Any) -> dict[str, str]:
        """Headers the client must send with the direct upload."""
        return {"Content-Type": content_type}
