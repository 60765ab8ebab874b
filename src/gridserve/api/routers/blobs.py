"""Capability-addressed blob endpoints.

- GET/HEAD {prefix}/{encoded_key}/{filename}: serve a blob, honouring Range
- PUT {prefix}/{encoded_token}: direct upload of a blob body

Both endpoints answer 404 for a capability that fails verification, the
same as for a missing object.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import Response, StreamingResponse

from gridserve.api.deps import BlobStoreDep, SettingsDep, SignerDep
from gridserve.errors import CapabilityInvalidError, ContentMismatchError, RangeNotSatisfiableError
from gridserve.security.capability import Purpose
from gridserve.storage.checksum import ChecksumVerifier
from gridserve.storage.ranges import RangeKind, select_range

router = APIRouter(tags=["Blob Storage"])


def _claimed_key(claims: dict[str, Any]) -> str:
    key = claims.get("key")
    if not isinstance(key, str) or not key:
        raise CapabilityInvalidError("Capability carries no key")
    return key


def _media_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower()


def _check_declared_content(claims: dict[str, Any], request: Request) -> int:
    """Reject requests whose type or declared length disagree with the token."""
    expected_type = _media_type(claims.get("content_type"))
    if _media_type(request.headers.get("content-type")) != expected_type:
        raise ContentMismatchError("Content-Type does not match the upload capability")

    expected_length = claims.get("content_length")
    if not isinstance(expected_length, int) or isinstance(expected_length, bool):
        raise ContentMismatchError("Upload capability declares no content length")

    declared = request.headers.get("content-length")
    if declared is not None and declared != str(expected_length):
        raise ContentMismatchError("Content-Length does not match the upload capability")
    return expected_length


async def _length_checked(body: AsyncIterator[bytes], expected: int) -> AsyncIterator[bytes]:
    """Pass the body through, failing if it is not exactly ``expected`` bytes.

    Raising inside the engine's write aborts the commit.
    """
    received = 0
    async for chunk in body:
        received += len(chunk)
        if received > expected:
            raise ContentMismatchError("Body is longer than the upload capability allows")
        if chunk:
            yield chunk
    if received != expected:
        raise ContentMismatchError("Body is shorter than the upload capability declares")


@router.api_route("/{encoded_key}/{filename:path}", methods=["GET", "HEAD"])
async def show(
    encoded_key: str,
    filename: str,
    request: Request,
    store: BlobStoreDep,
    signer: SignerDep,
    config: SettingsDep,
) -> Response:
    """Serve a blob: 200 full body, 206 single range, or 416."""
    claims = signer.verify(encoded_key, purpose=Purpose.BLOB_KEY)
    key = _claimed_key(claims)

    headers = {
        "Content-Type": claims.get("content_type") or config.default_content_type,
        "Content-Disposition": claims.get("disposition") or config.default_disposition,
        "Accept-Ranges": "bytes",
    }

    total_length = await store.length(key)
    selection = select_range(request.headers.get("range"), total_length)

    if selection.kind is RangeKind.UNSATISFIABLE:
        raise RangeNotSatisfiableError(total_length)

    if selection.serves_full_body or selection.byte_range is None:
        headers["Content-Length"] = str(total_length)
        if request.method == "HEAD":
            return Response(status_code=200, headers=headers)
        return StreamingResponse(store.stream(key), status_code=200, headers=headers)

    byte_range = selection.byte_range
    headers["Content-Range"] = byte_range.content_range(total_length)
    headers["Content-Length"] = str(byte_range.size)
    if request.method == "HEAD":
        return Response(status_code=206, headers=headers)
    if byte_range.size > store.chunk_size:
        return StreamingResponse(store.stream(key, byte_range), status_code=206, headers=headers)
    return Response(
        content=await store.download_chunk(key, byte_range), status_code=206, headers=headers
    )


@router.put("/{encoded_token}", status_code=204)
async def update(
    encoded_token: str,
    request: Request,
    store: BlobStoreDep,
    signer: SignerDep,
) -> Response:
    """Accept a direct upload authorized by a BLOB_TOKEN capability."""
    claims = signer.verify(encoded_token, purpose=Purpose.BLOB_TOKEN)
    key = _claimed_key(claims)
    expected_length = _check_declared_content(claims, request)

    checksum = claims.get("checksum")
    if checksum is not None:
        # The digest needs the whole body; buffering stops once it outgrows the capability
        body = await ChecksumVerifier.buffer(_length_checked(request.stream(), expected_length))
        await store.upload(key, body, checksum=checksum)
    else:
        await store.upload(key, _length_checked(request.stream(), expected_length))

    return Response(status_code=204)
