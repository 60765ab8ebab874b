"""HTTP mapping of gridserve domain errors.

Blob endpoints answer failures with a bare status code and no body, so a
client cannot tell an invalid capability from a missing object. Only
unexpected faults get a JSON body (and a log entry).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.responses import Response

from gridserve.errors import (
    BlobNotFoundError,
    CapabilityInvalidError,
    ContentMismatchError,
    GridServeError,
    IntegrityError,
    RangeNotSatisfiableError,
)
from gridserve.storage.ranges import unsatisfiable_content_range

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[GridServeError], int] = {
    CapabilityInvalidError: 404,
    BlobNotFoundError: 404,
    IntegrityError: 422,
    ContentMismatchError: 422,
    RangeNotSatisfiableError: 416,
}


class ErrorBody(BaseModel):
    """Body of a 500 response."""

    code: str
    text: str
    timestamp: str


def status_for(exc: GridServeError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_CODES:
            return STATUS_CODES[error_type]
    return 500


async def gridserve_exception_handler(request: Request, exc: GridServeError) -> Response:
    """Exception handler for domain errors."""
    status_code = status_for(exc)
    headers: dict[str, str] = {}
    if isinstance(exc, RangeNotSatisfiableError):
        headers["Content-Range"] = unsatisfiable_content_range(exc.total_length)
    logger.info(
        f"{request.method} {request.url.path} -> {status_code}",
        extra={"error": type(exc).__name__, "status_code": status_code},
    )
    return Response(status_code=status_code, headers=headers)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Exception handler for unexpected errors, storage engine faults included."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=ErrorBody(
            code="InternalServerError",
            text="An unexpected error occurred",
            timestamp=datetime.now(UTC).isoformat(),
        ).model_dump(),
    )
