"""Request correlation middleware.

Binds a request ID and a correlation ID to the logging context for the
lifetime of each HTTP request and echoes both back as response headers:

- x-request-id: taken from the request, or generated
- x-correlation-id: passed through from upstream, defaulting to the request ID

Written as plain ASGI so streamed upload and download bodies pass through
untouched.
"""

from __future__ import annotations

import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gridserve.observability.logging import correlation_id_var, request_id_var


class CorrelationMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = headers.get("x-request-id") or str(uuid.uuid4())
        correlation_id = headers.get("x-correlation-id") or request_id

        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id
        scope["state"]["correlation_id"] = correlation_id

        async def send_with_ids(message: Message) -> None:
            if message["type"] == "http.response.start":
                response_headers = MutableHeaders(scope=message)
                response_headers["x-request-id"] = request_id
                response_headers["x-correlation-id"] = correlation_id
            await send(message)

        request_token = request_id_var.set(request_id)
        correlation_token = correlation_id_var.set(correlation_id)
        try:
            await self.app(scope, receive, send_with_ids)
        finally:
            request_id_var.reset(request_token)
            correlation_id_var.reset(correlation_token)
