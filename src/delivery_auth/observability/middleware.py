"""
delivery_auth.observability.middleware

HTTP middleware for request-scoped logging context.

Responsibilities:
- Generate/propagate request IDs.
- Bind request and client metadata into structlog contextvars.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds `request_id`, path, method and the calling client's platform for every
    log line emitted while a screen request is served.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        context = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        platform = request.headers.get("x-client-platform")
        if platform:
            context["client_platform"] = platform
        structlog.contextvars.bind_contextvars(**context)
        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.clear_contextvars()

        response.headers["x-request-id"] = request_id
        return response


# --- Module Notes -----------------------------------------------------------
# Timer-driven work (activity monitor, periodic validation) runs outside any request
# and therefore logs without a request id.
