"""
AllerScan Backend — Request ID Middleware
===========================================

What:  Assigns a correlation ID to each request and echoes it back.
How:   Reuses the client's X-Request-ID header when present, otherwise an
       8-character UUID prefix. The ID is stored in a ContextVar read by the
       access log and every error handler, and in request.state for routes.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Sets request_id_var for the request and adds the X-Request-ID response header."""

    HEADER = "X-Request-ID"

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(self.HEADER) or str(uuid.uuid4())[:8]

        # Not reset afterwards: the catch-all 500 handler runs outside this
        # middleware and still needs the ID.
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers[self.HEADER] = rid
        return response
