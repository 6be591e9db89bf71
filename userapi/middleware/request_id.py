"""
User API — Request ID Middleware
=================================

What:  Assigns a correlation ID to each request and echoes it in the response.
Why:   Every log line of a request shares the ID; clients quote it in bug
       reports; upstream services can pass their own ID to keep one trace.
How:   Reuses a non-empty inbound X-Request-ID, otherwise generates a UUID4.
       Stores it on the request context and in a ContextVar (read by the
       logging filter), then sets the response header after the chain unwinds.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from userapi.pipeline import get_request_context

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on one thread each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdLogFilter(logging.Filter):
    """Adds `request_id` to every log record emitted while a request runs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get("") or "-"
        return True


def new_request_id() -> str:
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Correlation ID stage. Must run before logging (which reads the ID)."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or new_request_id()

        ctx = get_request_context(request)
        ctx.correlation_id = rid
        request_id_var.set(rid)

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = rid
        return response
