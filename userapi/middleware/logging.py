"""
User API — Request Logging Middleware
======================================

What:  One structured record when a request arrives, one when it completes.
Why:   Enables monitoring, debugging, alerting, and performance analysis.
How:   Fields are passed through `extra=` so a JSON formatter can index them;
       the message itself stays human-readable.

Entry record (INFO):
    method, path, query, request_id, user_agent, timestamp
Exit record:
    + status, duration_ms; level ERROR for 5xx, WARNING for 4xx, else INFO

What we DON'T log: request bodies (passwords), Authorization headers.
"""

import logging
import time
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from userapi.exceptions import status_for_exception
from userapi.pipeline import get_request_context

logger = logging.getLogger("userapi.access")


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Access logging stage.

    Runs after the request ID stage and wraps rate limiting, validation and
    the handler, so duration_ms covers all of them.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start_time = time.perf_counter()

        method = request.method
        path = request.url.path
        rid = get_request_context(request).correlation_id

        logger.info(
            "--> %s %s",
            method,
            path,
            extra={
                "type": "request",
                "request_id": rid,
                "method": method,
                "path": path,
                "query": dict(request.query_params),
                "user_agent": request.headers.get("user-agent"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            # The boundary will answer; record the status it is going to use
            self._log_exit(method, path, rid, status_for_exception(exc), start_time)
            raise

        self._log_exit(method, path, rid, response.status_code, start_time)
        return response

    def _log_exit(self, method: str, path: str, rid, status: int, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.log(
            level_for_status(status),
            "<-- %s %s %d %.1fms",
            method,
            path,
            status,
            duration_ms,
            extra={
                "type": "response",
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
