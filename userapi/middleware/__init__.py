# Middleware package init
"""
User API — Request Pipeline Stages
===================================

What:  Cross-cutting stages every request (or every user route) passes through.
Why:   Headers, correlation, logging, limiting, validation and auth are applied
       once here instead of being repeated in each route handler.

Global chain (Starlette middleware, outermost first):
    Request → [Security Headers] → [CORS] → [Error Boundary] → [Request ID]
            → [Logging] → [Rate Limit] → Router

Route chain (per route, see userapi.pipeline.build_chain):
    Router → [Validation] → [Auth] → Handler

    Why this order:
    1. Security headers outermost so even CORS preflights carry them
    2. The error boundary wraps every stage that can fail
    3. Request ID before logging, which reads it
    4. Rate limit after logging, so denied requests are still logged
    5. Validation before auth: malformed requests are rejected cheaply

    Responses unwind in reverse; each stage decorates the response only after
    its inner chain has returned.
"""

from typing import List, Optional

from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from userapi.config import settings
from userapi.middleware.error_boundary import ErrorBoundaryMiddleware
from userapi.middleware.logging import RequestLoggingMiddleware
from userapi.middleware.rate_limit import RateLimitMiddleware, RateLimitStore
from userapi.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware
from userapi.middleware.security_headers import SecurityHeadersMiddleware

CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", REQUEST_ID_HEADER]
CORS_EXPOSED_HEADERS = [
    REQUEST_ID_HEADER,
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "Retry-After",
]


def build_middleware(
    store: RateLimitStore,
    rate_limit_max: Optional[int] = None,
    rate_limit_window_ms: Optional[int] = None,
) -> List[Middleware]:
    """
    The global chain, outermost first.

    Starlette wraps the list right-to-left, so the first entry sees the
    request first and the response last.
    """
    origins = settings.cors_origins_list
    return [
        Middleware(SecurityHeadersMiddleware),
        Middleware(
            CORSMiddleware,
            allow_origins=origins,
            # Credentials cannot be combined with a wildcard origin
            allow_credentials=origins != ["*"],
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
            expose_headers=CORS_EXPOSED_HEADERS,
            max_age=86400,
        ),
        Middleware(ErrorBoundaryMiddleware),
        Middleware(RequestIDMiddleware),
        Middleware(RequestLoggingMiddleware),
        Middleware(
            RateLimitMiddleware,
            store=store,
            max_requests=rate_limit_max,
            window_ms=rate_limit_window_ms,
        ),
    ]
