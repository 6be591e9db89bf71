"""
User API — Error Boundary
==========================

What:  Turns any failure raised downstream into a Failure envelope.
Why:   One place decides status, code and message for every error, so routes
       and services only raise typed exceptions and never format responses.
How:   ErrorBoundaryMiddleware wraps everything after CORS. Starlette converts
       HTTPException and RequestValidationError into responses inside the
       router, before middleware can see them, so exception handlers for those
       two types are registered too; both paths call `translate_failure`.

Translation (first match wins):
    1. Validation failure            → 400 VALIDATION_ERROR + field details
    2. HTTPException (protocol)      → its status, HTTP_ERROR
                                       (router 404 → NOT_FOUND "Not found")
    3. ApiError (domain)             → its status / code / message / details
    4. Anything else                 → 500 INTERNAL_ERROR; own message outside
                                       production, "Internal server error" in it

Security: stack traces and error context are logged server-side only.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from userapi.config import settings
from userapi.exceptions import ApiError, ValidationFailedError
from userapi.middleware.rate_limit import rate_limit_headers
from userapi.middleware.request_id import REQUEST_ID_HEADER
from userapi.pipeline import RequestContext, get_request_context
from userapi.utils.response import error_response

logger = logging.getLogger(__name__)

GENERIC_INTERNAL_MESSAGE = "Internal server error"

# FastAPI reports path parameters under "path"; the envelope calls them params
_SECTION_NAMES = {"path": "params"}

# Pydantic prefixes messages raised from custom validators with this
_VALUE_ERROR_PREFIX = "Value error, "


def field_errors(errors: List[Dict[str, Any]], section: Optional[str] = None) -> List[Dict[str, str]]:
    """
    Pydantic error dicts → [{"field": "<section>.<dotted.loc>", "message": ...}].

    Without `section`, the first loc element is taken as the section
    (FastAPI's RequestValidationError reports ("body", "email")).
    """
    result = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if section is None and loc:
            head, loc = _SECTION_NAMES.get(loc[0], loc[0]), loc[1:]
        else:
            head = section
        field = ".".join([p for p in [head] + loc if p])
        message = err.get("msg", "Invalid value")
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        result.append({"field": field or "body", "message": message})
    return result


def classify_failure(exc: BaseException) -> Tuple[int, str, str, Optional[Any], Optional[Dict[str, str]]]:
    """(status, code, message, details, headers) for `exc`."""
    if isinstance(exc, ValidationFailedError):
        return exc.status_code, exc.code, exc.message, exc.details, None
    if isinstance(exc, RequestValidationError):
        return 400, "VALIDATION_ERROR", "Validation failed", field_errors(exc.errors()), None
    if isinstance(exc, PydanticValidationError):
        return 400, "VALIDATION_ERROR", "Validation failed", field_errors(exc.errors(), "body"), None

    if isinstance(exc, StarletteHTTPException):
        headers = dict(exc.headers) if exc.headers else None
        if exc.status_code == 404:
            message = exc.detail if exc.detail and exc.detail != "Not Found" else "Not found"
            return 404, "NOT_FOUND", message, None, headers
        return exc.status_code, "HTTP_ERROR", str(exc.detail), None, headers

    if isinstance(exc, ApiError):
        headers = None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None:
            headers = {"Retry-After": str(retry_after)}
        return exc.status_code, exc.code, exc.message, exc.details, headers

    message = str(exc) or exc.__class__.__name__
    if settings.is_production:
        message = GENERIC_INTERNAL_MESSAGE
    return 500, "INTERNAL_ERROR", message, None, None


def translate_failure(exc: BaseException, ctx: RequestContext) -> JSONResponse:
    """Logs `exc` with the request's correlation ID and builds its envelope."""
    status, code, message, details, headers = classify_failure(exc)
    rid = ctx.correlation_id

    if status >= 500:
        context = getattr(exc, "context", None)
        logger.error(
            "[%s] %s: %s | Context: %s",
            rid,
            exc.__class__.__name__,
            str(exc),
            context or {},
            exc_info=exc,
            extra={"request_id": rid or "-"},
        )
    else:
        logger.warning(
            "[%s] %s (%d %s): %s",
            rid,
            exc.__class__.__name__,
            status,
            code,
            message,
            extra={"request_id": rid or "-"},
        )

    return error_response(
        message,
        code=code,
        status_code=status,
        details=details,
        request_id=rid,
        headers=headers,
    )


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """
    Outermost stage that can call onward (only security headers and CORS sit
    outside it), so it sees failures from every later stage and the handler.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        ctx = get_request_context(request)
        try:
            return await call_next(request)
        except Exception as exc:
            response = translate_failure(exc, ctx)
            # Inner stages never saw a response to decorate; do it for them
            if ctx.correlation_id:
                response.headers[REQUEST_ID_HEADER] = ctx.correlation_id
            if ctx.rate_limit is not None and ctx.rate_limit.limit:
                for name, value in rate_limit_headers(ctx.rate_limit).items():
                    response.headers.setdefault(name, value)
            return response


def register_exception_handlers(app: FastAPI) -> None:
    """
    Routes framework-raised HTTP and request-validation errors through the
    same translation as the boundary.
    """

    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return translate_failure(exc, get_request_context(request))

    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return translate_failure(exc, get_request_context(request))

    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
