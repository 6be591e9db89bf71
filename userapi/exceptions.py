"""
User API — Exception Hierarchy
===============================

What:  Application-specific failures, each carrying an HTTP status, a stable
       machine-readable code, a user-facing message and optional details.
Why:   Services raise typed failures; the error boundary is the single place
       that turns them into Failure envelopes.
How:   Every class sets `status_code` and `code`; `details` is returned to the
       client, `context` is only logged.

Exception Hierarchy:
    ApiError (base)
    ├── ValidationFailedError    → 400 VALIDATION_ERROR
    ├── UnauthorizedError        → 401 UNAUTHORIZED
    ├── ForbiddenError           → 403 FORBIDDEN
    ├── NotFoundError            → 404 NOT_FOUND
    ├── ConflictError            → 409 CONFLICT
    │   └── DuplicateEmailError  → 409 DUPLICATE_EMAIL
    ├── RateLimitExceededError   → 429 RATE_LIMIT_EXCEEDED
    ├── DatabaseError            → 500 DATABASE_ERROR
    └── InternalError            → 500 INTERNAL_ERROR
"""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException


class ApiError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        details:  Structured detail returned to the client (e.g. field errors)
        context:  Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.context = context or {}
        super().__init__(self.message)


class ValidationFailedError(ApiError):
    """
    Raised when client input fails validation.

    `details` is a list of {"field": "<section>.<path>", "message": ...}.
    """

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(
        self,
        errors: Optional[List[Dict[str, str]]] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, details=list(errors or []), context=context)
        self.errors = self.details


class UnauthorizedError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(ApiError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(ApiError):
    """
    Raised when a requested resource does not exist.

    The repository returns None for missing rows; services convert that into
    this exception so the route never has to build a 404 itself.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = resource_id
        super().__init__(message=f"{resource} not found", context=ctx)


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class DuplicateEmailError(ConflictError):
    code = "DUPLICATE_EMAIL"
    default_message = "Email already registered"


class RateLimitExceededError(ApiError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    `retry_after` is the number of seconds until the window resets.
    """

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, please try again later"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(context=ctx)
        self.retry_after = retry_after


class DatabaseError(ApiError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic. The original
        error (SQL, constraint names) is kept in `context` and logged only.
    """

    status_code = 500
    code = "DATABASE_ERROR"
    default_message = "A database error occurred. Please try again later."


class InternalError(ApiError):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"


def status_for_exception(exc: BaseException) -> int:
    """HTTP status the error boundary will assign to `exc`."""
    if isinstance(exc, (PydanticValidationError, RequestValidationError)):
        return 400
    if isinstance(exc, StarletteHTTPException):
        return exc.status_code
    if isinstance(exc, ApiError):
        return exc.status_code
    return 500
