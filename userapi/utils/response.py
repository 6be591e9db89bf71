"""
User API — Response Envelope Helpers
=====================================

What:  Builders for the uniform success/failure JSON envelope.
Why:   Handlers, the validation stage, the rate limiter and the error boundary
       all answer in the same shape; building it in one module keeps the
       contract in one place.
How:   Data is passed through FastAPI's `jsonable_encoder` with `by_alias=True`
       so Pydantic models serialize with their camelCase aliases and datetimes
       become ISO strings.
"""

from typing import Any, Dict, List, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from userapi.schemas.common import PaginationMeta


def success_payload(data: Any = None, meta: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"success": True, "data": jsonable_encoder(data, by_alias=True)}
    if meta:
        payload["meta"] = jsonable_encoder(meta, by_alias=True)
    return payload


def success_response(
    data: Any = None,
    meta: Optional[Mapping[str, Any]] = None,
    status_code: int = 200,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=success_payload(data, meta),
        headers=dict(headers) if headers else None,
    )


def paginated_response(items: List[Any], pagination: PaginationMeta) -> JSONResponse:
    """List payload with pagination metadata under `meta.pagination`."""
    return success_response(items, meta={"pagination": pagination})


def error_payload(
    message: str,
    code: str,
    request_id: Optional[str] = None,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message, "code": code}
    if details:
        error["details"] = jsonable_encoder(details)
    return {"success": False, "error": error, "requestId": request_id}


def error_response(
    message: str,
    code: str = "ERROR",
    status_code: int = 400,
    details: Optional[Any] = None,
    request_id: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_payload(message, code, request_id, details),
        headers=dict(headers) if headers else None,
    )


def validation_error_response(
    errors: List[Dict[str, str]],
    request_id: Optional[str] = None,
) -> JSONResponse:
    return error_response(
        "Validation failed",
        code="VALIDATION_ERROR",
        status_code=400,
        details=errors,
        request_id=request_id,
    )
