"""
User API — Envelope, Pagination and Health Schemas
===================================================

What:  Pydantic models describing the uniform response envelope.
Why:   Every endpoint answers with the same top-level shape so clients can
       branch on `success` without knowing the endpoint.

Success:
    {"success": true, "data": <any>, "meta": {...}}          (meta optional)
Failure:
    {"success": false,
     "error": {"message": str, "code": str, "details": [...]}, (details optional)
     "requestId": str | null}

The helpers in `userapi.utils.response` build these payloads; the models here
document them in OpenAPI and give tests a typed view.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API models whose JSON keys are camelCase."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
    }


class FieldError(BaseModel):
    field: str = Field(description="'<section>.<dotted path>', e.g. 'body.email'")
    message: str


class ErrorBody(BaseModel):
    message: str = Field(description="Human-readable error description")
    code: str = Field(description="Stable machine-readable code, e.g. NOT_FOUND")
    details: Optional[List[Any]] = Field(default=None, description="Field-level details")


class ErrorEnvelope(CamelModel):
    success: Literal[False] = False
    error: ErrorBody
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class SuccessEnvelope(BaseModel):
    success: Literal[True] = True
    data: Any = None
    meta: Optional[dict] = None


class PaginationMeta(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ServicesStatus(BaseModel):
    database: Literal["connected", "disconnected"]


class HealthStatus(BaseModel):
    """Payload of GET /health (wrapped in a success envelope)."""

    status: Literal["ok", "degraded"]
    timestamp: str = Field(description="ISO 8601 UTC time of the check")
    uptime: float = Field(description="Seconds since the process started")
    services: ServicesStatus
