"""OpenAPI fragments for routes whose input is validated by route stages."""

from typing import Any, Dict, Type

from pydantic import BaseModel

from userapi.schemas.common import ErrorEnvelope


def json_body(model: Type[BaseModel]) -> Dict[str, Any]:
    """`openapi_extra` documenting `model` as the required JSON request body."""
    return {
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": model.model_json_schema(by_alias=True)}
            },
        }
    }


def error_responses(*statuses: int) -> Dict[int, Dict[str, Any]]:
    descriptions = {
        400: "Validation failed",
        401: "Missing or invalid bearer token",
        403: "Forbidden",
        404: "Not found",
        409: "Email already registered",
        429: "Rate limit exceeded",
        500: "Server error",
        503: "Service degraded",
    }
    return {
        status: {"description": descriptions.get(status, "Error"), "model": ErrorEnvelope}
        for status in statuses
    }
