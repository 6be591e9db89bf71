"""
User API — Validation Stage
============================

What:  Route stage that validates body, query and path params against
       Pydantic models before the handler runs.
Why:   Handlers receive typed values only; clients receive every field error
       of every section in one 400 response instead of one at a time.
How:   Each configured section is validated independently and its errors are
       collected. Any error short-circuits with a VALIDATION_ERROR envelope;
       otherwise the validated models are stored on `ctx.validated`.

Field names: "<section>.<dotted path>" (e.g. "body.email", "params.id").
An unparsable JSON body is reported as {"field": "body", "message": "Invalid JSON"}
and the other sections are still validated.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError
from starlette.responses import Response

from userapi.middleware.error_boundary import field_errors
from userapi.pipeline import Handler, RequestContext
from userapi.utils.response import validation_error_response

logger = logging.getLogger(__name__)

INVALID_JSON = {"field": "body", "message": "Invalid JSON"}


def validate_section(
    model: Type[BaseModel], raw: Any, section: str
) -> Tuple[Optional[BaseModel], List[Dict[str, str]]]:
    """Validates `raw` against `model`. Returns (instance, []) or (None, errors)."""
    try:
        return model.model_validate(raw), []
    except ValidationError as exc:
        return None, field_errors(exc.errors(), section)


class ValidationStage:
    """
    Validates up to three request sections.

    Args:
        body:   Model for the JSON body
        query:  Model for the query string (values are strings)
        params: Model for the path parameters (values are strings)
    """

    def __init__(
        self,
        body: Optional[Type[BaseModel]] = None,
        query: Optional[Type[BaseModel]] = None,
        params: Optional[Type[BaseModel]] = None,
    ):
        self.body = body
        self.query = query
        self.params = params

    async def handle(self, ctx: RequestContext, call_next: Handler) -> Response:
        request = ctx.request
        errors: List[Dict[str, str]] = []
        validated: Dict[str, Any] = {}

        if self.body is not None:
            try:
                raw_body = await request.json()
            except ValueError:
                errors.append(dict(INVALID_JSON))
            else:
                data, section_errors = validate_section(self.body, raw_body, "body")
                errors.extend(section_errors)
                validated["body"] = data

        if self.query is not None:
            data, section_errors = validate_section(
                self.query, dict(request.query_params), "query"
            )
            errors.extend(section_errors)
            validated["query"] = data

        if self.params is not None:
            data, section_errors = validate_section(
                self.params, dict(request.path_params), "params"
            )
            errors.extend(section_errors)
            validated["params"] = data

        if errors:
            logger.debug("Validation failed for %s: %s", request.url.path, errors)
            return validation_error_response(errors, ctx.correlation_id)

        ctx.validated.update(validated)
        return await call_next(ctx)
