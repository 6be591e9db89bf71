"""
User API — User Route Handlers
===============================

What:  CRUD endpoints for the user resource under /api/v1/users.
Why:   The public surface of the service.
How:   Every endpoint runs [ValidationStage, AuthStage] and then a handler that
       reads the validated sections from the request context, calls
       UserService and wraps the result in a success envelope.

Validation per endpoint:
    list:   query  (page, limit, sort, search)
    get:    params (id)
    create: body   (name, email, password)
    update: params + body (name, email, password, isActive; all optional)
    delete: params
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.database import get_db_session
from userapi.middleware.auth import AuthStage
from userapi.middleware.validation import ValidationStage
from userapi.pipeline import RequestContext, run_stages
from userapi.routes.openapi import error_responses, json_body
from userapi.schemas.user import UserCreate, UserIdParams, UserListQuery, UserUpdate
from userapi.services.user_service import user_service
from userapi.utils.response import paginated_response, success_response

logger = logging.getLogger(__name__)

# ── Router Configuration ──────────────────────────────────────────────────
router = APIRouter(prefix="/api/v1/users", tags=["Users"])

# ── Route Stages ──────────────────────────────────────────────────────────
# Stages hold no per-request state, so one chain definition serves all requests
LIST_STAGES = [ValidationStage(query=UserListQuery), AuthStage()]
GET_STAGES = [ValidationStage(params=UserIdParams), AuthStage()]
CREATE_STAGES = [ValidationStage(body=UserCreate), AuthStage()]
UPDATE_STAGES = [ValidationStage(params=UserIdParams, body=UserUpdate), AuthStage()]
DELETE_STAGES = [ValidationStage(params=UserIdParams), AuthStage()]


@router.get(
    "",
    summary="List users",
    description=(
        "Paginated list of users. `page` (≥1) and `limit` (1-100, default 10) "
        "are clamped; `sort` takes a field name, prefixed with `-` for "
        "descending (default `-createdAt`); `search` matches part of the name."
    ),
    responses=error_responses(400, 401, 429, 500),
)
async def list_users(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        items, pagination = await user_service.list_users(
            db, ctx.query.model_dump(exclude_none=True)
        )
        return paginated_response(items, pagination)

    return await run_stages(request, LIST_STAGES, handler)


@router.get(
    "/{id}",
    summary="Get a user by ID",
    responses=error_responses(400, 401, 404, 429, 500),
)
async def get_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        user = await user_service.get_user(db, ctx.params.id)
        return success_response(user)

    return await run_stages(request, GET_STAGES, handler)


@router.post(
    "",
    status_code=201,
    summary="Create a user",
    description="Registers a user. The password is hashed and never returned.",
    responses=error_responses(400, 401, 409, 429, 500),
    openapi_extra=json_body(UserCreate),
)
async def create_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        user = await user_service.create_user(db, ctx.body)
        return success_response(user, status_code=201)

    return await run_stages(request, CREATE_STAGES, handler)


@router.patch(
    "/{id}",
    summary="Update a user",
    description="Partial update. Only the fields present in the body change.",
    responses=error_responses(400, 401, 404, 409, 429, 500),
    openapi_extra=json_body(UserUpdate),
)
async def update_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        user = await user_service.update_user(db, ctx.params.id, ctx.body)
        return success_response(user)

    return await run_stages(request, UPDATE_STAGES, handler)


@router.delete(
    "/{id}",
    summary="Delete a user",
    responses=error_responses(400, 401, 404, 429, 500),
)
async def delete_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        await user_service.delete_user(db, ctx.params.id)
        return success_response({"deleted": True})

    return await run_stages(request, DELETE_STAGES, handler)
