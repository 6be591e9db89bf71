"""
User API — Authentication Route Handlers
=========================================

What:  POST /api/v1/auth/login issues bearer tokens;
       GET  /api/v1/auth/me returns the user a token belongs to.
Why:   The auth stage needs tokens signed with the same secret it verifies.

Token claims: sub (user id as string), email, iat, exp.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from userapi.config import settings
from userapi.database import get_db_session
from userapi.exceptions import UnauthorizedError
from userapi.middleware.auth import AuthStage
from userapi.middleware.validation import ValidationStage
from userapi.pipeline import RequestContext, run_stages
from userapi.routes.openapi import error_responses, json_body
from userapi.schemas.auth import LoginRequest, TokenResponse
from userapi.security import create_access_token, parse_expires_in
from userapi.services.user_service import user_service
from userapi.utils.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])

LOGIN_STAGES = [ValidationStage(body=LoginRequest)]
# /me needs a token even when AUTH_ENABLED is off
ME_STAGES = [AuthStage(exempt=(), enabled=True)]


@router.post(
    "/login",
    summary="Exchange credentials for a bearer token",
    responses=error_responses(400, 401, 403, 429, 500),
    openapi_extra=json_body(LoginRequest),
)
async def login(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        user = await user_service.authenticate(db, ctx.body.email, ctx.body.password)
        token = create_access_token(user.id, claims={"email": user.email})
        logger.info("Token issued for user %s", user.id)
        return success_response(
            TokenResponse(
                token=token,
                expires_in=parse_expires_in(settings.jwt_expires_in),
            )
        )

    return await run_stages(request, LOGIN_STAGES, handler)


@router.get(
    "/me",
    summary="Current user",
    responses=error_responses(401, 404, 429, 500),
)
async def me(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    async def handler(ctx: RequestContext) -> Response:
        if not ctx.subject or not ctx.subject.isdigit():
            raise UnauthorizedError("Invalid token subject")
        user = await user_service.get_user(db, int(ctx.subject))
        return success_response(user)

    return await run_stages(request, ME_STAGES, handler)
