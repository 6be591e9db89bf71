"""
User API — Authentication Stage
================================

What:  Route stage that requires a valid bearer token.
Why:   Identity must be established before a handler touches user data.
How:   Reads "Authorization: Bearer <token>", verifies it, and stores the
       claims on the request context as `identity` with the primary subject
       ("sub", falling back to "id") as `subject`.

Switches:
    - enabled=None follows AUTH_ENABLED at request time (off by default).
    - Paths starting with an exempt prefix skip the check entirely.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

import jwt
from starlette.responses import Response

from userapi.config import settings
from userapi.exceptions import UnauthorizedError
from userapi.pipeline import Handler, RequestContext
from userapi.security import decode_access_token

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class AuthStage:
    def __init__(
        self,
        exempt: Optional[Iterable[str]] = None,
        verifier: Callable[[str], Dict[str, Any]] = decode_access_token,
        enabled: Optional[bool] = None,
    ):
        self.exempt = tuple(exempt) if exempt is not None else None
        self.verifier = verifier
        self.enabled = enabled

    def _is_enabled(self) -> bool:
        return settings.auth_enabled if self.enabled is None else self.enabled

    def _is_exempt(self, path: str) -> bool:
        exempt = self.exempt if self.exempt is not None else settings.auth_exempt_paths_list
        return any(path.startswith(prefix) for prefix in exempt)

    async def handle(self, ctx: RequestContext, call_next: Handler) -> Response:
        if not self._is_enabled() or self._is_exempt(ctx.request.url.path):
            return await call_next(ctx)

        header = ctx.request.headers.get("authorization", "")
        if not header.startswith(BEARER_PREFIX):
            raise UnauthorizedError("Missing or invalid authorization header")

        token = header[len(BEARER_PREFIX):].strip()
        try:
            claims = self.verifier(token)
        except jwt.PyJWTError as e:
            logger.info("Token rejected: %s", e)
            raise UnauthorizedError("Invalid or expired token")

        ctx.identity = claims
        subject = claims.get("sub") or claims.get("id")
        ctx.subject = str(subject) if subject is not None else None
        return await call_next(ctx)
