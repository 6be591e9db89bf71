"""
User API — Credentials: JWT and Password Hashing
=================================================

What:  Signing/verifying bearer tokens and one-way password hashing.
Why:   The auth stage and the login route need a verifier and a signer; the
       user service needs a hasher. Keeping them behind plain functions lets
       tests swap any of them.
How:   PyJWT (HS256 by default) with the shared secret from settings;
       Werkzeug's salted password hashes, computed in a worker thread so the
       event loop is not blocked by the key-derivation work.

Token lifetime (JWT_EXPIRES_IN):
    "<n>h" hours, "<n>d" days, "<n>w" weeks, "<n>m" 30-day months.
    Anything else falls back to 7 days.
"""

import re
import time
from typing import Any, Dict, Mapping, Optional

import jwt
from starlette.concurrency import run_in_threadpool
from werkzeug.security import check_password_hash, generate_password_hash

from userapi.config import settings

DEFAULT_EXPIRES_IN = 7 * 24 * 60 * 60

_DURATION_PATTERN = re.compile(r"^(\d+)([hdwm])$")
_UNIT_SECONDS = {
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "m": 30 * 24 * 60 * 60,
}


def parse_expires_in(value: str) -> int:
    """Token lifetime in seconds for a '<n>[hdwm]' string."""
    match = _DURATION_PATTERN.match(value or "")
    if not match:
        return DEFAULT_EXPIRES_IN
    return int(match.group(1)) * _UNIT_SECONDS[match.group(2)]


def create_access_token(
    subject: Any,
    claims: Optional[Mapping[str, Any]] = None,
    now: Optional[int] = None,
) -> str:
    issued_at = int(now if now is not None else time.time())
    payload: Dict[str, Any] = dict(claims or {})
    payload.update(
        sub=str(subject),
        iat=issued_at,
        exp=issued_at + parse_expires_in(settings.jwt_expires_in),
    )
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verifies signature and expiry and returns the claims.

    Raises:
        jwt.PyJWTError: bad signature, malformed token or expired.
    """
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp"]},
    )


async def hash_password(password: str) -> str:
    return await run_in_threadpool(generate_password_hash, password)


async def verify_password(password_hash: str, password: str) -> bool:
    return await run_in_threadpool(check_password_hash, password_hash, password)
