"""
User API — Rate Limiting
=========================

What:  Per-client fixed-window request counter and the middleware that
       enforces it.
Why:   Protects the API from abuse without requiring authentication.
How:   One entry per client key: {count, reset_at}. A request outside the
       current window opens a new one; inside it the count is incremented and
       compared to the limit.

Algorithm: Fixed Window Counter
    1. No entry, or entry.reset_at < now  → new window: count=1,
       reset_at = now + window_ms. Allowed, remaining = max - 1.
    2. Otherwise count += 1.
       count > max → denied, retry_after = ceil((reset_at - now) / 1000)
       else        → allowed, remaining = max - count
    max == 0 disables limiting (no entry is ever created).

    Trade-off: a client can send up to 2 × max requests around a window
    boundary. In exchange, check is O(1) time and memory is O(active keys).

Concurrency:
    check() and sweep() hold one lock for their whole read-branch-write, and
    neither awaits inside it. Concurrent requests from the same client can
    therefore never both observe a stale count.

Memory:
    sweep() deletes every entry whose window has ended. The app lifespan runs
    it periodically via sweep_periodically().

Production Upgrade Path:
    The store is in-process. For several workers/instances, move the counter
    to Redis (INCR + PEXPIRE on first hit) behind the same check() contract.
"""

import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from userapi.config import settings
from userapi.exceptions import RateLimitExceededError
from userapi.pipeline import get_request_context
from userapi.utils.response import error_response

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def wall_clock_ms() -> float:
    return time.time() * 1000


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float  # epoch milliseconds


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0


class RateLimitStore:
    """
    Owned, injectable key → RateLimitEntry mapping.

    Args:
        clock: Returns the current time in epoch milliseconds. Tests pass a
               fake clock to step through windows deterministically.
    """

    def __init__(self, clock: Callable[[], float] = wall_clock_ms):
        self.clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def check(
        self,
        client_key: str,
        max_requests: int,
        window_ms: int,
        now: Optional[float] = None,
    ) -> RateLimitDecision:
        if now is None:
            now = self.clock()

        if max_requests == 0:
            return RateLimitDecision(allowed=True, limit=0, remaining=0, reset_at=now)

        with self._lock:
            entry = self._entries.get(client_key)

            if entry is None or entry.reset_at < now:
                entry = RateLimitEntry(count=1, reset_at=now + window_ms)
                self._entries[client_key] = entry
                return RateLimitDecision(
                    allowed=True,
                    limit=max_requests,
                    remaining=max_requests - 1,
                    reset_at=entry.reset_at,
                )

            entry.count += 1
            if entry.count > max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=max_requests,
                    remaining=0,
                    reset_at=entry.reset_at,
                    retry_after=math.ceil((entry.reset_at - now) / 1000),
                )
            return RateLimitDecision(
                allowed=True,
                limit=max_requests,
                remaining=max_requests - entry.count,
                reset_at=entry.reset_at,
            )

    def sweep(self, now: Optional[float] = None) -> int:
        """Deletes entries whose window has ended. Returns how many were removed."""
        if now is None:
            now = self.clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.reset_at < now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get(self, client_key: str) -> Optional[RateLimitEntry]:
        """Snapshot of the entry for `client_key` (a copy, safe to inspect)."""
        with self._lock:
            entry = self._entries.get(client_key)
            return RateLimitEntry(entry.count, entry.reset_at) if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


async def sweep_periodically(store: RateLimitStore, interval_seconds: float) -> None:
    """Runs store.sweep() every `interval_seconds` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.sweep()
        if removed:
            logger.debug("Rate limiter swept %d expired entries", removed)


def client_key_for(request: Request) -> str:
    """
    Client identity: first X-Forwarded-For hop, else X-Real-IP, else "unknown".

    Caveat: both headers are client-controlled unless a trusted proxy
    overwrites them.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return UNKNOWN_CLIENT


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(max(0, decision.remaining)),
        "X-RateLimit-Reset": str(int(decision.reset_at)),
    }
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after)
    return headers


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting stage.

    Denied requests are answered here with a ready-made 429 envelope: limits
    are hit often enough that routing them through an exception is wasted work.
    Allowed requests get the X-RateLimit-* headers after the chain unwinds.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: Optional[RateLimitStore] = None,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
    ):
        super().__init__(app)
        self.store = store if store is not None else RateLimitStore()
        self.max_requests = settings.rate_limit_max if max_requests is None else max_requests
        self.window_ms = settings.rate_limit_window_ms if window_ms is None else window_ms

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if self.max_requests == 0:
            return await call_next(request)

        client_key = client_key_for(request)
        decision = self.store.check(client_key, self.max_requests, self.window_ms)
        ctx = get_request_context(request)
        ctx.rate_limit = decision

        if not decision.allowed:
            exc = RateLimitExceededError(retry_after=decision.retry_after)
            logger.warning(
                "Rate limit exceeded for %s: limit %d per %dms, retry in %ds",
                client_key,
                self.max_requests,
                self.window_ms,
                decision.retry_after,
            )
            return error_response(
                exc.message,
                code=exc.code,
                status_code=exc.status_code,
                request_id=ctx.correlation_id,
                headers=rate_limit_headers(decision),
            )

        response = await call_next(request)
        response.headers.update(rate_limit_headers(decision))
        return response
