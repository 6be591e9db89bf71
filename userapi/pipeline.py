"""
User API — Request Context and Route Stage Chain
=================================================

What:  The per-request context bag and the chain builder for route stages.
Why:   Global stages (error boundary, request ID, logging, rate limit) are
       Starlette middleware; the route-specific stages (validation, auth) need
       the same wrap/unwrap semantics but only on selected routes.
How:   A stage is any object with `async handle(ctx, call_next) -> Response`.
       `build_chain` composes a list of stages right-to-left around a terminal
       handler, so the first stage in the list runs first on the way in and
       last on the way out.

Request Context lifecycle:
    Created by the first stage that asks for it (the error boundary), stored
    on `request.state` (shared by every Starlette Request built for the same
    ASGI scope), discarded with the scope when the response is sent.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from starlette.requests import Request
from starlette.responses import Response

Handler = Callable[["RequestContext"], Awaitable[Response]]


@dataclass
class RequestContext:
    """
    Per-request metadata threaded through the pipeline.

    Attributes:
        correlation_id: X-Request-ID value; None until the request ID stage runs.
        identity:       Decoded token claims, set by the auth stage.
        subject:        Primary subject id derived from the claims ("sub" or "id").
        validated:      Validated payloads keyed by section: body, query, params.
        rate_limit:     Last rate-limit decision, for response headers.
        request:        The Request seen by the route; set when route stages run.
    """

    correlation_id: Optional[str] = None
    identity: Optional[Dict[str, Any]] = None
    subject: Optional[str] = None
    validated: Dict[str, Any] = field(default_factory=dict)
    rate_limit: Any = None
    request: Optional[Request] = None

    @property
    def body(self) -> Any:
        return self.validated.get("body")

    @property
    def query(self) -> Any:
        return self.validated.get("query")

    @property
    def params(self) -> Any:
        return self.validated.get("params")


class Stage(Protocol):
    """One link of the route chain: may short-circuit or forward to `call_next`."""

    async def handle(self, ctx: RequestContext, call_next: Handler) -> Response: ...


def get_request_context(request: Request) -> RequestContext:
    """Returns the context bound to this request, creating it on first use."""
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        ctx = RequestContext()
        request.state.context = ctx
    return ctx


def build_chain(stages: Sequence[Stage], handler: Handler) -> Handler:
    """
    Compose `stages` around `handler`.

    build_chain([a, b], h)(ctx) == a.handle(ctx, lambda c: b.handle(c, h))
    """
    chain = handler
    for stage in reversed(stages):
        next_handler = chain

        async def _wrap(
            ctx: RequestContext,
            _stage: Stage = stage,
            _next: Handler = next_handler,
        ) -> Response:
            return await _stage.handle(ctx, _next)

        chain = _wrap
    return chain


async def run_stages(request: Request, stages: List[Stage], handler: Handler) -> Response:
    """Runs a route's stages and terminal handler for `request`."""
    ctx = get_request_context(request)
    ctx.request = request
    return await build_chain(stages, handler)(ctx)
