"""
User API — Route Stage Chain Tests
===================================

What we test:
    ✅ Stages run in list order on the way in and reverse order on the way out
    ✅ A stage can short-circuit without calling the rest of the chain
    ✅ An empty chain is just the handler
    ✅ The request context is created once per request and shared
"""

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from userapi.pipeline import RequestContext, build_chain, get_request_context, run_stages


class RecordingStage:
    def __init__(self, name, log):
        self.name = name
        self.log = log

    async def handle(self, ctx, call_next):
        self.log.append(f"{self.name}-in")
        response = await call_next(ctx)
        self.log.append(f"{self.name}-out")
        return response


class RejectingStage:
    async def handle(self, ctx, call_next):
        return PlainTextResponse("nope", status_code=403)


def make_request():
    return Request({"type": "http", "method": "GET", "path": "/", "headers": []})


@pytest.mark.asyncio
async def test_stages_wrap_handler_in_order():
    log = []

    async def handler(ctx):
        log.append("handler")
        return PlainTextResponse("ok")

    chain = build_chain([RecordingStage("a", log), RecordingStage("b", log)], handler)
    response = await chain(RequestContext())

    assert response.status_code == 200
    assert log == ["a-in", "b-in", "handler", "b-out", "a-out"]


@pytest.mark.asyncio
async def test_stage_can_short_circuit():
    log = []

    async def handler(ctx):
        log.append("handler")
        return PlainTextResponse("ok")

    chain = build_chain([RecordingStage("a", log), RejectingStage(), RecordingStage("c", log)], handler)
    response = await chain(RequestContext())

    assert response.status_code == 403
    assert log == ["a-in", "a-out"]


@pytest.mark.asyncio
async def test_empty_chain_calls_handler():
    async def handler(ctx):
        return PlainTextResponse("direct")

    response = await build_chain([], handler)(RequestContext())

    assert response.body == b"direct"


def test_request_context_created_once():
    request = make_request()

    first = get_request_context(request)
    first.correlation_id = "abc"

    assert get_request_context(request) is first
    # Another Request over the same scope sees the same context
    assert get_request_context(Request(request.scope)).correlation_id == "abc"


@pytest.mark.asyncio
async def test_run_stages_binds_request_to_context():
    request = make_request()
    seen = {}

    async def handler(ctx):
        seen["request"] = ctx.request
        return PlainTextResponse("ok")

    await run_stages(request, [], handler)

    assert seen["request"] is request
