"""
User API — Global Stage Tests
==============================

What:  Request ID, security headers, CORS, rate limiting and the error
       boundary, exercised through the real application stack.
How:   Extra routes that raise are mounted on a fresh app; the health check's
       database check is patched so no database is needed.

What we test:
    ✅ Inbound X-Request-ID echoed in header and body; otherwise fresh & unique
    ✅ Security headers on every response, including errors and preflights
    ✅ 429 envelope with Retry-After and X-RateLimit-* headers
    ✅ Domain, validation, protocol and unexpected failures → envelopes
    ✅ Unexpected error messages suppressed in production
"""

import logging
import uuid
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from userapi.config import settings
from userapi.exceptions import NotFoundError, ValidationFailedError
from userapi.main import create_app, lifespan
from userapi.middleware.logging import level_for_status
from userapi.middleware.rate_limit import RateLimitStore
from userapi.middleware.security_headers import SECURITY_HEADERS


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def healthy_db():
    with patch("userapi.routes.health.check_database_health", AsyncMock(return_value=True)):
        yield


@pytest_asyncio.fixture
async def failing_client():
    """Client for an app with routes that raise each kind of failure."""
    app = create_app(rate_limit_store=RateLimitStore())

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/missing")
    async def missing():
        raise NotFoundError(resource="Widget", resource_id=7)

    @app.get("/invalid")
    async def invalid():
        raise ValidationFailedError([{"field": "body.size", "message": "too big"}])

    @app.get("/typed/{number}")
    async def typed(number: int):
        return {"number": number}

    async with client_for(app) as client:
        yield client


class TestRequestId:

    @pytest.mark.asyncio
    async def test_inbound_id_is_echoed(self, app):
        async with client_for(app) as client:
            response = await client.get("/no-such-route", headers={"X-Request-ID": "abc"})

        assert response.headers["X-Request-ID"] == "abc"
        assert response.json()["requestId"] == "abc"

    @pytest.mark.asyncio
    async def test_empty_inbound_id_is_replaced(self, app):
        async with client_for(app) as client:
            response = await client.get("/no-such-route", headers={"X-Request-ID": ""})

        generated = response.headers["X-Request-ID"]
        assert generated
        uuid.UUID(generated)

    @pytest.mark.asyncio
    async def test_generated_ids_are_unique(self):
        app = create_app(rate_limit_store=RateLimitStore(), rate_limit_max=0)

        async with client_for(app) as client:
            ids = set()
            for _ in range(1000):
                response = await client.get("/no-such-route")
                ids.add(response.headers["X-Request-ID"])

        assert len(ids) == 1000


class TestSecurityHeaders:

    @pytest.mark.asyncio
    async def test_present_on_success(self, app, healthy_db):
        async with client_for(app) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value

    @pytest.mark.asyncio
    async def test_present_on_errors(self, failing_client):
        response = await failing_client.get("/boom")

        assert response.status_code == 500
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"


class TestCors:

    @pytest.mark.asyncio
    async def test_preflight(self, app):
        async with client_for(app) as client:
            response = await client.options(
                "/api/v1/users",
                headers={
                    "Origin": "http://example.com",
                    "Access-Control-Request-Method": "PATCH",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "PATCH" in response.headers["access-control-allow-methods"]
        assert response.headers["access-control-max-age"] == "86400"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    @pytest.mark.asyncio
    async def test_exposes_tracing_headers(self, app, healthy_db):
        async with client_for(app) as client:
            response = await client.get("/health", headers={"Origin": "http://example.com"})

        exposed = response.headers["access-control-expose-headers"]
        assert "X-Request-ID" in exposed
        assert "X-RateLimit-Remaining" in exposed


class TestRateLimiting:

    @pytest.mark.asyncio
    async def test_exceeding_limit_returns_429(self, fake_clock, healthy_db):
        app = create_app(
            rate_limit_store=RateLimitStore(clock=fake_clock),
            rate_limit_max=2,
            rate_limit_window_ms=60_000,
        )

        async with client_for(app) as client:
            first = await client.get("/health")
            second = await client.get("/health")
            fake_clock.advance(15_500)
            third = await client.get("/health", headers={"X-Request-ID": "limited"})

        assert first.headers["X-RateLimit-Limit"] == "2"
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"

        assert third.status_code == 429
        body = third.json()
        assert body["success"] is False
        assert body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
        assert body["requestId"] == "limited"
        assert third.headers["Retry-After"] == "45"
        assert third.headers["X-RateLimit-Remaining"] == "0"
        assert third.headers["X-Request-ID"] == "limited"

    @pytest.mark.asyncio
    async def test_clients_are_limited_separately(self, fake_clock, healthy_db):
        app = create_app(rate_limit_store=RateLimitStore(clock=fake_clock), rate_limit_max=1)

        async with client_for(app) as client:
            a1 = await client.get("/health", headers={"X-Forwarded-For": "10.0.0.1"})
            a2 = await client.get("/health", headers={"X-Forwarded-For": "10.0.0.1"})
            b1 = await client.get("/health", headers={"X-Forwarded-For": "10.0.0.2"})

        assert a1.status_code == 200
        assert a2.status_code == 429
        assert b1.status_code == 200

    @pytest.mark.asyncio
    async def test_zero_max_sends_no_limit_headers(self, healthy_db):
        store = RateLimitStore()
        app = create_app(rate_limit_store=store, rate_limit_max=0)

        async with client_for(app) as client:
            response = await client.get("/health")

        assert "X-RateLimit-Limit" not in response.headers
        assert len(store) == 0


class TestErrorBoundary:

    @pytest.mark.asyncio
    async def test_unknown_route(self, app):
        async with client_for(app) as client:
            response = await client.get("/no-such-route")

        assert response.status_code == 404
        assert response.json()["error"] == {"message": "Not found", "code": "NOT_FOUND"}

    @pytest.mark.asyncio
    async def test_method_not_allowed(self, app):
        async with client_for(app) as client:
            response = await client.delete("/health")

        assert response.status_code == 405
        assert response.json()["error"]["code"] == "HTTP_ERROR"

    @pytest.mark.asyncio
    async def test_domain_error_keeps_status_and_code(self, failing_client):
        response = await failing_client.get("/missing", headers={"X-Request-ID": "r-1"})

        assert response.status_code == 404
        body = response.json()
        assert body == {
            "success": False,
            "error": {"message": "Widget not found", "code": "NOT_FOUND"},
            "requestId": "r-1",
        }
        assert response.headers["X-Request-ID"] == "r-1"
        assert "X-RateLimit-Limit" in response.headers

    @pytest.mark.asyncio
    async def test_validation_error_lists_fields(self, failing_client):
        response = await failing_client.get("/invalid")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"] == [{"field": "body.size", "message": "too big"}]

    @pytest.mark.asyncio
    async def test_framework_validation_error(self, failing_client):
        response = await failing_client.get("/typed/abc")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"][0]["field"] == "params.number"

    @pytest.mark.asyncio
    async def test_unexpected_error_message_outside_production(self, failing_client):
        response = await failing_client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == {"message": "kaboom", "code": "INTERNAL_ERROR"}

    @pytest.mark.asyncio
    async def test_unexpected_error_message_suppressed_in_production(self, failing_client):
        with patch.object(settings, "environment", "production"):
            response = await failing_client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Internal server error"

    @pytest.mark.asyncio
    async def test_failure_logged_with_request_id(self, failing_client, caplog):
        with caplog.at_level(logging.ERROR, logger="userapi.middleware.error_boundary"):
            await failing_client.get("/boom", headers={"X-Request-ID": "trace-me"})

        records = [r for r in caplog.records if "RuntimeError: kaboom" in r.getMessage()]
        assert records
        assert records[0].getMessage().startswith("[trace-me]")
        # The formatter prefix reads request_id from the record
        assert records[0].request_id == "trace-me"

    @pytest.mark.asyncio
    async def test_client_error_logged_with_request_id(self, failing_client, caplog):
        with caplog.at_level(logging.WARNING, logger="userapi.middleware.error_boundary"):
            await failing_client.get("/missing", headers={"X-Request-ID": "trace-404"})

        records = [r for r in caplog.records if r.name == "userapi.middleware.error_boundary"]
        assert [r.request_id for r in records] == ["trace-404"]


class TestAccessLogging:

    @staticmethod
    def access_records(caplog):
        return [r for r in caplog.records if r.name == "userapi.access"]

    @pytest.mark.asyncio
    async def test_entry_record_fields(self, app, healthy_db, caplog):
        with caplog.at_level(logging.INFO, logger="userapi.access"):
            async with client_for(app) as client:
                await client.get(
                    "/health?verbose=1",
                    headers={"X-Request-ID": "log-1", "User-Agent": "test-agent/1.0"},
                )

        entry, exit_ = self.access_records(caplog)

        assert entry.levelno == logging.INFO
        assert entry.getMessage() == "--> GET /health"
        assert entry.type == "request"
        assert entry.method == "GET"
        assert entry.path == "/health"
        assert entry.query == {"verbose": "1"}
        assert entry.request_id == "log-1"
        assert entry.user_agent == "test-agent/1.0"
        assert entry.timestamp

        assert exit_.type == "response"
        assert exit_.status == 200
        assert exit_.request_id == "log-1"
        assert exit_.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_success_logged_at_info(self, app, healthy_db, caplog):
        with caplog.at_level(logging.INFO, logger="userapi.access"):
            async with client_for(app) as client:
                await client.get("/health")

        assert self.access_records(caplog)[-1].levelno == logging.INFO

    @pytest.mark.asyncio
    async def test_client_error_logged_at_warning(self, app, caplog):
        with caplog.at_level(logging.INFO, logger="userapi.access"):
            async with client_for(app) as client:
                await client.get("/no-such-route")

        exit_ = self.access_records(caplog)[-1]
        assert exit_.levelno == logging.WARNING
        assert exit_.status == 404

    @pytest.mark.asyncio
    async def test_propagating_failure_logged_at_error(self, failing_client, caplog):
        with caplog.at_level(logging.INFO, logger="userapi.access"):
            response = await failing_client.get("/boom")

        assert response.status_code == 500
        exit_ = self.access_records(caplog)[-1]
        assert exit_.levelno == logging.ERROR
        assert exit_.status == 500
        assert exit_.getMessage().startswith("<-- GET /boom 500 ")

    @pytest.mark.parametrize(
        "status, level",
        [(200, logging.INFO), (302, logging.INFO), (404, logging.WARNING), (429, logging.WARNING), (503, logging.ERROR)],
    )
    def test_level_for_status(self, status, level):
        assert level_for_status(status) == level


class TestLifespan:

    @pytest.mark.asyncio
    async def test_production_rejects_default_secret(self):
        app = create_app()
        with patch("userapi.main.setup_logging"), \
             patch.object(settings, "environment", "production"), \
             patch.object(settings, "jwt_secret", "default-dev-secret-change-in-production"):
            with pytest.raises(ValueError):
                async with lifespan(app):
                    pass

    @pytest.mark.asyncio
    async def test_starts_and_stops_sweeper(self):
        app = create_app()
        with patch("userapi.main.setup_logging"), \
             patch("userapi.main.dispose_engine", AsyncMock()) as dispose:
            async with lifespan(app):
                pass

        dispose.assert_awaited_once()


def test_global_chain_order():
    from starlette.middleware.cors import CORSMiddleware

    from userapi.middleware import build_middleware
    from userapi.middleware.error_boundary import ErrorBoundaryMiddleware
    from userapi.middleware.logging import RequestLoggingMiddleware
    from userapi.middleware.rate_limit import RateLimitMiddleware
    from userapi.middleware.request_id import RequestIDMiddleware
    from userapi.middleware.security_headers import SecurityHeadersMiddleware

    chain = build_middleware(RateLimitStore())

    assert [m.cls for m in chain] == [
        SecurityHeadersMiddleware,
        CORSMiddleware,
        ErrorBoundaryMiddleware,
        RequestIDMiddleware,
        RequestLoggingMiddleware,
        RateLimitMiddleware,
    ]
