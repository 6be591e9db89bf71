"""
User API — Test Configuration (conftest.py)
============================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment overrides are applied before any `userapi` import, because
       settings and the database engine are created at import time.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── fake_clock:      Settable millisecond clock for the rate limiter
    ├── db_tables:       Creates/drops the schema in a throwaway SQLite file
    ├── app:             Fresh application with its own rate-limit store
    └── test_client:     HTTPX AsyncClient bound to `app` (with tables)
"""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports
_test_dir = tempfile.mkdtemp(prefix="userapi_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_test_dir, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTH_ENABLED"] = "false"
os.environ["RATE_LIMIT_MAX"] = "100"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from userapi.database import Base, engine  # noqa: E402
from userapi.main import create_app  # noqa: E402
from userapi.middleware.rate_limit import RateLimitStore  # noqa: E402
import userapi.models  # noqa: E402,F401


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_x(mock_db_session):
            await user_service.get_user(mock_db_session, 1)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest_asyncio.fixture
async def db_tables():
    """Creates every table before the test and drops them afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def app():
    return create_app(rate_limit_store=RateLimitStore())


@pytest_asyncio.fixture
async def test_client(app, db_tables):
    """
    HTTPX AsyncClient talking to `app` through ASGITransport (no server).

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
