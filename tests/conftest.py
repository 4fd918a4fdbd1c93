"""Test fixtures: a fresh in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (aiosqlite) with the
   schema created from the ORM models. StaticPool keeps the single
   connection alive, so every session in the test sees the same DB.
2. get_db is overridden so each HTTP request gets its own session on
   that engine, just like production.
3. The login rate limiter is swapped for a fresh in-memory one, so
   attempts made by one test never count against another.

The database URL env var must be set before anything imports
stratdash.config: Settings() refuses to start without one.
"""

import os

os.environ.setdefault("STRATDASH_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STRATDASH_ENVIRONMENT", "development")

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stratdash.config import settings
from stratdash.db.engine import build_engine, get_db
from stratdash.db.models import Base
from stratdash.main import app
from stratdash.middleware.rate_limit import InMemoryRateLimiter

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def engine():
    engine = build_engine(TEST_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A session for arranging and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def login_limiter():
    return InMemoryRateLimiter(
        limit=settings.login_rate_limit_attempts,
        window_seconds=settings.login_rate_limit_window_seconds,
    )


@pytest_asyncio.fixture()
async def client(session_factory, login_limiter):
    """HTTP client running the real auth pipeline against the test DB."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    previous_limiter = app.state.login_limiter
    app.state.login_limiter = login_limiter

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.state.login_limiter = previous_limiter
    app.dependency_overrides.clear()
