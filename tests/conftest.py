"""Shared pytest fixtures and configuration."""

import os

# Set test environment variables before the app reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from fakeredis import aioredis as fake_aioredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  registers every table on Base.metadata
from app.db.base_class import Base
from app.db.redis_client import get_redis
from app.db.session import get_db
from app.main import app as fastapi_app
from tests.utils.factories import actor_for, create_user


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def redis():
    """In-process stand-in for the Redis server."""
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
async def client(session_factory, redis):
    """HTTP client bound to the app with the test database and cache."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        yield redis

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_redis] = override_get_redis
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# --- Users ---

@pytest.fixture
async def admin_user(db):
    return await create_user(db, role="admin", name="Ada Reyes", email="admin@brokerage.ph")


@pytest.fixture
async def agent_user(db):
    return await create_user(db, role="agent", name="Ben Santos", email="ben@brokerage.ph")


@pytest.fixture
async def other_agent_user(db):
    return await create_user(db, role="agent", name="Cara Lim", email="cara@brokerage.ph")


@pytest.fixture
def admin(admin_user):
    return actor_for(admin_user)


@pytest.fixture
def agent(agent_user):
    return actor_for(agent_user)


@pytest.fixture
def other_agent(other_agent_user):
    return actor_for(other_agent_user)
