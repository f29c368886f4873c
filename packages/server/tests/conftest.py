"""Test fixtures: in-memory SQLite per test, fake Redis, HTTP client."""

from __future__ import annotations

import os

# Must be set before roster modules read their settings.
os.environ.setdefault("ROSTER_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ROSTER_ENVIRONMENT", "development")

import uuid
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import roster.models  # noqa: F401  (registers tables on the metadata)
from roster.core.database import get_session
from roster.core.sessions import SessionStore, get_session_store
from roster.main import app
from roster.models.user import User


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class FakeRedis:
    """Just enough of redis.asyncio.Redis for SessionStore."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, Optional[int]] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def ping(self):
        return True


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def run(session_factory):
    """Run ``fn(*args, session=...)`` in its own transaction, like one request."""

    async def _run(fn, *args, **kwargs):
        async with session_factory() as session:
            try:
                result = await fn(*args, session=session, **kwargs)
                await session.commit()
                return result
            except Exception:
                await session.rollback()
                raise

    return _run


@pytest.fixture
def make_user(session_factory):
    async def _make_user(email: Optional[str] = None, name: Optional[str] = None) -> User:
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=email or f"user-{suffix}@example.com",
            name=name or f"User {suffix}",
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


# ---------------------------------------------------------------------------
# Sessions + HTTP
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def session_store(fake_redis):
    return SessionStore(fake_redis)


@pytest.fixture
async def client(session_factory, session_store):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_get_session_store():
        return session_store

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_store] = override_get_session_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login(session_store):
    """Create a session for ``user`` and return Bearer auth headers."""

    async def _login(user: User) -> dict:
        info = await session_store.create(user.id)
        return {"Authorization": f"Bearer {info.id}"}

    return _login
