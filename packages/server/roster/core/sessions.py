"""
Session store (Redis).

Sessions are opaque ids mapped to a JSON record under ``session:<id>``.
Login is handled elsewhere; this service only reads sessions and records
the caller's active organization on them.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import redis.asyncio as redis
import structlog

from roster.core.config import get_settings
from roster.core.identifiers import generate_token
from roster_shared.schemas.users import SessionInfo

log = structlog.get_logger()
settings = get_settings()

SESSION_PREFIX = "session:"

_redis_pool: redis.Redis | None = None


class SessionNotFoundError(Exception):
    """Raised when a session id is unknown or the session has expired."""


async def get_redis() -> redis.Redis:
    """Get or create the Redis connection."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.from_url(
            settings.redis_url,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


class SessionStore:
    def __init__(self, client: redis.Redis, ttl: timedelta | None = None):
        self.client = client
        self.ttl = ttl or timedelta(hours=settings.session_ttl_hours)

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    async def _write(self, session: SessionInfo, ttl: timedelta) -> None:
        await self.client.set(
            self._key(session.id),
            session.model_dump_json(),
            ex=max(int(ttl.total_seconds()), 1),
        )

    async def create(self, user_id: uuid.UUID) -> SessionInfo:
        now = datetime.now(timezone.utc)
        session = SessionInfo(
            id=generate_token(),
            user_id=user_id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self._write(session, self.ttl)
        return session

    async def get(self, session_id: str) -> SessionInfo:
        raw = await self.client.get(self._key(session_id))
        if raw is None:
            raise SessionNotFoundError(session_id)
        session = SessionInfo.model_validate_json(raw)
        if datetime.now(timezone.utc) > session.expires_at:
            await self.delete(session_id)
            raise SessionNotFoundError(session_id)
        return session

    async def delete(self, session_id: str) -> None:
        await self.client.delete(self._key(session_id))

    async def set_active_org(self, session_id: str, org_id: Optional[uuid.UUID]) -> SessionInfo:
        session = await self.get(session_id)
        session.active_org_id = org_id
        # Keep the original expiry; only the payload changes.
        remaining = session.expires_at - datetime.now(timezone.utc)
        if remaining.total_seconds() <= 0:
            remaining = self.ttl
        await self._write(session, remaining)
        log.info("session.active_org_set", org_id=str(org_id) if org_id else None)
        return session

    async def ping(self) -> bool:
        return bool(await self.client.ping())


async def get_session_store() -> SessionStore:
    """FastAPI dependency for the session store."""
    return SessionStore(await get_redis())
