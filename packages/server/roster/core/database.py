"""
Database connection and session management.

Every request runs in exactly one transaction: ``get_session`` commits when
the endpoint returns and rolls back on any exception, so operations that
write several rows (org + owner, ownership transfer) are atomic.
"""

from collections.abc import AsyncGenerator, Sequence
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from roster.core.config import get_settings

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    kwargs: dict = {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "pool_timeout": settings.db_pool_timeout,
    }
    if "+asyncpg" in url:
        kwargs["connect_args"] = {"command_timeout": settings.db_command_timeout}
    return kwargs


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_kwargs(settings.database_url),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise



# ---------------------------------------------------------------------------
# Integrity error classification
# ---------------------------------------------------------------------------

def _constraint_name(orig: BaseException) -> Optional[str]:
    # The SQLAlchemy asyncpg adapter chains the driver error as __cause__.
    for error in (orig, orig.__cause__):
        if error is None:
            continue
        name = getattr(error, "constraint_name", None)
        if name is None:
            diag = getattr(error, "diag", None)
            name = getattr(diag, "constraint_name", None)
        if name:
            return name
    return None


def violates_unique(exc: IntegrityError, constraint: str, columns: Sequence[str]) -> bool:
    """True when ``exc`` was raised by the named unique constraint or index.

    PostgreSQL drivers report the constraint name. SQLite only reports the
    qualified columns, e.g. ``UNIQUE constraint failed: organizations.slug``.
    """
    name = _constraint_name(exc.orig)
    if name is not None:
        return name == constraint
    message = str(exc.orig)
    prefix = "UNIQUE constraint failed:"
    if not message.startswith(prefix):
        return False
    return message[len(prefix):].strip() == ", ".join(columns)


def violates_foreign_key(exc: IntegrityError) -> bool:
    for error in (exc.orig, exc.orig.__cause__):
        if getattr(error, "sqlstate", None) == "23503" or getattr(error, "pgcode", None) == "23503":
            return True
    return "FOREIGN KEY constraint failed" in str(exc.orig)
