"""
Authentication for the membership API.

Callers present an opaque session id, either in the session cookie or as
``Authorization: Bearer <id>``. The id is resolved through the session store
and the user row is loaded; anything missing or expired is a 401.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.config import get_settings
from roster.core.database import get_session
from roster.core.errors import NotFoundError, UnauthorizedError
from roster.core.sessions import SessionNotFoundError, SessionStore, get_session_store
from roster.models.user import User
from roster.services import users as user_service
from roster_shared.schemas.users import SessionInfo

log = structlog.get_logger()
settings = get_settings()

api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


class CurrentUser:
    """Container for the authenticated user and their session."""

    def __init__(self, user: User, session: SessionInfo):
        self.user = user
        self.session = session
        # Plain copies: services may roll back the DB session, which expires ORM rows.
        self.user_id: uuid.UUID = user.id
        self.email: str = user.email
        self.session_id: str = session.id


def _extract_session_id(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()
        if token:
            return token
    return request.cookies.get(settings.session_cookie_name)


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Depends(api_key_header),
    session: AsyncSession = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
) -> CurrentUser:
    """Main authentication dependency."""
    session_id = _extract_session_id(request, authorization)
    if not session_id:
        raise UnauthorizedError()

    try:
        info = await store.get(session_id)
    except SessionNotFoundError as exc:
        raise UnauthorizedError("session expired or invalid") from exc

    try:
        user = await user_service.get_user_by_id(info.user_id, session)
    except NotFoundError as exc:
        log.warning("auth.user_missing", user_id=str(info.user_id))
        raise UnauthorizedError("user not found") from exc

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    request.state.auth = CurrentUser(user, info)
    return request.state.auth
