"""
User lookups. Users are created by the login flow; this service only reads them.
"""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.errors import NotFoundError
from roster.models.user import User


async def get_user_by_id(user_id: uuid.UUID, session: AsyncSession) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("user not found")
    return user

