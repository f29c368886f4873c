"""Identity schemas (users are owned by the identity provider)."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    picture: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class SessionInfo(BaseModel):
    """Opaque session record as stored by the session store."""

    id: str
    user_id: uuid.UUID
    active_org_id: Optional[uuid.UUID] = None
    created_at: datetime
    expires_at: datetime
