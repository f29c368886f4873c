"""Invitation schemas and lifecycle states."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, Field

from .common import Role


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


# Valid state transitions; terminal states have none.
INVITATION_TRANSITIONS: dict[InvitationStatus, list[InvitationStatus]] = {
    InvitationStatus.PENDING: [
        InvitationStatus.ACCEPTED,
        InvitationStatus.DECLINED,
        InvitationStatus.EXPIRED,
    ],
    InvitationStatus.ACCEPTED: [],
    InvitationStatus.DECLINED: [],
    InvitationStatus.EXPIRED: [],
}


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class InviteMemberRequest(BaseModel):
    email: EmailStr
    role: str = Field(default=Role.MEMBER.value, description="admin | member")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class InvitationResponse(BaseModel):
    """Org-scoped view. The token is deliberately absent."""

    id: uuid.UUID
    organization_id: uuid.UUID
    email: str
    role: Role
    invited_by: uuid.UUID
    status: InvitationStatus
    expires_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InvitationDetailsResponse(InvitationResponse):
    """Invitee view: carries the token needed to accept or decline."""

    token: str
    organization_name: str
    invited_by_name: str
