"""
Organization and membership schemas shared between server and clients.

Covers: org create/update requests, org responses (with the caller's role),
member listing, role changes, ownership transfer, active-org selection.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., max_length=255, description="Organization display name")


class OrgUpdateRequest(BaseModel):
    name: str = Field(..., max_length=255)


class MemberRoleUpdateRequest(BaseModel):
    # Kept as a plain string so an unknown role is reported by the service
    # as a validation error with a readable message.
    role: str = Field(..., description="owner | admin | member")


class TransferOwnershipRequest(BaseModel):
    new_owner_id: uuid.UUID


class SetActiveOrgRequest(BaseModel):
    organization_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrgWithRoleResponse(OrgResponse):
    role: Role  # the requesting user's role in this org


class MemberResponse(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID
    role: Role
    email: str
    name: str
    picture: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
