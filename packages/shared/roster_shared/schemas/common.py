"""
Shared enums and response envelopes used by the server and its clients.
"""

from __future__ import annotations

from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class Capability(str, Enum):
    MANAGE_MEMBERS = "manage_members"
    DELETE_ORGANIZATION = "delete_organization"
    TRANSFER_OWNERSHIP = "transfer_ownership"


# Capabilities are derived from role, never stored. Adding a Role member
# without an entry here fails test_roles.
ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.OWNER: frozenset(
        [
            Capability.MANAGE_MEMBERS,
            Capability.DELETE_ORGANIZATION,
            Capability.TRANSFER_OWNERSHIP,
        ]
    ),
    Role.ADMIN: frozenset([Capability.MANAGE_MEMBERS]),
    Role.MEMBER: frozenset(),
}

# Higher rank = more privilege
ROLE_RANK: dict[Role, int] = {
    Role.OWNER: 3,
    Role.ADMIN: 2,
    Role.MEMBER: 1,
}


class DataResponse(BaseModel, Generic[T]):
    """Success envelope: {"data": ...}."""

    data: T


class ErrorResponse(BaseModel):
    """Error envelope: {"error": <kind>, "message": <text>}."""

    error: str
    message: Optional[str] = None
