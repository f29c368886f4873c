"""
Domain error taxonomy.

Every failure that leaves the service layer is one of the ``ErrorKind``
members below. Store and driver exceptions are translated into these before
they reach the transport; the API layer renders them through ``ERROR_STATUS``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    NOT_A_MEMBER = "not_a_member"
    ALREADY_MEMBER = "already_member"
    SLUG_EXISTS = "slug_exists"
    INVITE_EXISTS = "invite_exists"
    INVITE_EXPIRED = "invite_expired"
    INVITE_NOT_PENDING = "invite_not_pending"
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    LAST_OWNER = "last_owner"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal_error"


ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_A_MEMBER: 403,
    ErrorKind.ALREADY_MEMBER: 400,
    ErrorKind.SLUG_EXISTS: 400,
    ErrorKind.INVITE_EXISTS: 400,
    ErrorKind.INVITE_EXPIRED: 400,
    ErrorKind.INVITE_NOT_PENDING: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.LAST_OWNER: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.INTERNAL: 500,
}


class RosterError(Exception):
    """Base class for classified failures."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return ERROR_STATUS[self.kind]


class NotFoundError(RosterError):
    kind = ErrorKind.NOT_FOUND
    default_message = "not found"


class NotAMemberError(RosterError):
    kind = ErrorKind.NOT_A_MEMBER
    default_message = "not a member of this organization"


class AlreadyMemberError(RosterError):
    kind = ErrorKind.ALREADY_MEMBER
    default_message = "user is already a member of this organization"


class SlugExistsError(RosterError):
    kind = ErrorKind.SLUG_EXISTS
    default_message = "organization with similar name already exists"


class InviteExistsError(RosterError):
    kind = ErrorKind.INVITE_EXISTS
    default_message = "pending invitation already exists for this email"


class InviteExpiredError(RosterError):
    kind = ErrorKind.INVITE_EXPIRED
    default_message = "invitation has expired"


class InviteNotPendingError(RosterError):
    kind = ErrorKind.INVITE_NOT_PENDING
    default_message = "invitation is no longer pending"


class ValidationError(RosterError):
    kind = ErrorKind.VALIDATION
    default_message = "invalid request"


class ForbiddenError(RosterError):
    kind = ErrorKind.FORBIDDEN
    default_message = "insufficient permissions"


class LastOwnerError(RosterError):
    kind = ErrorKind.LAST_OWNER
    default_message = "cannot remove the last owner"


class UnauthorizedError(RosterError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "authentication required"


class InternalError(RosterError):
    kind = ErrorKind.INTERNAL
    default_message = "internal error"
