"""
Invitation lifecycle: invite, list, cancel, and the invitee's accept/decline.

States move ``pending -> accepted | declined | expired`` and never leave a
terminal state. Expiry is lazy: an invitation past ``expires_at`` is marked
expired the first time someone tries to accept it.

Two failure paths persist a status change before raising (expired, and
accepting while already a member). Those commit the session explicitly so
the request rollback does not undo the transition.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core import roles
from roster.core.config import get_settings
from roster.core.errors import (
    AlreadyMemberError,
    ForbiddenError,
    InviteExistsError,
    InviteExpiredError,
    InviteNotPendingError,
    NotFoundError,
    ValidationError,
)
from roster.models.base import as_utc, utcnow
from roster.models.invitation import Invitation
from roster.services.organizations import org_with_role, require_manager
from roster.stores import invitations as invitation_store
from roster.stores import organizations as org_store
from roster.stores.invitations import InvitationDetails
from roster_shared.schemas.common import Role
from roster_shared.schemas.invitations import InvitationStatus

log = structlog.get_logger()
settings = get_settings()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def invite(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    email: str,
    role: str,
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> Invitation:
    """Create a pending invitation for ``email`` with role admin or member."""
    await require_manager(org_id, caller_id, session)

    email = _normalize_email(email)
    if not email:
        raise ValidationError("email is required")
    invited_role = roles.parse_role(role)
    if invited_role is None or invited_role == Role.OWNER:
        raise ValidationError("invalid role - must be admin or member")

    if await org_store.is_member_by_email(org_id, email, session):
        raise AlreadyMemberError()
    if await invitation_store.find_pending(org_id, email, session) is not None:
        raise InviteExistsError()

    expires_at = (now or utcnow()) + timedelta(days=settings.invitation_expiry_days)
    invitation = await invitation_store.create(
        org_id, email, invited_role, caller_id, expires_at, session
    )
    log.info(
        "invitation.created",
        invitation_id=str(invitation.id),
        org_id=str(org_id),
        role=invited_role.value,
        by=str(caller_id),
    )
    return invitation


async def list_invitations(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    session: AsyncSession,
    status: Optional[str] = None,
) -> list[Invitation]:
    """All invitations of the org regardless of expiry, newest first."""
    await require_manager(org_id, caller_id, session)
    status_filter = None
    if status is not None:
        try:
            status_filter = InvitationStatus(status)
        except ValueError as exc:
            raise ValidationError("invalid invitation status") from exc
    return await invitation_store.list_for_org(org_id, session, status=status_filter)


async def cancel_invitation(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    await require_manager(org_id, caller_id, session)
    invitation = await invitation_store.get_by_id(invitation_id, session)
    # Another org's invitation is reported exactly like a missing one.
    if invitation.organization_id != org_id:
        raise NotFoundError("invitation not found")
    await invitation_store.delete_invitation(invitation_id, session)
    log.info("invitation.cancelled", invitation_id=str(invitation_id), org_id=str(org_id))


async def my_invitations(
    caller_email: str,
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> list[InvitationDetails]:
    return await invitation_store.list_pending_for_email(
        _normalize_email(caller_email), now or utcnow(), session
    )


async def _resolve_for_invitee(
    token: str, caller_email: str, session: AsyncSession
) -> Invitation:
    details = await invitation_store.get_by_token(token, session)
    if details.invitation.email != _normalize_email(caller_email):
        raise ForbiddenError("invitation is not for this user")
    return details.invitation


async def _persist_transition(
    invitation_id: uuid.UUID, status: InvitationStatus, session: AsyncSession
) -> None:
    await invitation_store.transition(invitation_id, status, session)
    await session.commit()


async def accept_invitation(
    caller_id: uuid.UUID,
    caller_email: str,
    token: str,
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> dict:
    """Join the invitation's organization with the invited role."""
    invitation = await _resolve_for_invitee(token, caller_email, session)
    invitation_id = invitation.id
    org_id = invitation.organization_id
    granted = Role(invitation.role)

    if (now or utcnow()) > as_utc(invitation.expires_at):
        await _persist_transition(invitation_id, InvitationStatus.EXPIRED, session)
        log.info("invitation.expired", invitation_id=str(invitation_id), org_id=str(org_id))
        raise InviteExpiredError()

    if invitation.status != InvitationStatus.PENDING.value:
        raise InviteNotPendingError()

    if await org_store.get_member_or_none(org_id, caller_id, session) is not None:
        await _persist_transition(invitation_id, InvitationStatus.ACCEPTED, session)
        raise AlreadyMemberError("already a member of this organization")

    try:
        await org_store.add_member(org_id, caller_id, granted, session)
    except AlreadyMemberError:
        # Joined concurrently; the failed flush must be rolled back first.
        await session.rollback()
        await _persist_transition(invitation_id, InvitationStatus.ACCEPTED, session)
        raise

    if not await invitation_store.transition(invitation_id, InvitationStatus.ACCEPTED, session):
        raise InviteNotPendingError()

    org = await org_store.get_by_id(org_id, session)
    log.info(
        "invitation.accepted",
        invitation_id=str(invitation_id),
        org_id=str(org_id),
        user_id=str(caller_id),
        role=granted.value,
    )
    return org_with_role(org, granted.value)


async def decline_invitation(
    caller_email: str,
    token: str,
    session: AsyncSession,
) -> None:
    invitation = await _resolve_for_invitee(token, caller_email, session)
    if invitation.status != InvitationStatus.PENDING.value:
        raise InviteNotPendingError()
    if not await invitation_store.transition(invitation.id, InvitationStatus.DECLINED, session):
        raise InviteNotPendingError()
    log.info("invitation.declined", invitation_id=str(invitation.id))
