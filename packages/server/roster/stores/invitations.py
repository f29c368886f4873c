"""
Invitation store.

Status changes are conditional on the row still being ``pending`` so a
terminal invitation can never be moved again, even by concurrent requests.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from roster.core.database import violates_unique
from roster.core.errors import InternalError, InviteExistsError, NotFoundError
from roster.core.identifiers import generate_token
from roster.models.base import utcnow
from roster.models.invitation import Invitation
from roster.models.organization import Organization
from roster.models.user import User
from roster_shared.schemas.common import Role
from roster_shared.schemas.invitations import INVITATION_TRANSITIONS, InvitationStatus

TOKEN_COLUMNS = ("organization_invitations.token",)


@dataclass
class InvitationDetails:
    invitation: Invitation
    organization_name: str
    invited_by_name: str


async def create(
    org_id: uuid.UUID,
    email: str,
    role: Role,
    invited_by: uuid.UUID,
    expires_at: datetime,
    session: AsyncSession,
) -> Invitation:
    invitation = Invitation(
        organization_id=org_id,
        email=email,
        role=role.value,
        token=generate_token(),
        invited_by=invited_by,
        status=InvitationStatus.PENDING.value,
        expires_at=expires_at,
    )
    session.add(invitation)
    try:
        await session.flush()
    except IntegrityError as exc:
        # A token clash is a generator failure, not a duplicate invite.
        if violates_unique(exc, "ix_organization_invitations_token", TOKEN_COLUMNS):
            raise InternalError("failed to create invitation") from exc
        raise InviteExistsError() from exc
    return invitation


async def get_by_id(invitation_id: uuid.UUID, session: AsyncSession) -> Invitation:
    invitation = await session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError("invitation not found")
    return invitation


def _details_query():
    return (
        select(Invitation, Organization.name, User.name)
        .join(Organization, Organization.id == Invitation.organization_id)
        .join(User, User.id == Invitation.invited_by)
    )


async def get_by_token(token: str, session: AsyncSession) -> InvitationDetails:
    result = await session.execute(_details_query().where(Invitation.token == token))
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("invitation not found")
    invitation, org_name, inviter_name = row
    return InvitationDetails(invitation, org_name, inviter_name)


async def find_pending(
    org_id: uuid.UUID, email: str, session: AsyncSession
) -> Optional[Invitation]:
    result = await session.execute(
        select(Invitation).where(
            Invitation.organization_id == org_id,
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
        )
    )
    return result.scalar_one_or_none()


async def list_for_org(
    org_id: uuid.UUID,
    session: AsyncSession,
    status: Optional[InvitationStatus] = None,
) -> list[Invitation]:
    """Every invitation of the org, newest first. Expiry is not filtered."""
    query = select(Invitation).where(Invitation.organization_id == org_id)
    if status is not None:
        query = query.where(Invitation.status == status.value)
    result = await session.execute(query.order_by(Invitation.created_at.desc()))
    return list(result.scalars().all())


async def list_pending_for_email(
    email: str, now: datetime, session: AsyncSession
) -> list[InvitationDetails]:
    """Pending, unexpired invitations addressed to ``email``, newest first."""
    result = await session.execute(
        _details_query()
        .where(
            Invitation.email == email,
            Invitation.status == InvitationStatus.PENDING.value,
            Invitation.expires_at > now,
        )
        .order_by(Invitation.created_at.desc())
    )
    return [InvitationDetails(inv, org_name, inviter) for inv, org_name, inviter in result.all()]


async def transition(
    invitation_id: uuid.UUID,
    new_status: InvitationStatus,
    session: AsyncSession,
) -> bool:
    """Move a pending invitation to ``new_status``.

    Returns False when no pending row matched (unknown id or already
    terminal); the caller decides how to report it.
    """
    if new_status not in INVITATION_TRANSITIONS[InvitationStatus.PENDING]:
        raise ValueError(f"illegal invitation transition: pending -> {new_status.value}")
    result = await session.execute(
        update(Invitation)
        .where(
            Invitation.id == invitation_id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .values(status=new_status.value, updated_at=utcnow())
    )
    return result.rowcount == 1


async def delete_invitation(invitation_id: uuid.UUID, session: AsyncSession) -> None:
    result = await session.execute(delete(Invitation).where(Invitation.id == invitation_id))
    if result.rowcount == 0:
        raise NotFoundError("invitation not found")
