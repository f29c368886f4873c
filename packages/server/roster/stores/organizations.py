"""
Membership store: organization and member rows.

Mutations report "zero rows affected" as not-found / not-a-member rather than
reading first, so concurrent callers removing or updating the same row cannot
race between a check and the write. Integrity errors are translated to
domain errors here; nothing from the driver leaves this module.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import case, delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from roster.core.database import violates_foreign_key, violates_unique
from roster.core.errors import (
    AlreadyMemberError,
    InternalError,
    NotAMemberError,
    NotFoundError,
    SlugExistsError,
)
from roster.models.base import utcnow
from roster.models.member import OrganizationMember
from roster.models.organization import Organization
from roster.models.user import User
from roster_shared.schemas.common import Role

SLUG_COLUMNS = ("organizations.slug",)
MEMBER_COLUMNS = ("organization_members.organization_id", "organization_members.user_id")


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def create_with_owner(
    name: str,
    slug: str,
    created_by: uuid.UUID,
    session: AsyncSession,
) -> Organization:
    """Insert the organization and its creator as owner in one transaction."""
    org = Organization(name=name, slug=slug, created_by=created_by)
    session.add(org)
    try:
        await session.flush()
    except IntegrityError as exc:
        if violates_unique(exc, "ix_organizations_slug", SLUG_COLUMNS):
            raise SlugExistsError() from exc
        raise InternalError("failed to create organization") from exc

    session.add(
        OrganizationMember(
            organization_id=org.id,
            user_id=created_by,
            role=Role.OWNER.value,
        )
    )
    await session.flush()
    return org


async def get_by_id(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    org = await session.get(Organization, org_id)
    if org is None:
        raise NotFoundError("organization not found")
    return org


async def get_by_slug(slug: str, session: AsyncSession) -> Organization:
    result = await session.execute(select(Organization).where(Organization.slug == slug))
    org = result.scalar_one_or_none()
    if org is None:
        raise NotFoundError("organization not found")
    return org


async def update_name(org_id: uuid.UUID, name: str, session: AsyncSession) -> Organization:
    result = await session.execute(
        update(Organization)
        .where(Organization.id == org_id)
        .values(name=name, updated_at=utcnow())
    )
    if result.rowcount == 0:
        raise NotFoundError("organization not found")
    org = await session.get(Organization, org_id, populate_existing=True)
    return org


async def delete_org(org_id: uuid.UUID, session: AsyncSession) -> None:
    """Delete an organization; members and invitations go with it (FK cascade)."""
    result = await session.execute(delete(Organization).where(Organization.id == org_id))
    if result.rowcount == 0:
        raise NotFoundError("organization not found")


async def list_for_user(
    user_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Organization, str]]:
    """All orgs the user belongs to, with their role, ordered by name."""
    result = await session.execute(
        select(Organization, OrganizationMember.role)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(Organization.name)
    )
    return [(org, role) for org, role in result.all()]


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def add_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: Role,
    session: AsyncSession,
) -> OrganizationMember:
    member = OrganizationMember(organization_id=org_id, user_id=user_id, role=role.value)
    session.add(member)
    try:
        await session.flush()
    except IntegrityError as exc:
        if violates_unique(exc, "uq_organization_members_org_user", MEMBER_COLUMNS):
            raise AlreadyMemberError() from exc
        if violates_foreign_key(exc):
            raise NotFoundError("organization not found") from exc
        raise InternalError("failed to add member") from exc
    return member


async def get_member_or_none(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> Optional[OrganizationMember]:
    result = await session.execute(
        select(OrganizationMember).where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_member(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    member = await get_member_or_none(org_id, user_id, session)
    if member is None:
        raise NotAMemberError()
    return member


async def list_members(
    org_id: uuid.UUID, session: AsyncSession
) -> list[tuple[OrganizationMember, User]]:
    """Members joined with identity fields: owners, then admins, then members, by name."""
    role_order = case(
        (OrganizationMember.role == Role.OWNER.value, 1),
        (OrganizationMember.role == Role.ADMIN.value, 2),
        else_=3,
    )
    result = await session.execute(
        select(OrganizationMember, User)
        .join(User, User.id == OrganizationMember.user_id)
        .where(OrganizationMember.organization_id == org_id)
        .order_by(role_order, User.name)
    )
    return [(member, user) for member, user in result.all()]


async def update_member_role(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    role: Role,
    session: AsyncSession,
) -> None:
    result = await session.execute(
        update(OrganizationMember)
        .where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == user_id,
        )
        .values(role=role.value, updated_at=utcnow())
    )
    if result.rowcount == 0:
        raise NotAMemberError()


async def remove_member(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> None:
    result = await session.execute(
        delete(OrganizationMember).where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == user_id,
        )
    )
    if result.rowcount == 0:
        raise NotAMemberError()


async def count_owners(
    org_id: uuid.UUID, session: AsyncSession, *, lock: bool = False
) -> int:
    """Number of owners in the org.

    With ``lock=True`` the owner rows are selected ``FOR UPDATE`` so that a
    concurrent demotion/removal of another owner waits for this transaction
    and then re-counts. SQLite has no row locks and ignores the clause.
    """
    if lock:
        result = await session.execute(
            select(OrganizationMember.id)
            .where(
                OrganizationMember.organization_id == org_id,
                OrganizationMember.role == Role.OWNER.value,
            )
            .with_for_update()
        )
        return len(result.all())

    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMember)
        .where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.role == Role.OWNER.value,
        )
    )
    return result.scalar_one()


async def transfer_ownership(
    org_id: uuid.UUID,
    current_owner_id: uuid.UUID,
    new_owner_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    """Promote the new owner, then demote the current one to admin.

    Promotion runs first so that a missing target aborts before anything is
    written; both updates share the caller's transaction.
    """
    now = utcnow()
    promoted = await session.execute(
        update(OrganizationMember)
        .where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == new_owner_id,
        )
        .values(role=Role.OWNER.value, updated_at=now)
    )
    if promoted.rowcount == 0:
        raise NotAMemberError("new owner must be a member of the organization")

    demoted = await session.execute(
        update(OrganizationMember)
        .where(
            OrganizationMember.organization_id == org_id,
            OrganizationMember.user_id == current_owner_id,
        )
        .values(role=Role.ADMIN.value, updated_at=now)
    )
    if demoted.rowcount == 0:
        raise NotAMemberError()


async def is_member_by_email(
    org_id: uuid.UUID, email: str, session: AsyncSession
) -> bool:
    result = await session.execute(
        select(func.count())
        .select_from(OrganizationMember)
        .join(User, User.id == OrganizationMember.user_id)
        .where(
            OrganizationMember.organization_id == org_id,
            func.lower(User.email) == email.lower(),
        )
    )
    return result.scalar_one() > 0
