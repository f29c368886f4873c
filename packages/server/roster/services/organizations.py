"""
Organization service: org CRUD, member management, ownership transfer.

Every org-scoped operation resolves the caller's membership first and checks
the role policy before anything is written. Writes happen in the caller's
session; the request dependency commits or rolls back the whole operation.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core import roles
from roster.core.errors import (
    ForbiddenError,
    LastOwnerError,
    NotAMemberError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from roster.core.identifiers import generate_slug
from roster.core.sessions import SessionNotFoundError, SessionStore
from roster.models.member import OrganizationMember
from roster.models.organization import Organization
from roster.stores import organizations as org_store
from roster_shared.schemas.common import Role
from roster_shared.schemas.users import SessionInfo

log = structlog.get_logger()


def org_with_role(org: Organization, role: str) -> dict:
    return {
        "id": org.id,
        "name": org.name,
        "slug": org.slug,
        "created_at": org.created_at,
        "updated_at": org.updated_at,
        "role": role,
    }


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("name is required")
    return cleaned


async def _target_member(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    target = await org_store.get_member_or_none(org_id, user_id, session)
    if target is None:
        raise NotFoundError("member not found")
    return target


async def require_manager(
    org_id: uuid.UUID, caller_id: uuid.UUID, session: AsyncSession
) -> OrganizationMember:
    caller = await org_store.get_member(org_id, caller_id, session)
    if not roles.can_manage_members(caller.role):
        raise ForbiddenError()
    return caller


async def _ensure_not_last_owner(
    org_id: uuid.UUID, session: AsyncSession, message: str
) -> None:
    if await org_store.count_owners(org_id, session, lock=True) <= 1:
        raise LastOwnerError(message)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def create_organization(
    caller_id: uuid.UUID, name: str, session: AsyncSession
) -> dict:
    """Create an org; the caller becomes its owner."""
    name = _clean_name(name)
    slug = generate_slug(name, caller_id)
    org = await org_store.create_with_owner(name, slug, caller_id, session)
    log.info("org.created", org_id=str(org.id), slug=slug, creator=str(caller_id))
    return org_with_role(org, Role.OWNER.value)


async def list_organizations(caller_id: uuid.UUID, session: AsyncSession) -> list[dict]:
    rows = await org_store.list_for_user(caller_id, session)
    return [org_with_role(org, role) for org, role in rows]


async def get_organization(
    caller_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> dict:
    member = await org_store.get_member(org_id, caller_id, session)
    org = await org_store.get_by_id(org_id, session)
    return org_with_role(org, member.role)


async def get_organization_by_slug(
    caller_id: uuid.UUID, slug: str, session: AsyncSession
) -> dict:
    org = await org_store.get_by_slug(slug, session)
    member = await org_store.get_member(org.id, caller_id, session)
    return org_with_role(org, member.role)


async def update_organization(
    caller_id: uuid.UUID, org_id: uuid.UUID, name: str, session: AsyncSession
) -> dict:
    """Rename an org. The slug never changes."""
    caller = await require_manager(org_id, caller_id, session)
    name = _clean_name(name)
    org = await org_store.update_name(org_id, name, session)
    log.info("org.updated", org_id=str(org_id), by=str(caller_id))
    return org_with_role(org, caller.role)


async def delete_organization(
    caller_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> None:
    caller = await org_store.get_member(org_id, caller_id, session)
    if not roles.can_delete_org(caller.role):
        raise ForbiddenError("only owners can delete organizations")
    await org_store.delete_org(org_id, session)
    log.info("org.deleted", org_id=str(org_id), by=str(caller_id))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(
    caller_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> list[dict]:
    await org_store.get_member(org_id, caller_id, session)
    rows = await org_store.list_members(org_id, session)
    return [
        {
            "id": member.id,
            "organization_id": member.organization_id,
            "user_id": member.user_id,
            "role": member.role,
            "email": user.email,
            "name": user.name,
            "picture": user.picture,
            "created_at": member.created_at,
            "updated_at": member.updated_at,
        }
        for member, user in rows
    ]


async def update_member_role(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    target_id: uuid.UUID,
    role: str,
    session: AsyncSession,
) -> None:
    """Change a member's role.

    Only owners may grant or take away the owner role, and the last owner
    can never be demoted.
    """
    caller = await require_manager(org_id, caller_id, session)
    new_role = roles.parse_role(role)
    if new_role is None:
        raise ValidationError("invalid role")

    target = await _target_member(org_id, target_id, session)
    old_role = target.role
    touches_owner = new_role == Role.OWNER or target.role == Role.OWNER.value
    if touches_owner and caller.role != Role.OWNER.value:
        raise ForbiddenError("only owners can change owner roles")

    if target.role == Role.OWNER.value and new_role != Role.OWNER:
        await _ensure_not_last_owner(org_id, session, "cannot demote the last owner")

    try:
        await org_store.update_member_role(org_id, target_id, new_role, session)
    except NotAMemberError as exc:
        raise NotFoundError("member not found") from exc

    log.info(
        "member.role_updated",
        org_id=str(org_id),
        user_id=str(target_id),
        old_role=old_role,
        new_role=new_role.value,
        by=str(caller_id),
    )


async def remove_member(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    target_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    caller = await require_manager(org_id, caller_id, session)
    target = await _target_member(org_id, target_id, session)

    if target.role == Role.OWNER.value:
        if caller.role != Role.OWNER.value:
            raise ForbiddenError("admins cannot remove owners")
        await _ensure_not_last_owner(org_id, session, "cannot remove the last owner")

    try:
        await org_store.remove_member(org_id, target_id, session)
    except NotAMemberError as exc:
        raise NotFoundError("member not found") from exc

    log.info("member.removed", org_id=str(org_id), user_id=str(target_id), by=str(caller_id))


async def leave_organization(
    caller_id: uuid.UUID, org_id: uuid.UUID, session: AsyncSession
) -> None:
    member = await org_store.get_member(org_id, caller_id, session)
    if member.role == Role.OWNER.value:
        await _ensure_not_last_owner(
            org_id,
            session,
            "cannot leave as the last owner - transfer ownership or delete the organization",
        )
    await org_store.remove_member(org_id, caller_id, session)
    log.info("member.left", org_id=str(org_id), user_id=str(caller_id))


async def transfer_ownership(
    caller_id: uuid.UUID,
    org_id: uuid.UUID,
    new_owner_id: Optional[uuid.UUID],
    session: AsyncSession,
) -> None:
    """Hand ownership to another member; the caller becomes an admin."""
    caller = await org_store.get_member(org_id, caller_id, session)
    if not roles.can_transfer_ownership(caller.role):
        raise ForbiddenError("only owners can transfer ownership")
    if new_owner_id is None:
        raise ValidationError("new_owner_id is required")
    if new_owner_id == caller_id:
        raise ValidationError("cannot transfer ownership to yourself")

    await org_store.transfer_ownership(org_id, caller_id, new_owner_id, session)
    log.info(
        "org.ownership_transferred",
        org_id=str(org_id),
        from_user=str(caller_id),
        to_user=str(new_owner_id),
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

async def set_active_organization(
    caller_id: uuid.UUID,
    session_id: Optional[str],
    org_id: uuid.UUID,
    session: AsyncSession,
    store: SessionStore,
) -> SessionInfo:
    """Record ``org_id`` as the active organization on the caller's session."""
    if not session_id:
        raise UnauthorizedError()
    await org_store.get_member(org_id, caller_id, session)
    try:
        return await store.set_active_org(session_id, org_id)
    except SessionNotFoundError as exc:
        raise UnauthorizedError() from exc
