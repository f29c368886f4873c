"""
Organization service tests.

Tests cover:
- Org CRUD and slug handling
- Member listing, role changes, removal, leave
- The owner floor (every org keeps at least one owner)
- Ownership transfer atomicity
"""

from __future__ import annotations

import uuid

import pytest

from roster.core.errors import (
    AlreadyMemberError,
    ForbiddenError,
    LastOwnerError,
    NotAMemberError,
    NotFoundError,
    SlugExistsError,
    UnauthorizedError,
    ValidationError,
)
from roster.services import organizations as org_service
from roster.stores import organizations as org_store
from roster_shared.schemas.common import Role


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _org_with_members(run, make_user, **roles_by_name):
    """Create an org owned by a fresh user and add one member per keyword."""
    owner = await make_user(name="Owner")
    org = await run(org_service.create_organization, owner.id, "Acme")
    users = {"owner": owner}
    for label, role in roles_by_name.items():
        user = await make_user(name=label.title())
        await run(org_store.add_member, org["id"], user.id, role)
        users[label] = user
    return org, users


async def _role_of(run, org_id, user_id):
    member = await run(org_store.get_member_or_none, org_id, user_id)
    return member.role if member else None


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

class TestCreateOrganization:
    async def test_creator_becomes_owner(self, run, make_user):
        user = await make_user()
        org = await run(org_service.create_organization, user.id, "My Team!!")

        assert org["role"] == "owner"
        assert org["name"] == "My Team!!"
        assert org["slug"] == f"my-team-{str(user.id)[:8]}"
        assert await run(org_store.count_owners, org["id"]) == 1
        assert await _role_of(run, org["id"], user.id) == "owner"

    async def test_name_is_trimmed(self, run, make_user):
        user = await make_user()
        org = await run(org_service.create_organization, user.id, "  Acme  ")
        assert org["name"] == "Acme"

    async def test_blank_name_rejected(self, run, make_user):
        user = await make_user()
        with pytest.raises(ValidationError):
            await run(org_service.create_organization, user.id, "   ")

    async def test_slug_collision(self, run, make_user):
        user = await make_user()
        await run(org_service.create_organization, user.id, "Acme")
        with pytest.raises(SlugExistsError):
            await run(org_service.create_organization, user.id, "ACME!")

    async def test_failed_create_leaves_no_rows(self, run, make_user):
        user = await make_user()
        await run(org_service.create_organization, user.id, "Acme")
        with pytest.raises(SlugExistsError):
            await run(org_service.create_organization, user.id, "acme")
        assert len(await run(org_service.list_organizations, user.id)) == 1


class TestReadOrganization:
    async def test_list_ordered_by_name_with_role(self, run, make_user):
        user = await make_user()
        other = await make_user()
        await run(org_service.create_organization, user.id, "Zeta")
        await run(org_service.create_organization, user.id, "Alpha")
        beta = await run(org_service.create_organization, other.id, "Beta")
        await run(org_store.add_member, beta["id"], user.id, Role.MEMBER)

        orgs = await run(org_service.list_organizations, user.id)
        assert [(o["name"], o["role"]) for o in orgs] == [
            ("Alpha", "owner"),
            ("Beta", "member"),
            ("Zeta", "owner"),
        ]

    async def test_get_requires_membership(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        outsider = await make_user()

        got = await run(org_service.get_organization, users["owner"].id, org["id"])
        assert got["id"] == org["id"]
        with pytest.raises(NotAMemberError):
            await run(org_service.get_organization, outsider.id, org["id"])

    async def test_get_by_slug(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        got = await run(org_service.get_organization_by_slug, users["bob"].id, org["slug"])
        assert got["id"] == org["id"]
        assert got["role"] == "member"

    async def test_get_by_unknown_slug(self, run, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError):
            await run(org_service.get_organization_by_slug, user.id, "nope-12345678")


class TestUpdateAndDelete:
    async def test_admin_can_rename_slug_unchanged(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN)
        updated = await run(
            org_service.update_organization, users["alice"].id, org["id"], "Acme Renamed"
        )
        assert updated["name"] == "Acme Renamed"
        assert updated["slug"] == org["slug"]
        assert updated["role"] == "admin"

    async def test_member_cannot_rename(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        with pytest.raises(ForbiddenError):
            await run(org_service.update_organization, users["bob"].id, org["id"], "Nope")

    async def test_rename_to_blank_rejected(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(ValidationError):
            await run(org_service.update_organization, users["owner"].id, org["id"], "")

    async def test_only_owner_can_delete(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN)
        with pytest.raises(ForbiddenError):
            await run(org_service.delete_organization, users["alice"].id, org["id"])

    async def test_delete_cascades_members(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN)
        await run(org_service.delete_organization, users["owner"].id, org["id"])

        assert await run(org_service.list_organizations, users["alice"].id) == []
        with pytest.raises(NotFoundError):
            await run(org_store.get_by_id, org["id"])


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class TestListMembers:
    async def test_ordered_by_role_then_name(self, run, make_user):
        owner = await make_user(name="Zed")
        org = await run(org_service.create_organization, owner.id, "Acme")
        for name, role in [("Carol", Role.MEMBER), ("Bob", Role.ADMIN), ("Amy", Role.MEMBER)]:
            user = await make_user(name=name)
            await run(org_store.add_member, org["id"], user.id, role)

        members = await run(org_service.list_members, owner.id, org["id"])
        assert [(m["name"], m["role"]) for m in members] == [
            ("Zed", "owner"),
            ("Bob", "admin"),
            ("Amy", "member"),
            ("Carol", "member"),
        ]
        assert members[0]["email"] == owner.email

    async def test_outsider_cannot_list(self, run, make_user):
        org, _ = await _org_with_members(run, make_user)
        outsider = await make_user()
        with pytest.raises(NotAMemberError):
            await run(org_service.list_members, outsider.id, org["id"])


class TestAddMember:
    async def test_duplicate_membership(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        with pytest.raises(AlreadyMemberError):
            await run(org_store.add_member, org["id"], users["bob"].id, Role.ADMIN)
        assert await _role_of(run, org["id"], users["bob"].id) == "member"

    async def test_deleted_organization(self, run, make_user):
        user = await make_user()
        with pytest.raises(NotFoundError, match="organization not found"):
            await run(org_store.add_member, uuid.uuid4(), user.id, Role.MEMBER)


class TestUpdateMemberRole:
    async def test_admin_promotes_member_to_admin(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN, bob=Role.MEMBER)
        await run(
            org_service.update_member_role, users["alice"].id, org["id"], users["bob"].id, "admin"
        )
        assert await _role_of(run, org["id"], users["bob"].id) == "admin"

    async def test_member_cannot_change_roles(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER, carol=Role.MEMBER)
        with pytest.raises(ForbiddenError):
            await run(
                org_service.update_member_role,
                users["bob"].id,
                org["id"],
                users["carol"].id,
                "admin",
            )

    async def test_invalid_role(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        with pytest.raises(ValidationError):
            await run(
                org_service.update_member_role,
                users["owner"].id,
                org["id"],
                users["bob"].id,
                "superuser",
            )

    async def test_unknown_target(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(NotFoundError):
            await run(
                org_service.update_member_role, users["owner"].id, org["id"], uuid.uuid4(), "admin"
            )

    async def test_admin_cannot_grant_owner(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN, bob=Role.MEMBER)
        with pytest.raises(ForbiddenError):
            await run(
                org_service.update_member_role,
                users["alice"].id,
                org["id"],
                users["bob"].id,
                "owner",
            )

    async def test_admin_cannot_demote_owner(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN, co=Role.OWNER)
        with pytest.raises(ForbiddenError):
            await run(
                org_service.update_member_role,
                users["alice"].id,
                org["id"],
                users["co"].id,
                "member",
            )

    async def test_last_owner_cannot_be_demoted(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(LastOwnerError):
            await run(
                org_service.update_member_role,
                users["owner"].id,
                org["id"],
                users["owner"].id,
                "admin",
            )
        assert await run(org_store.count_owners, org["id"]) == 1

    async def test_owner_demoted_when_another_owner_exists(self, run, make_user):
        org, users = await _org_with_members(run, make_user, co=Role.OWNER)
        await run(
            org_service.update_member_role,
            users["owner"].id,
            org["id"],
            users["co"].id,
            "member",
        )
        assert await run(org_store.count_owners, org["id"]) == 1

    async def test_owner_keeping_owner_role_is_allowed(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        await run(
            org_service.update_member_role,
            users["owner"].id,
            org["id"],
            users["owner"].id,
            "owner",
        )
        assert await _role_of(run, org["id"], users["owner"].id) == "owner"


class TestRemoveMember:
    async def test_admin_removes_admin(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN, dave=Role.ADMIN)
        await run(org_service.remove_member, users["alice"].id, org["id"], users["dave"].id)
        assert await _role_of(run, org["id"], users["dave"].id) is None

    async def test_admin_cannot_remove_owner_even_with_two_owners(self, run, make_user):
        org, users = await _org_with_members(run, make_user, co=Role.OWNER, alice=Role.ADMIN)
        with pytest.raises(ForbiddenError):
            await run(org_service.remove_member, users["alice"].id, org["id"], users["co"].id)
        assert await run(org_store.count_owners, org["id"]) == 2

    async def test_owner_removes_other_owner(self, run, make_user):
        org, users = await _org_with_members(run, make_user, co=Role.OWNER)
        await run(org_service.remove_member, users["owner"].id, org["id"], users["co"].id)
        assert await run(org_store.count_owners, org["id"]) == 1

    async def test_last_owner_cannot_be_removed(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(LastOwnerError):
            await run(org_service.remove_member, users["owner"].id, org["id"], users["owner"].id)

    async def test_member_cannot_remove(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER, carol=Role.MEMBER)
        with pytest.raises(ForbiddenError):
            await run(org_service.remove_member, users["bob"].id, org["id"], users["carol"].id)

    async def test_missing_target(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(NotFoundError):
            await run(org_service.remove_member, users["owner"].id, org["id"], uuid.uuid4())


class TestLeave:
    async def test_member_leaves(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        await run(org_service.leave_organization, users["bob"].id, org["id"])
        assert await _role_of(run, org["id"], users["bob"].id) is None

    async def test_sole_owner_cannot_leave(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        with pytest.raises(LastOwnerError):
            await run(org_service.leave_organization, users["owner"].id, org["id"])

    async def test_non_member_cannot_leave(self, run, make_user):
        org, _ = await _org_with_members(run, make_user)
        outsider = await make_user()
        with pytest.raises(NotAMemberError):
            await run(org_service.leave_organization, outsider.id, org["id"])


# ---------------------------------------------------------------------------
# Ownership transfer
# ---------------------------------------------------------------------------

class TestTransferOwnership:
    async def test_transfer_swaps_roles(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        await run(org_service.transfer_ownership, users["owner"].id, org["id"], users["bob"].id)

        assert await _role_of(run, org["id"], users["bob"].id) == "owner"
        assert await _role_of(run, org["id"], users["owner"].id) == "admin"
        assert await run(org_store.count_owners, org["id"]) == 1

    async def test_admin_cannot_transfer(self, run, make_user):
        org, users = await _org_with_members(run, make_user, alice=Role.ADMIN, bob=Role.MEMBER)
        with pytest.raises(ForbiddenError):
            await run(
                org_service.transfer_ownership, users["alice"].id, org["id"], users["bob"].id
            )

    async def test_transfer_to_self(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(ValidationError):
            await run(
                org_service.transfer_ownership, users["owner"].id, org["id"], users["owner"].id
            )

    async def test_transfer_requires_target(self, run, make_user):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(ValidationError):
            await run(org_service.transfer_ownership, users["owner"].id, org["id"], None)

    async def test_failed_transfer_leaves_state_unchanged(self, run, make_user):
        org, users = await _org_with_members(run, make_user, bob=Role.MEMBER)
        outsider = await make_user()

        with pytest.raises(NotAMemberError):
            await run(org_service.transfer_ownership, users["owner"].id, org["id"], outsider.id)

        assert await _role_of(run, org["id"], users["owner"].id) == "owner"
        assert await _role_of(run, org["id"], users["bob"].id) == "member"
        assert await _role_of(run, org["id"], outsider.id) is None
        assert await run(org_store.count_owners, org["id"]) == 1


# ---------------------------------------------------------------------------
# Active organization
# ---------------------------------------------------------------------------

class TestSetActiveOrganization:
    async def test_sets_active_org_on_session(self, run, make_user, session_store):
        org, users = await _org_with_members(run, make_user)
        info = await session_store.create(users["owner"].id)

        updated = await run(
            org_service.set_active_organization,
            users["owner"].id,
            info.id,
            org["id"],
            store=session_store,
        )
        assert updated.active_org_id == org["id"]
        assert (await session_store.get(info.id)).active_org_id == org["id"]

    async def test_non_member_rejected(self, run, make_user, session_store):
        org, _ = await _org_with_members(run, make_user)
        outsider = await make_user()
        info = await session_store.create(outsider.id)
        with pytest.raises(NotAMemberError):
            await run(
                org_service.set_active_organization,
                outsider.id,
                info.id,
                org["id"],
                store=session_store,
            )
        assert (await session_store.get(info.id)).active_org_id is None

    async def test_missing_session(self, run, make_user, session_store):
        org, users = await _org_with_members(run, make_user)
        with pytest.raises(UnauthorizedError):
            await run(
                org_service.set_active_organization,
                users["owner"].id,
                "no-such-session",
                org["id"],
                store=session_store,
            )
