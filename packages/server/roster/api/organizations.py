"""
Organization API endpoints.

POST   /api/organizations                             Create an org (caller becomes owner)
GET    /api/organizations                             List the caller's orgs
PUT    /api/organizations/active                      Set the session's active org
GET    /api/organizations/slug/{slug}                 Get org by slug
GET    /api/organizations/{orgId}                     Get org details
PUT    /api/organizations/{orgId}                     Rename org
DELETE /api/organizations/{orgId}                     Delete org (owner only)
POST   /api/organizations/{orgId}/leave               Leave org
POST   /api/organizations/{orgId}/transfer            Transfer ownership
GET    /api/organizations/{orgId}/members             List members
PUT    /api/organizations/{orgId}/members/{userId}    Change a member's role
DELETE /api/organizations/{orgId}/members/{userId}    Remove a member
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.auth import CurrentUser, get_current_user
from roster.core.database import get_session
from roster.core.sessions import SessionStore, get_session_store
from roster.services import organizations as org_service
from roster_shared.schemas.common import DataResponse
from roster_shared.schemas.organizations import (
    MemberResponse,
    MemberRoleUpdateRequest,
    OrgCreateRequest,
    OrgUpdateRequest,
    OrgWithRoleResponse,
    SetActiveOrgRequest,
    TransferOwnershipRequest,
)

router = APIRouter()


@router.post(
    "",
    response_model=DataResponse[OrgWithRoleResponse],
    status_code=201,
    tags=["Organizations"],
)
async def create_org(
    body: OrgCreateRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its owner."""
    org = await org_service.create_organization(auth.user_id, body.name, session)
    return DataResponse(data=OrgWithRoleResponse(**org))


@router.get("", response_model=DataResponse[list[OrgWithRoleResponse]], tags=["Organizations"])
async def list_orgs(
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to, with their role."""
    items = await org_service.list_organizations(auth.user_id, session)
    return DataResponse(data=[OrgWithRoleResponse(**item) for item in items])


# Declared before /{org_id} so "active" is never parsed as an org id.
@router.put("/active", status_code=204, tags=["Organizations"])
async def set_active_org(
    body: SetActiveOrgRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    store: SessionStore = Depends(get_session_store),
):
    """Record the active organization on the caller's session."""
    await org_service.set_active_organization(
        auth.user_id, auth.session_id, body.organization_id, session, store
    )
    return Response(status_code=204)


@router.get(
    "/slug/{slug}",
    response_model=DataResponse[OrgWithRoleResponse],
    tags=["Organizations"],
)
async def get_org_by_slug(
    slug: str,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_organization_by_slug(auth.user_id, slug, session)
    return DataResponse(data=OrgWithRoleResponse(**org))


@router.get("/{org_id}", response_model=DataResponse[OrgWithRoleResponse], tags=["Organizations"])
async def get_org(
    org_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    org = await org_service.get_organization(auth.user_id, org_id, session)
    return DataResponse(data=OrgWithRoleResponse(**org))


@router.put("/{org_id}", response_model=DataResponse[OrgWithRoleResponse], tags=["Organizations"])
async def update_org(
    org_id: uuid.UUID,
    body: OrgUpdateRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Rename an org (owner or admin). The slug is unchanged."""
    org = await org_service.update_organization(auth.user_id, org_id, body.name, session)
    return DataResponse(data=OrgWithRoleResponse(**org))


@router.delete("/{org_id}", status_code=204, tags=["Organizations"])
async def delete_org(
    org_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Delete an org with its members and invitations (owner only)."""
    await org_service.delete_organization(auth.user_id, org_id, session)
    return Response(status_code=204)


@router.post("/{org_id}/leave", status_code=204, tags=["Organizations"])
async def leave_org(
    org_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.leave_organization(auth.user_id, org_id, session)
    return Response(status_code=204)


@router.post("/{org_id}/transfer", status_code=204, tags=["Organizations"])
async def transfer_ownership(
    org_id: uuid.UUID,
    body: TransferOwnershipRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Make another member the owner; the caller is demoted to admin."""
    await org_service.transfer_ownership(auth.user_id, org_id, body.new_owner_id, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get(
    "/{org_id}/members",
    response_model=DataResponse[list[MemberResponse]],
    tags=["Members"],
)
async def list_members(
    org_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    items = await org_service.list_members(auth.user_id, org_id, session)
    return DataResponse(data=[MemberResponse(**item) for item in items])


@router.put("/{org_id}/members/{user_id}", status_code=204, tags=["Members"])
async def update_member_role(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    body: MemberRoleUpdateRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.update_member_role(auth.user_id, org_id, user_id, body.role, session)
    return Response(status_code=204)


@router.delete("/{org_id}/members/{user_id}", status_code=204, tags=["Members"])
async def remove_member(
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await org_service.remove_member(auth.user_id, org_id, user_id, session)
    return Response(status_code=204)
