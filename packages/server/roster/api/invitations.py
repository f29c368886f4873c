"""
Invitation API endpoints.

Org-scoped (managers only):
POST   /api/organizations/{orgId}/invitations               Invite by email
GET    /api/organizations/{orgId}/invitations               List invitations (?status=)
DELETE /api/organizations/{orgId}/invitations/{inviteId}    Cancel an invitation

Invitee:
GET    /api/invitations                                     Pending invitations for the caller
POST   /api/invitations/{token}/accept                      Accept
POST   /api/invitations/{token}/decline                     Decline
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from roster.core.auth import CurrentUser, get_current_user
from roster.core.database import get_session
from roster.services import invitations as invitation_service
from roster_shared.schemas.common import DataResponse
from roster_shared.schemas.invitations import (
    InvitationDetailsResponse,
    InvitationResponse,
    InviteMemberRequest,
)
from roster_shared.schemas.organizations import OrgWithRoleResponse

# ---------------------------------------------------------------------------
# Org-scoped routes (orgId in path)
# ---------------------------------------------------------------------------
router_scoped = APIRouter()


@router_scoped.post("", response_model=DataResponse[InvitationResponse], status_code=201)
async def invite_member(
    org_id: uuid.UUID,
    body: InviteMemberRequest,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Invite someone by email as admin or member. The token is not returned here."""
    invitation = await invitation_service.invite(
        auth.user_id, org_id, body.email, body.role, session
    )
    return DataResponse(data=InvitationResponse.model_validate(invitation))


@router_scoped.get("", response_model=DataResponse[list[InvitationResponse]])
async def list_invitations(
    org_id: uuid.UUID,
    status: Optional[str] = Query(None, description="pending | accepted | declined | expired"),
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    items = await invitation_service.list_invitations(auth.user_id, org_id, session, status=status)
    return DataResponse(data=[InvitationResponse.model_validate(item) for item in items])


@router_scoped.delete("/{invitation_id}", status_code=204)
async def cancel_invitation(
    org_id: uuid.UUID,
    invitation_id: uuid.UUID,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await invitation_service.cancel_invitation(auth.user_id, org_id, invitation_id, session)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Invitee routes
# ---------------------------------------------------------------------------
router_global = APIRouter()


@router_global.get("", response_model=DataResponse[list[InvitationDetailsResponse]])
async def my_invitations(
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Pending, unexpired invitations addressed to the caller's email."""
    items = await invitation_service.my_invitations(auth.email, session)
    return DataResponse(
        data=[
            InvitationDetailsResponse(
                **InvitationResponse.model_validate(item.invitation).model_dump(),
                token=item.invitation.token,
                organization_name=item.organization_name,
                invited_by_name=item.invited_by_name,
            )
            for item in items
        ]
    )


@router_global.post("/{token}/accept", response_model=DataResponse[OrgWithRoleResponse])
async def accept_invitation(
    token: str,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Join the organization with the invited role."""
    org = await invitation_service.accept_invitation(auth.user_id, auth.email, token, session)
    return DataResponse(data=OrgWithRoleResponse(**org))


@router_global.post("/{token}/decline", status_code=204)
async def decline_invitation(
    token: str,
    auth: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    await invitation_service.decline_invitation(auth.email, token, session)
    return Response(status_code=204)
