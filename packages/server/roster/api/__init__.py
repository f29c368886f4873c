"""
API Router

Everything here is mounted under /api and requires a session.
"""

from fastapi import APIRouter

from . import invitations, organizations

router = APIRouter()

router.include_router(organizations.router, prefix="/organizations")
router.include_router(
    invitations.router_scoped,
    prefix="/organizations/{org_id}/invitations",
    tags=["Invitations"],
)
router.include_router(invitations.router_global, prefix="/invitations", tags=["Invitations"])
