"""
Role policy: pure capability checks over the closed ``Role`` enum.

Unknown values are never an error here, they are simply invalid and grant
nothing. Callers decide how to report that.
"""

from __future__ import annotations

from typing import Optional, Union

from roster_shared.schemas.common import ROLE_CAPABILITIES, ROLE_RANK, Capability, Role

RoleLike = Union[Role, str]


def parse_role(value: RoleLike) -> Optional[Role]:
    """Return the ``Role`` for ``value`` or None if it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def is_valid_role(value: RoleLike) -> bool:
    return parse_role(value) is not None


def has_capability(role: RoleLike, capability: Capability) -> bool:
    parsed = parse_role(role)
    if parsed is None:
        return False
    return capability in ROLE_CAPABILITIES[parsed]


def can_manage_members(role: RoleLike) -> bool:
    return has_capability(role, Capability.MANAGE_MEMBERS)


def can_delete_org(role: RoleLike) -> bool:
    return has_capability(role, Capability.DELETE_ORGANIZATION)


def can_transfer_ownership(role: RoleLike) -> bool:
    return has_capability(role, Capability.TRANSFER_OWNERSHIP)


def role_rank(role: RoleLike) -> int:
    """Privilege rank (owner highest); 0 for unknown values."""
    parsed = parse_role(role)
    return ROLE_RANK[parsed] if parsed is not None else 0
