"""
Role Hierarchy
Single source of truth for comercial role ranks.

Lower rank = more power. A user without a comercial role is the tenant
owner/admin and has rank 0. Every rank comparison in the codebase goes
through this module.

    None (owner)               -> may assign director_comercial_general, director_sede, comercial
    director_comercial_general -> may assign director_sede, comercial
    director_sede              -> may assign comercial
    comercial                  -> may not manage roles
"""
from typing import Dict, List, Optional, Union

from crm_core.domain.models.scope import ComercialPermissions, ComercialRole

OWNER_RANK = 0

# Unknown role strings rank below everything and can never be outranked
UNKNOWN_ROLE_RANK = 99

ROLE_RANKS: Dict[ComercialRole, int] = {
    ComercialRole.DIRECTOR_COMERCIAL_GENERAL: 1,
    ComercialRole.DIRECTOR_SEDE: 2,
    ComercialRole.COMERCIAL: 3,
}

RoleLike = Union[ComercialRole, str, None]


def _coerce(role: RoleLike) -> Optional[ComercialRole]:
    if role is None or isinstance(role, ComercialRole):
        return role
    try:
        return ComercialRole(role)
    except ValueError:
        return None


def rank(role: RoleLike) -> int:
    """Rank of a role. None -> 0, unknown strings -> UNKNOWN_ROLE_RANK."""
    if role is None:
        return OWNER_RANK
    known = _coerce(role)
    if known is None:
        return UNKNOWN_ROLE_RANK
    return ROLE_RANKS[known]


def can_manage(actor_rank: int, target_rank: Optional[int]) -> bool:
    """
    Whether an actor may change the role of a target.

    A target without a rank (no role yet) is manageable. Otherwise the
    target must be strictly less powerful than the actor, which rules
    out lateral and upward changes.
    """
    if target_rank is None:
        return True
    return target_rank > actor_rank


def assignable_roles(actor_rank: int) -> List[ComercialRole]:
    """Roles an actor may offer, most powerful first"""
    return [
        role
        for role, role_rank in sorted(ROLE_RANKS.items(), key=lambda item: item[1])
        if role_rank > actor_rank
    ]


_OWNER_PERMISSIONS = ComercialPermissions(
    can_view_all_contacts=True,
    can_view_sede_contacts=False,
    can_view_only_assigned=False,
    can_assign_contacts=True,
    can_access_campaigns=True,
    can_manage_comerciales=True,
)

_NO_PERMISSIONS = ComercialPermissions(
    can_view_all_contacts=False,
    can_view_sede_contacts=False,
    can_view_only_assigned=False,
    can_assign_contacts=False,
    can_access_campaigns=False,
    can_manage_comerciales=False,
)

ROLE_PERMISSIONS: Dict[ComercialRole, ComercialPermissions] = {
    ComercialRole.DIRECTOR_COMERCIAL_GENERAL: _OWNER_PERMISSIONS,
    ComercialRole.DIRECTOR_SEDE: ComercialPermissions(
        can_view_all_contacts=False,
        can_view_sede_contacts=True,
        can_view_only_assigned=False,
        can_assign_contacts=True,
        can_access_campaigns=False,
        can_manage_comerciales=True,
    ),
    ComercialRole.COMERCIAL: ComercialPermissions(
        can_view_all_contacts=False,
        can_view_sede_contacts=False,
        can_view_only_assigned=True,
        can_assign_contacts=False,
        can_access_campaigns=False,
        can_manage_comerciales=False,
    ),
}


def permissions_for(role: RoleLike) -> ComercialPermissions:
    """Capabilities of a role; owners get everything, unknown roles nothing"""
    if role is None:
        return _OWNER_PERMISSIONS
    known = _coerce(role)
    if known is None:
        return _NO_PERMISSIONS
    return ROLE_PERMISSIONS[known]
