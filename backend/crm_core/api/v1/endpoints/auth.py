"""
Auth Endpoints
Resolved caller scope for the frontend (role, sede, capabilities)
"""
from fastapi import APIRouter, Depends

from crm_core.api.v1.dependencies import get_user_scope
from crm_core.domain.models.scope import UserScope
from crm_core.domain.services import role_hierarchy

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/scope")
async def get_scope(scope: UserScope = Depends(get_user_scope)):
    """
    Return the authenticated caller's scope.

    The frontend uses `permissions` to decide which screens to show; the
    backend enforces the same rules on every call regardless.
    """
    role_rank = role_hierarchy.rank(scope.comercial_role)
    return {
        "scope": scope.model_dump(mode="json"),
        "rank": role_rank,
        "permissions": role_hierarchy.permissions_for(scope.comercial_role).model_dump(),
        "assignable_roles": [r.value for r in role_hierarchy.assignable_roles(role_rank)],
    }
