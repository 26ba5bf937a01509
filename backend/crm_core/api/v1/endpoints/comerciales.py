"""
Comerciales Endpoints
Tenant users with comercial roles and role management
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from crm_core.api.v1.dependencies import get_role_assignment_service, get_user_scope
from crm_core.domain.models.scope import ComercialRole, UserScope
from crm_core.domain.services.role_assignment import RoleAssignmentService

router = APIRouter(prefix="/comerciales", tags=["comerciales"])


class AssignRoleRequest(BaseModel):
    """Request body for granting or changing a comercial role"""
    comercial_role: ComercialRole
    location_id: Optional[str] = Field(None, description="Required for director_sede")
    external_id: str = Field(..., description="User id in the external management software")


@router.get("/")
async def list_comerciales(
    scope: UserScope = Depends(get_user_scope),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
):
    """List every user of the caller's tenant with their comercial role"""
    users = await service.list_comerciales(scope)
    return {"comerciales": [u.model_dump(mode="json") for u in users]}


@router.get("/assignable-roles")
async def assignable_roles(
    scope: UserScope = Depends(get_user_scope),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
):
    """Roles the caller may grant, most powerful first"""
    return {"roles": [r.value for r in service.assignable_roles(scope)]}


@router.put("/{user_id}/role")
async def assign_role(
    user_id: str,
    body: AssignRoleRequest,
    scope: UserScope = Depends(get_user_scope),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
):
    """Grant or change a comercial role"""
    user = await service.assign_role(
        scope,
        user_id,
        body.comercial_role,
        location_id=body.location_id,
        external_id=body.external_id,
    )
    return {"comercial": user.model_dump(mode="json")}


@router.delete("/{user_id}/role")
async def revoke_role(
    user_id: str,
    scope: UserScope = Depends(get_user_scope),
    service: RoleAssignmentService = Depends(get_role_assignment_service),
):
    """Remove a user's comercial role"""
    user = await service.revoke_role(scope, user_id)
    return {"comercial": user.model_dump(mode="json")}
