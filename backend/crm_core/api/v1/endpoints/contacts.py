"""
Contacts Endpoints
Role-scoped contact listing and bulk assignment
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from crm_core.api.v1.dependencies import (
    get_contact_assignment_service,
    get_user_scope,
    get_visibility_service,
)
from crm_core.domain.models.scope import UserScope
from crm_core.domain.services.contact_assignment import ContactAssignmentService
from crm_core.domain.services.contact_visibility import ContactVisibilityService

router = APIRouter(prefix="/contacts", tags=["contacts"])


class AssignContactsRequest(BaseModel):
    """Request body for bulk assignment"""
    contact_ids: List[str] = Field(..., min_length=1)
    assigned_to: Optional[str] = Field(None, description="Comercial user id, null to unassign")
    location_id: Optional[str] = None
    update_location: bool = False


class AssignContactsResponse(BaseModel):
    updated: int


@router.get("/")
async def list_contacts(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    scope: UserScope = Depends(get_user_scope),
    visibility: ContactVisibilityService = Depends(get_visibility_service),
):
    """List the contacts the caller's comercial role may see"""
    offset = (page - 1) * page_size
    contacts = await visibility.list_contacts(scope, limit=page_size, offset=offset)
    return {
        "items": [c.model_dump() for c in contacts],
        "page": page,
        "page_size": page_size,
    }


@router.get("/visible-ids")
async def visible_contact_ids(
    scope: UserScope = Depends(get_user_scope),
    visibility: ContactVisibilityService = Depends(get_visibility_service),
):
    """
    Ids the caller may see, for filtering conversations, calls and
    appointments. `unrestricted: true` means no filter applies.
    """
    ids = await visibility.visible_contact_ids(scope)
    return {"unrestricted": ids is None, "contact_ids": ids or []}


@router.post("/assign", response_model=AssignContactsResponse)
async def assign_contacts(
    body: AssignContactsRequest,
    scope: UserScope = Depends(get_user_scope),
    service: ContactAssignmentService = Depends(get_contact_assignment_service),
):
    """Assign (or unassign) contacts within the caller's visibility"""
    updated = await service.assign_contacts(
        scope,
        body.contact_ids,
        body.assigned_to,
        location_id=body.location_id,
        update_location=body.update_location,
    )
    return AssignContactsResponse(updated=updated)
