"""
Contact Assignment
Assign contacts to comercial users within the caller's visibility
"""
import logging
from typing import Optional, Sequence

from crm_core.core.exceptions import AccessDeniedError, NotFoundError
from crm_core.domain.interfaces.contact_store import ContactStore
from crm_core.domain.interfaces.profile_store import ProfileStore
from crm_core.domain.models.scope import UserScope
from crm_core.domain.services.contact_visibility import ContactVisibilityService
from crm_core.domain.services.role_hierarchy import permissions_for
from crm_core.domain.services.tenant_guard import assert_tenant_access

logger = logging.getLogger(__name__)


class ContactAssignmentService:
    """
    Bulk (re)assignment of contacts.

    Every contact must belong to the caller's tenant, be visible to the
    caller and share the assignee's tenant; a single offending id rejects
    the whole request instead of being skipped.
    """

    def __init__(
        self,
        contact_store: ContactStore,
        profile_store: ProfileStore,
        visibility: ContactVisibilityService,
    ):
        self._contacts = contact_store
        self._profiles = profile_store
        self._visibility = visibility

    async def assign_contacts(
        self,
        scope: UserScope,
        contact_ids: Sequence[str],
        assigned_to: Optional[str],
        location_id: Optional[str] = None,
        update_location: bool = False,
    ) -> int:
        """
        Assign contacts to a user (or unassign with assigned_to=None).

        Args:
            scope: Caller scope
            contact_ids: Contacts to update
            assigned_to: Target comercial user id, or None to unassign
            location_id: New sede, applied only when update_location is set
            update_location: Whether to overwrite location_id

        Returns:
            Number of contacts updated
        """
        if not permissions_for(scope.comercial_role).can_assign_contacts:
            raise AccessDeniedError("Your comercial role cannot assign contacts")

        contacts = await self._visibility.require_visible(scope, contact_ids)

        if assigned_to is not None:
            assignee = await self._profiles.get_profile(assigned_to)
            if assignee is None:
                raise NotFoundError("Comercial", assigned_to)
            assert_tenant_access(assignee.tenant_id, scope, "comercial")

            # Holds for super-admins too, who pass the tenant check above
            foreign = sorted(c.id for c in contacts if c.tenant_id != assignee.tenant_id)
            if foreign:
                logger.warning(
                    f"User {scope.user_id} tried to assign contacts of another tenant "
                    f"to {assigned_to} (tenant {assignee.tenant_id}): {foreign}"
                )
                raise AccessDeniedError(
                    "Contacts can only be assigned to users of their own tenant",
                    {"assigned_to": assigned_to, "contact_ids": foreign},
                )

        updated = await self._contacts.assign_contacts(
            [c.id for c in contacts],
            assigned_to,
            location_id=location_id,
            update_location=update_location,
        )
        logger.info(
            f"User {scope.user_id} assigned {updated} contacts to {assigned_to or 'nobody'}"
        )
        return updated
