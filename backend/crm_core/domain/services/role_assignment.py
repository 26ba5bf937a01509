"""
Role Assignment Validator
Governs who may grant or revoke comercial roles on whom.

The hierarchy check is on the target's CURRENT role: a user without a
comercial role is a tenant owner (rank 0) and can never be managed by
anyone holding a comercial role, whatever role is being requested.
"""
import logging
from typing import List, Optional

from crm_core.core.exceptions import (
    AccessDeniedError,
    NotFoundError,
    RoleConflictError,
    ValidationError,
)
from crm_core.domain.interfaces.profile_store import ComercialUserStore
from crm_core.domain.models.comercial_user import ComercialUser
from crm_core.domain.models.scope import ComercialRole, UserScope
from crm_core.domain.services import role_hierarchy
from crm_core.domain.services.tenant_guard import assert_tenant_access, require_tenant

logger = logging.getLogger(__name__)


def validate_assignment(
    actor_scope: UserScope,
    target_current_role: Optional[ComercialRole],
    requested_role: Optional[ComercialRole],
    requested_location: Optional[str],
    external_id: Optional[str] = None,
) -> None:
    """
    Validate a role change before it is persisted.

    Args:
        actor_scope: Caller scope
        target_current_role: Role the target holds right now
        requested_role: Role to grant (None = strip the role)
        requested_location: Sede for director_sede grants
        external_id: Identifier in the external management software

    Raises:
        AccessDeniedError: Actor does not outrank the target, or would grant
            a role equal to or above its own
        ValidationError: Missing location or external id
    """
    actor_rank = role_hierarchy.rank(actor_scope.comercial_role)
    target_rank = role_hierarchy.rank(target_current_role)

    if not role_hierarchy.can_manage(actor_rank, target_rank):
        raise AccessDeniedError("Cannot manage a user with equal or higher rank")

    if requested_role is not None:
        if role_hierarchy.rank(requested_role) <= actor_rank:
            raise AccessDeniedError("Cannot assign a role equal or higher than your own")

        if requested_role == ComercialRole.DIRECTOR_SEDE and not requested_location:
            raise ValidationError("location required")

        if not (external_id or "").strip():
            raise ValidationError("external id required")


class RoleAssignmentService:
    """Validated, atomic comercial role changes"""

    def __init__(self, user_store: ComercialUserStore):
        self._users = user_store

    async def list_comerciales(self, scope: UserScope) -> List[ComercialUser]:
        tenant_id = require_tenant(scope)
        return await self._users.list_users(tenant_id)

    def assignable_roles(self, scope: UserScope) -> List[ComercialRole]:
        return role_hierarchy.assignable_roles(role_hierarchy.rank(scope.comercial_role))

    async def _load_target(self, scope: UserScope, target_user_id: str) -> ComercialUser:
        if target_user_id == scope.user_id:
            raise AccessDeniedError("Cannot change your own comercial role")

        target = await self._users.get_profile(target_user_id)
        if target is None:
            raise NotFoundError("User", target_user_id)

        assert_tenant_access(target.tenant_id, scope, "user")
        return target

    async def assign_role(
        self,
        scope: UserScope,
        target_user_id: str,
        role: ComercialRole,
        location_id: Optional[str] = None,
        external_id: Optional[str] = None,
    ) -> ComercialUser:
        """
        Grant or change a comercial role.

        The write is a compare-and-set on the role that was validated, so
        two concurrent grants cannot both pass against a stale role.

        Raises:
            RoleConflictError: The target's role changed since it was read
        """
        target = await self._load_target(scope, target_user_id)

        validate_assignment(scope, target.comercial_role, role, location_id, external_id)

        # Only sede directors carry a sede on their profile
        stored_location = location_id if role == ComercialRole.DIRECTOR_SEDE else None

        updated = await self._users.compare_and_set_role(
            target_user_id,
            expected_role=target.comercial_role,
            new_role=role,
            location_id=stored_location,
            external_id=external_id.strip() if external_id else None,
        )
        if updated is None:
            raise RoleConflictError("User role changed concurrently, reload and try again")

        logger.info(
            f"User {scope.user_id} set comercial role of {target_user_id} "
            f"from {target.comercial_role} to {role.value}"
        )
        return updated

    async def revoke_role(self, scope: UserScope, target_user_id: str) -> ComercialUser:
        """Strip a user's comercial role, location and external id"""
        target = await self._load_target(scope, target_user_id)

        if target.comercial_role is None:
            raise ValidationError("User has no comercial role")

        validate_assignment(scope, target.comercial_role, None, None)

        updated = await self._users.compare_and_set_role(
            target_user_id,
            expected_role=target.comercial_role,
            new_role=None,
            location_id=None,
            external_id=None,
        )
        if updated is None:
            raise RoleConflictError("User role changed concurrently, reload and try again")

        logger.info(f"User {scope.user_id} removed comercial role of {target_user_id}")
        return updated
