"""
Tenant Scope Resolver
Builds the caller's UserScope from an authenticated session
"""
import logging
from typing import Optional

from crm_core.core.exceptions import (
    AuthenticationError,
    MissingTenantError,
    ProfileNotFoundError,
)
from crm_core.domain.interfaces.profile_store import ProfileStore
from crm_core.domain.models.scope import UserScope, is_known_role

logger = logging.getLogger(__name__)


class TenantScopeResolver:
    """Derives UserScope (identity, tenant, role, sede) for one request"""

    def __init__(self, profile_store: ProfileStore):
        self._profiles = profile_store

    async def resolve_scope(self, session_user_id: Optional[str]) -> UserScope:
        """
        Resolve the scope of an authenticated user.

        Args:
            session_user_id: User id from the identity provider

        Returns:
            Immutable UserScope

        Raises:
            AuthenticationError: No valid session
            ProfileNotFoundError: No profile row for the user
            MissingTenantError: Profile has no tenant and user is not super-admin
        """
        if not session_user_id:
            raise AuthenticationError()

        profile = await self._profiles.get_profile(session_user_id)
        if profile is None:
            raise ProfileNotFoundError(session_user_id)

        is_super_admin = await self._profiles.is_super_admin(session_user_id)

        tenant_id = profile.tenant_id or None
        if tenant_id is None and not is_super_admin:
            raise MissingTenantError(session_user_id)

        if not is_known_role(profile.comercial_role):
            logger.warning(
                f"User {session_user_id} has unknown comercial role "
                f"'{profile.comercial_role}', no contact or campaign access granted"
            )

        return UserScope(
            user_id=session_user_id,
            tenant_id=tenant_id,
            is_super_admin=is_super_admin,
            comercial_role=profile.comercial_role,
            location_id=profile.location_id,
        )
