"""
Profile Store Interfaces
Read access to user profiles and guarded comercial role writes
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from crm_core.domain.models.comercial_user import ComercialUser
from crm_core.domain.models.scope import ComercialRole, RoleValue


class ProfileStore(ABC):
    """Reads (tenant_id, comercial_role, location_id) by user id"""

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[ComercialUser]:
        """Return the user's profile, or None if no profile row exists"""
        pass

    @abstractmethod
    async def is_super_admin(self, user_id: str) -> bool:
        """Whether the user holds the platform super_admin account role"""
        pass


class ComercialUserStore(ProfileStore):
    """Profile store that can also list users and persist role changes"""

    @abstractmethod
    async def list_users(self, tenant_id: str) -> List[ComercialUser]:
        """List all profiles of a tenant ordered by email"""
        pass

    @abstractmethod
    async def compare_and_set_role(
        self,
        user_id: str,
        expected_role: Optional[RoleValue],
        new_role: Optional[ComercialRole],
        location_id: Optional[str],
        external_id: Optional[str],
    ) -> Optional[ComercialUser]:
        """
        Atomically replace role, location and external id on one row.

        The write only happens if the row's current comercial_role still
        equals expected_role.

        Returns:
            The updated user, or None if the precondition did not hold
        """
        pass
