"""
Contact Store Interface
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from crm_core.domain.models.contact import Contact, ContactQuery


class ContactStore(ABC):
    """Predicate-composable contact storage"""

    @abstractmethod
    async def list_contacts(
        self,
        query: ContactQuery,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Contact]:
        """Contacts matching the query"""
        pass

    @abstractmethod
    async def list_contact_ids(self, query: ContactQuery, limit: int) -> List[str]:
        """Ids of contacts matching the query, at most `limit` of them"""
        pass

    @abstractmethod
    async def get_contacts(self, contact_ids: Sequence[str]) -> List[Contact]:
        """Fetch contacts by id regardless of tenant (callers guard tenancy)"""
        pass

    @abstractmethod
    async def assign_contacts(
        self,
        contact_ids: Sequence[str],
        assigned_to: Optional[str],
        location_id: Optional[str] = None,
        update_location: bool = False,
    ) -> int:
        """
        Set assigned_to (and optionally location_id) on the given contacts.

        Returns:
            Number of rows updated
        """
        pass
