"""
Contact Visibility Filter
Narrows contact queries to what the caller's comercial role permits.

    None / director_comercial_general -> whole tenant
    director_sede                     -> contacts in their sede
                                         (+ contacts without sede when
                                          include_unassigned_in_sede is on)
    comercial                         -> contacts assigned to them

apply_visibility only composes predicates; the service and
visible_contact_ids run the composed query against a ContactStore.
"""
import logging
from typing import List, Optional, Sequence

from crm_core.core.exceptions import AccessDeniedError, NotFoundError, ValidationError
from crm_core.domain.interfaces.contact_store import ContactStore
from crm_core.domain.models.contact import Contact, ContactQuery
from crm_core.domain.models.scope import ComercialRole, UserScope
from crm_core.domain.services.tenant_guard import assert_tenant_access, require_tenant

logger = logging.getLogger(__name__)

# Upper bound on the id list returned by visible_contact_ids
MAX_VISIBLE_CONTACTS = 5000

_FULL_ACCESS_ROLES = (None, ComercialRole.DIRECTOR_COMERCIAL_GENERAL)


def has_full_contact_access(scope: UserScope) -> bool:
    return scope.comercial_role in _FULL_ACCESS_ROLES


def apply_visibility(
    query: ContactQuery,
    scope: UserScope,
    include_unassigned_in_sede: bool = False,
) -> ContactQuery:
    """
    Add the caller's visibility predicate to a contact query.

    Args:
        query: Query to narrow
        scope: Caller scope
        include_unassigned_in_sede: director_sede also sees contacts
            whose location_id is null

    Returns:
        The narrowed query (the same query for full-access roles)
    """
    role = scope.comercial_role

    if role in _FULL_ACCESS_ROLES:
        return query

    if role == ComercialRole.DIRECTOR_SEDE:
        if not scope.location_id:
            # A sede director without a sede has nothing to see
            return query.none()
        if include_unassigned_in_sede:
            return query.where_eq_or_null("location_id", scope.location_id)
        return query.where_eq("location_id", scope.location_id)

    if role == ComercialRole.COMERCIAL:
        return query.where_eq("assigned_to", scope.user_id)

    return query.none()


async def visible_contact_ids(
    scope: UserScope,
    store: ContactStore,
    include_unassigned_in_sede: bool = False,
    limit: int = MAX_VISIBLE_CONTACTS,
) -> Optional[List[str]]:
    """
    Pre-fetch the ids of contacts the caller may see.

    Used by read paths (conversations, calls, appointments) that filter
    by contact rather than querying contacts directly.

    Returns:
        None when no filtering applies (full access) - callers must treat
        None as "do not filter", never as "empty". Otherwise at most
        `limit` ids; larger visible sets are silently truncated.
    """
    if has_full_contact_access(scope):
        return None

    tenant_id = require_tenant(scope)
    query = apply_visibility(
        ContactQuery().for_tenant(tenant_id),
        scope,
        include_unassigned_in_sede=include_unassigned_in_sede,
    )
    if query.deny_all:
        return []

    ids = await store.list_contact_ids(query, limit=limit)
    if len(ids) >= limit:
        logger.debug(f"Visible contact ids for user {scope.user_id} truncated at {limit}")
    return ids[:limit]


class ContactVisibilityService:
    """Tenant- and role-scoped contact listing"""

    def __init__(
        self,
        store: ContactStore,
        include_unassigned_in_sede: bool = False,
        max_visible_contacts: int = MAX_VISIBLE_CONTACTS,
    ):
        self._store = store
        self.include_unassigned_in_sede = include_unassigned_in_sede
        self.max_visible_contacts = max_visible_contacts

    def scoped_query(self, scope: UserScope) -> ContactQuery:
        """Tenant filter plus visibility predicate for the caller"""
        query = ContactQuery()
        if not scope.is_super_admin or scope.tenant_id:
            query = query.for_tenant(require_tenant(scope))
        return apply_visibility(query, scope, self.include_unassigned_in_sede)

    async def list_contacts(
        self,
        scope: UserScope,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Contact]:
        query = self.scoped_query(scope)
        if query.deny_all:
            return []
        return await self._store.list_contacts(query, limit=limit, offset=offset)

    async def visible_contact_ids(self, scope: UserScope) -> Optional[List[str]]:
        return await visible_contact_ids(
            scope,
            self._store,
            include_unassigned_in_sede=self.include_unassigned_in_sede,
            limit=self.max_visible_contacts,
        )

    def is_visible(self, contact: Contact, scope: UserScope) -> bool:
        """
        Whether a single, already-fetched contact passes the role filter.
        Tenancy is not checked here; use assert_tenant_access first.
        """
        query = apply_visibility(ContactQuery(), scope, self.include_unassigned_in_sede)
        return query.matches(contact)

    async def require_visible(self, scope: UserScope, contact_ids: Sequence[str]) -> List[Contact]:
        """
        Fetch contacts by id, all of which the caller must be allowed to see.

        Returns:
            Contacts in the order of the (deduplicated) ids

        Raises:
            ValidationError: No ids given
            NotFoundError: An id does not exist
            AccessDeniedError: A contact belongs to another tenant or is
                outside the caller's visibility
        """
        unique_ids: List[str] = list(dict.fromkeys(contact_ids))
        if not unique_ids:
            raise ValidationError("At least one contact is required")

        by_id = {c.id: c for c in await self._store.get_contacts(unique_ids)}
        missing = [cid for cid in unique_ids if cid not in by_id]
        if missing:
            raise NotFoundError("Contact", missing[0])

        contacts = [by_id[cid] for cid in unique_ids]
        for contact in contacts:
            assert_tenant_access(contact.tenant_id, scope, "contact")
            if not self.is_visible(contact, scope):
                raise AccessDeniedError("contact is outside your visibility scope")
        return contacts
