"""
Tenant Filter Utility
Shared helpers that turn tenant and contact predicates into Supabase filters
"""
from typing import Any, Optional

from crm_core.domain.models.contact import ContactQuery, Predicate


def apply_tenant_filter(query: Any, tenant_id: Optional[str], column: str = "tenant_id") -> Any:
    """
    Apply tenant filtering to a Supabase query.

    Args:
        query: Supabase query builder object (from supabase.table(...).select(...))
        tenant_id: Tenant to restrict to; None applies no filter
        column: Name of the tenant_id column (default: "tenant_id")

    Returns:
        Modified query with tenant filter applied, or original query if tenant_id is None

    Note:
        Only a tenantless super-admin scope ever reaches this with None.
        Services resolve the tenant through require_tenant first.
    """
    if tenant_id:
        return query.eq(column, tenant_id)
    return query


def apply_predicate(query: Any, predicate: Predicate) -> Any:
    """Translate one Predicate into PostgREST filter syntax"""
    if predicate.value is None:
        return query.is_(predicate.column, "null")
    if predicate.or_null:
        return query.or_(
            f"{predicate.column}.eq.{predicate.value},{predicate.column}.is.null"
        )
    return query.eq(predicate.column, predicate.value)


def apply_contact_query(query: Any, contact_query: ContactQuery) -> Any:
    """
    Apply a ContactQuery to a Supabase query.

    Callers must check `contact_query.deny_all` first; a deny-all query
    has no PostgREST equivalent and should not hit the database.

    Usage:
        query = supabase.table("crm_contacts").select("*")
        query = apply_contact_query(query, scoped)
        response = query.execute()
    """
    query = apply_tenant_filter(query, contact_query.tenant_id)
    for predicate in contact_query.predicates:
        query = apply_predicate(query, predicate)
    return query
