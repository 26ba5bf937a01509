"""
Contact Domain Models

ContactQuery is a store-neutral predicate set: the visibility filter
composes onto it and each store translates it (PostgREST filters for
Supabase, `matches` for the in-memory store).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field


class Contact(BaseModel):
    """CRM contact owned by a tenant"""
    id: str
    tenant_id: str
    location_id: Optional[str] = None
    assigned_to: Optional[str] = None
    status_id: Optional[str] = None
    nombre: Optional[str] = None
    numero: str = ""
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_db_row(cls, row: dict) -> "Contact":
        """Build from a crm_contacts row"""
        return cls(
            id=str(row["id"]),
            tenant_id=str(row["tenant_id"]),
            location_id=row.get("location_id"),
            assigned_to=row.get("assigned_to"),
            status_id=row.get("status_id"),
            nombre=row.get("nombre"),
            numero=row.get("numero") or "",
            attributes=row.get("attributes") or {},
        )


@dataclass(frozen=True)
class Predicate:
    """
    column == value, or (column == value OR column IS NULL) when
    or_null is set. A None value means column IS NULL.
    """
    column: str
    value: Optional[str]
    or_null: bool = False

    def matches(self, row: Dict[str, Any]) -> bool:
        actual = row.get(self.column)
        if self.value is None:
            return actual is None
        if actual == self.value:
            return True
        return self.or_null and actual is None


@dataclass(frozen=True)
class ContactQuery:
    """
    Immutable contact filter. Each builder method returns a new query.

    `deny_all` marks a query that must match nothing, used when a scope
    cannot be mapped to any visible set.
    """
    tenant_id: Optional[str] = None
    predicates: Tuple[Predicate, ...] = field(default_factory=tuple)
    deny_all: bool = False

    def for_tenant(self, tenant_id: Optional[str]) -> "ContactQuery":
        return ContactQuery(tenant_id, self.predicates, self.deny_all)

    def where_eq(self, column: str, value: Optional[str]) -> "ContactQuery":
        return ContactQuery(
            self.tenant_id, self.predicates + (Predicate(column, value),), self.deny_all
        )

    def where_eq_or_null(self, column: str, value: str) -> "ContactQuery":
        return ContactQuery(
            self.tenant_id,
            self.predicates + (Predicate(column, value, or_null=True),),
            self.deny_all,
        )

    def none(self) -> "ContactQuery":
        return ContactQuery(self.tenant_id, self.predicates, True)

    def matches(self, contact: Contact) -> bool:
        """Evaluate in memory"""
        if self.deny_all:
            return False
        row = contact.model_dump()
        if self.tenant_id is not None and row.get("tenant_id") != self.tenant_id:
            return False
        return all(p.matches(row) for p in self.predicates)
