"""
Comercial User Model
"""
from pydantic import BaseModel, field_validator
from typing import Any, Optional

from crm_core.domain.models.scope import RoleValue, parse_role


class ComercialUser(BaseModel):
    """Tenant user that may hold a comercial role"""
    id: str
    tenant_id: Optional[str] = None
    email: str = ""
    full_name: Optional[str] = None
    comercial_role: Optional[RoleValue] = None
    location_id: Optional[str] = None
    external_id: Optional[str] = None

    @field_validator("comercial_role", mode="before")
    @classmethod
    def parse_comercial_role(cls, v: Any) -> Optional[RoleValue]:
        """Unknown role strings are kept, not rejected"""
        return parse_role(v)

    @classmethod
    def from_db_row(cls, row: dict) -> "ComercialUser":
        """Build from a profiles row"""
        return cls(
            id=str(row["id"]),
            tenant_id=row.get("tenant_id"),
            email=row.get("email") or "",
            full_name=row.get("full_name"),
            comercial_role=row.get("comercial_role"),
            location_id=row.get("location_id"),
            external_id=row.get("external_id"),
        )
