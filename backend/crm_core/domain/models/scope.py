"""
User Scope Models
Per-request caller identity and comercial role
"""
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator


class ComercialRole(str, Enum):
    """Sales hierarchy role layered on top of tenant membership"""
    DIRECTOR_COMERCIAL_GENERAL = "director_comercial_general"
    DIRECTOR_SEDE = "director_sede"
    COMERCIAL = "comercial"


# A stored role outside ComercialRole stays a plain string. It ranks below
# every known role and grants no permissions.
RoleValue = Union[ComercialRole, str]


def parse_role(value: Any) -> Optional[RoleValue]:
    """ComercialRole for known values, the raw string otherwise"""
    if value is None or isinstance(value, ComercialRole):
        return value
    try:
        return ComercialRole(value)
    except ValueError:
        return str(value)


def is_known_role(value: Optional[RoleValue]) -> bool:
    return value is None or isinstance(value, ComercialRole)


def role_value(role: Optional[RoleValue]) -> Optional[str]:
    """Column value of a role"""
    if isinstance(role, ComercialRole):
        return role.value
    return role


class UserScope(BaseModel):
    """
    Authenticated caller for one request.

    Built by the scope resolver and passed explicitly to every service
    call. Frozen: it cannot change for the lifetime of the request.
    A None comercial_role means tenant owner/admin with full access.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    tenant_id: Optional[str] = None
    is_super_admin: bool = False
    comercial_role: Optional[RoleValue] = None
    location_id: Optional[str] = None

    @field_validator("comercial_role", mode="before")
    @classmethod
    def parse_comercial_role(cls, v: Any) -> Optional[RoleValue]:
        return parse_role(v)


class ComercialPermissions(BaseModel):
    """Capabilities granted by a comercial role"""
    model_config = ConfigDict(frozen=True)

    can_view_all_contacts: bool
    can_view_sede_contacts: bool
    can_view_only_assigned: bool
    can_assign_contacts: bool
    can_access_campaigns: bool
    can_manage_comerciales: bool
