"""
Tenant Isolation Guard
Application-level check that a resource belongs to the caller's tenant.

This is the only place on the authorization path that logs: every
isolation violation produces one structured record on the
`crm_core.security` logger before the error propagates.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from crm_core.core.exceptions import AccessDeniedError, MissingTenantError
from crm_core.domain.models.scope import UserScope

security_logger = logging.getLogger("crm_core.security")


def assert_tenant_access(
    resource_tenant_id: Optional[str],
    scope: UserScope,
    resource_type: str,
) -> None:
    """
    Validate that a resource belongs to the current user's tenant.

    Args:
        resource_tenant_id: tenant_id of the resource being accessed
        scope: Current caller scope
        resource_type: Resource name used in the error (e.g. "contact")

    Raises:
        AccessDeniedError: If the tenants differ and caller is not super-admin
    """
    if scope.is_super_admin:
        return

    if resource_tenant_id != scope.tenant_id:
        security_logger.error(
            "Tenant isolation violation detected",
            extra={
                "event": "security.tenant_violation",
                "user_id": scope.user_id,
                "user_tenant_id": scope.tenant_id,
                "resource_tenant_id": resource_tenant_id,
                "resource_type": resource_type,
                "violation_at": datetime.now(timezone.utc).isoformat(),
            },
        )
        raise AccessDeniedError(f"{resource_type} does not belong to your organization")


def require_tenant(scope: UserScope) -> str:
    """Return the caller's tenant_id or fail if the caller has none"""
    if not scope.tenant_id:
        raise MissingTenantError(scope.user_id)
    return scope.tenant_id
