"""
Core Exceptions
Error taxonomy shared by the authorization and campaign services.

Each error carries the HTTP status and a stable code used by the API
exception handler; services raise them and never return empty results
in place of a denial.
"""
from typing import Optional


class CrmCoreError(Exception):
    """Base exception for all core errors"""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class AuthenticationError(CrmCoreError):
    """No valid session. Surfaced as 'please sign in again'."""

    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Please sign in again", details: Optional[dict] = None):
        super().__init__(message, details)


class ProfileNotFoundError(CrmCoreError):
    """Authenticated user has no profile row."""

    status_code = 403
    code = "profile_not_found"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            "User profile not found. Please contact support.",
            {"user_id": user_id},
        )


class MissingTenantError(CrmCoreError):
    """Non super-admin user has no tenant association."""

    status_code = 403
    code = "missing_tenant"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(
            "User has no tenant association. Please contact support.",
            {"user_id": user_id},
        )


class AccessDeniedError(CrmCoreError):
    """Tenant mismatch or role hierarchy violation."""

    status_code = 403
    code = "access_denied"


class ValidationError(CrmCoreError):
    """Bad input combination, recoverable by the caller."""

    status_code = 422
    code = "validation_error"


class NotFoundError(CrmCoreError):
    """Requested resource does not exist."""

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        details = {"id": identifier} if identifier else {}
        super().__init__(f"{resource} not found", details)


class RoleConflictError(CrmCoreError):
    """Target user's role changed between validation and persist."""

    status_code = 409
    code = "role_conflict"


class BatchCreationError(CrmCoreError):
    """Campaign creation rolled back; the caller may retry."""

    status_code = 500
    code = "batch_creation_failed"


class BatchTransitionError(CrmCoreError):
    """Batch is not in a state that allows the requested transition."""

    status_code = 409
    code = "invalid_batch_transition"
