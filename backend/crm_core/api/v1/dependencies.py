"""
API Dependencies
Shared dependencies for authentication, storage access, and authorization
"""
import hmac
from functools import lru_cache
from typing import Optional, Union

from fastapi import Depends, Header
from supabase import create_client, Client

from crm_core.core.config import ConfigManager, Settings, get_settings
from crm_core.core.exceptions import AccessDeniedError, AuthenticationError
from crm_core.domain.interfaces.session_provider import SessionProvider
from crm_core.domain.models.scope import UserScope
from crm_core.domain.services.campaign_orchestrator import CampaignBatchOrchestrator
from crm_core.domain.services.contact_assignment import ContactAssignmentService
from crm_core.domain.services.contact_visibility import (
    MAX_VISIBLE_CONTACTS,
    ContactVisibilityService,
)
from crm_core.domain.services.role_assignment import RoleAssignmentService
from crm_core.domain.services.role_hierarchy import permissions_for
from crm_core.domain.services.scope_resolver import TenantScopeResolver
from crm_core.infrastructure.identity.jwt_auth import JWTSessionProvider
from crm_core.infrastructure.identity.supabase_auth import SupabaseSessionProvider
from crm_core.infrastructure.storage.memory_store import MemoryStore
from crm_core.infrastructure.storage.supabase_store import SupabaseStore

Store = Union[MemoryStore, SupabaseStore]


@lru_cache()
def get_config() -> ConfigManager:
    """YAML tunables (config/default.yaml + config/{env}.yaml)"""
    return ConfigManager()


@lru_cache()
def get_supabase() -> Client:
    """
    Get Supabase client with validation.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )

    return create_client(settings.supabase_url, settings.supabase_service_key)


@lru_cache()
def _memory_store() -> MemoryStore:
    return MemoryStore()


def get_store(config: ConfigManager = Depends(get_config)) -> Store:
    """Storage backend selected by storage.backend (supabase | memory)"""
    backend = config.get("storage.backend", "supabase")
    if backend == "memory":
        return _memory_store()
    if backend != "supabase":
        raise RuntimeError(f"Unknown storage backend: {backend}")
    return SupabaseStore(get_supabase())


def get_session_provider(settings: Settings = Depends(get_settings)) -> SessionProvider:
    """Local JWT verification when the project secret is set, Supabase Auth otherwise"""
    if settings.supabase_jwt_secret:
        return JWTSessionProvider(settings.supabase_jwt_secret)
    return SupabaseSessionProvider(get_supabase())


def get_bearer_token(
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> str:
    """Extract token from "Bearer <token>" """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Use: Bearer <token>")

    return parts[1]


async def get_user_scope(
    token: str = Depends(get_bearer_token),
    session_provider: SessionProvider = Depends(get_session_provider),
    store: Store = Depends(get_store),
) -> UserScope:
    """
    Dependency resolving the caller's scope for this request.

    Raises:
        AuthenticationError: Invalid or expired token
        ProfileNotFoundError / MissingTenantError: Unusable profile
    """
    user_id = await session_provider.get_session_user_id(token)
    return await TenantScopeResolver(store).resolve_scope(user_id)


async def require_campaign_access(
    scope: UserScope = Depends(get_user_scope),
) -> UserScope:
    """Only owners and general commercial directors run campaigns"""
    if not permissions_for(scope.comercial_role).can_access_campaigns:
        raise AccessDeniedError("Your comercial role cannot access campaigns")
    return scope


def get_visibility_service(
    store: Store = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> ContactVisibilityService:
    return ContactVisibilityService(
        store,
        include_unassigned_in_sede=config.get_bool("visibility.include_unassigned_in_sede", False),
        max_visible_contacts=config.get_int("visibility.max_visible_contacts", MAX_VISIBLE_CONTACTS),
    )


def get_contact_assignment_service(
    store: Store = Depends(get_store),
    visibility: ContactVisibilityService = Depends(get_visibility_service),
) -> ContactAssignmentService:
    return ContactAssignmentService(store, store, visibility)


def get_role_assignment_service(store: Store = Depends(get_store)) -> RoleAssignmentService:
    return RoleAssignmentService(store)


def get_orchestrator(
    store: Store = Depends(get_store),
    config: ConfigManager = Depends(get_config),
) -> CampaignBatchOrchestrator:
    return CampaignBatchOrchestrator(
        store,
        batch_interval_minutes=config.get_int("campaigns.batch_interval_minutes", 2),
    )


def verify_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Callbacks from the batch delivery system carry a shared secret"""
    expected = settings.batch_webhook_secret
    if not expected or not x_webhook_secret:
        raise AuthenticationError("Webhook secret missing")
    if not hmac.compare_digest(x_webhook_secret, expected):
        raise AuthenticationError("Invalid webhook secret")
