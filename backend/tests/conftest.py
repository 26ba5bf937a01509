"""
Shared fixtures: two tenants, one user per comercial role and a handful of
contacts spread over sedes and assignees.
"""
import os

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")

from crm_core.domain.models import (  # noqa: E402
    ComercialRole,
    ComercialUser,
    Contact,
    UserScope,
)
from crm_core.infrastructure.storage.memory_store import MemoryStore  # noqa: E402

TENANT = "tenant-1"
OTHER_TENANT = "tenant-2"
SEDE_A = "loc-a"
SEDE_B = "loc-b"

USERS = [
    ComercialUser(id="owner", tenant_id=TENANT, email="owner@acme.test"),
    ComercialUser(
        id="dcg", tenant_id=TENANT, email="dcg@acme.test",
        comercial_role=ComercialRole.DIRECTOR_COMERCIAL_GENERAL, external_id="ext-dcg",
    ),
    ComercialUser(
        id="sede-a", tenant_id=TENANT, email="sede-a@acme.test",
        comercial_role=ComercialRole.DIRECTOR_SEDE, location_id=SEDE_A, external_id="ext-sa",
    ),
    ComercialUser(
        id="com-1", tenant_id=TENANT, email="com1@acme.test",
        comercial_role=ComercialRole.COMERCIAL, external_id="ext-c1",
    ),
    ComercialUser(
        id="com-2", tenant_id=TENANT, email="com2@acme.test",
        comercial_role=ComercialRole.COMERCIAL, external_id="ext-c2",
    ),
    ComercialUser(id="other-owner", tenant_id=OTHER_TENANT, email="owner@other.test"),
    ComercialUser(id="admin", tenant_id=None, email="admin@platform.test"),
]

CONTACTS = [
    Contact(id="c1", tenant_id=TENANT, location_id=SEDE_A, assigned_to="com-1",
            nombre="Ana", numero="+34600000001", attributes={"city": "Madrid", "score": 7}),
    Contact(id="c2", tenant_id=TENANT, location_id=SEDE_A, assigned_to="com-2",
            nombre="Luis", numero="+34600000002"),
    Contact(id="c3", tenant_id=TENANT, location_id=SEDE_B, assigned_to=None,
            nombre="Marta", numero="+34600000003"),
    Contact(id="c4", tenant_id=TENANT, location_id=None, assigned_to=None,
            nombre="Pablo", numero="+34600000004"),
    Contact(id="c9", tenant_id=OTHER_TENANT, location_id=None, assigned_to=None,
            nombre="Zoe", numero="+34600000009"),
]


def scope_for(user_id: str) -> UserScope:
    """Scope as the resolver would build it for a seeded user"""
    user = next(u for u in USERS if u.id == user_id)
    return UserScope(
        user_id=user.id,
        tenant_id=user.tenant_id,
        is_super_admin=user.id == "admin",
        comercial_role=user.comercial_role,
        location_id=user.location_id,
    )


@pytest.fixture
def store() -> MemoryStore:
    """Fresh seeded in-memory store per test"""
    return MemoryStore(profiles=USERS, contacts=CONTACTS, super_admins=["admin"])


@pytest.fixture
def scope_of():
    """Callable building the scope of a seeded user by id"""
    return scope_for
