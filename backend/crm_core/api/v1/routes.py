"""
API Router
Combines all endpoint routers
"""
from fastapi import APIRouter
from crm_core.api.v1.endpoints import (
    auth,
    contacts,
    comerciales,
    campaigns,
    webhooks,
    health,
)

api_router = APIRouter()

# Access control
api_router.include_router(auth.router)
api_router.include_router(contacts.router)
api_router.include_router(comerciales.router)

# Campaign batches
api_router.include_router(campaigns.router)
api_router.include_router(webhooks.router)

api_router.include_router(health.router)
