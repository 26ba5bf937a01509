"""
Health Check Endpoint
Provides health status for Docker health checks and monitoring
"""
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, status

from crm_core.api.v1.dependencies import get_config
from crm_core.core.config import ConfigManager

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(config: ConfigManager = Depends(get_config)) -> Dict[str, str]:
    """
    Health check endpoint for Docker and monitoring systems.

    Returns:
        Dict with status, timestamp and the active storage backend
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "crm-core",
        "storage": str(config.get("storage.backend", "supabase")),
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def root() -> Dict[str, str]:
    """
    Root endpoint.

    Returns:
        Welcome message
    """
    return {
        "message": "CRM Core API",
        "version": "1.0.0",
        "docs": "/docs",
    }
