"""
FastAPI Application Entry Point
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from crm_core.api.error_handlers import register_exception_handlers
from crm_core.api.v1.dependencies import get_config
from crm_core.api.v1.endpoints import health
from crm_core.api.v1.routes import api_router
from crm_core.core.config import get_settings
from crm_core.core.logging import setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan - startup and shutdown events.

    Startup:
    - Configures logging for the environment
    - Logs the selected storage backend and campaign tunables
    """
    setup_logging(settings.environment, settings.log_level)

    config = get_config()
    storage_backend = config.get("storage.backend", "supabase")
    if storage_backend == "memory" and settings.environment == "production":
        logger.warning("In-memory storage selected in production; data will not persist")

    logger.info(
        "Starting CRM Core",
        extra={
            "environment": settings.environment,
            "storage_backend": storage_backend,
            "batch_size": config.get_int("campaigns.batch_size", 20),
        },
    )

    yield

    logger.info("CRM Core shutdown complete")


app = FastAPI(
    title="CRM Core",
    description="Comercial access control and campaign batch orchestration",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)

# Unprefixed health check for container liveness checks
app.include_router(health.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
