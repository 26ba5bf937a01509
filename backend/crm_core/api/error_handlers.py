"""
Exception handlers for FastAPI.
Maps CrmCoreError subclasses onto their HTTP status and a stable JSON body.
"""
import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from crm_core.core.exceptions import AuthenticationError, CrmCoreError

logger = logging.getLogger(__name__)


def _body(message: str, code: str, details: dict) -> dict:
    body = {
        "error": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        body["details"] = details
    return body


async def crm_core_exception_handler(request: Request, exc: CrmCoreError) -> JSONResponse:
    """Handler for every domain error"""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__}: {exc.message}",
            extra={"code": exc.code, "details": exc.details, "path": request.url.path},
        )

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(exc.message, exc.code, exc.details),
        headers=headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions"""
    logger.exception(f"Unhandled error: {exc}", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=_body("Internal server error", "internal_error", {}),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers on the FastAPI app.

    Usage:
        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(CrmCoreError, crm_core_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
