"""
FastAPI Application Entry Point.

This is the main application file for the School Ledger Backend.
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.staticfiles import StaticFiles
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base
from backend.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from backend.app.core.redis_client import ping_redis
from backend.app.services.change_feed import change_feed
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from backend.app.models.profile import Profile
from backend.app.models.student import Student
from backend.app.models.audit_log import AuditLog
from backend.app.models.wallet import WalletBalance, WalletTransaction, WalletTransfer
from backend.app.models.financial_transaction import FinancialTransaction, StudentFee

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables and starts the change feed relay on startup;
    stops the relay and disposes the engine on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    relay = asyncio.create_task(change_feed.relay_from_redis())
    logger.info("%s %s started", settings.app_name, settings.api_version)
    yield
    relay.cancel()
    try:
        await relay
    except asyncio.CancelledError:
        pass
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Wallet ledger, finance records and reports for school management",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Redis being down degrades token revocation and cross-worker change
    events but does not take the API out of service.

    Returns:
        dict: Status and application information
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "up" if redis_ok else "down",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")

# Uploaded transaction documents
Path(settings.documents_dir).mkdir(parents=True, exist_ok=True)
app.mount("/documents", StaticFiles(directory=settings.documents_dir), name="documents")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to School Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
