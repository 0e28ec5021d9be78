"""
FastAPI Application Entry Point.

This is the main application file for the Client Ledger Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.core.observability import configure_logging, ObservabilityMiddleware
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fastapi import HTTPException

# Import models to ensure they are registered with Base
from backend.app.models.client import Client
from backend.app.models.work_transaction import WorkTransaction
from backend.app.models.balance_history import BalanceHistoryEntry


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Client balance ledger with an append-only balance history",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Client Ledger Backend API",
        "docs": "/docs",
        "health": "/health",
    }
