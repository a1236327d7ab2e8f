# pyright: reportMissingTypeStubs=false
"""
Clinic Ledger Backend API

A FastAPI application for a clinic's recurring-appointment and financial
reconciliation engine.

Features:
- Recurrence series creation, update and deletion
- Billable session ledger kept in sync with bookings
- Batch booking updates with multi-status reporting
- Cached monthly financial summaries
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import bookings, sessions, financial
from core.config import FINANCIAL_CACHE_TTL_SECONDS
from core.constants import CORS_ORIGINS
from core.exceptions import DomainError
from services.cache_service import TTLCache
from services.cache_sweep_scheduler import start_cache_sweep_scheduler, stop_cache_sweep_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)
logger.info("🏥 Clinic Ledger API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Clinic Ledger Backend API")

    app.state.financial_cache = TTLCache(ttl_seconds=FINANCIAL_CACHE_TTL_SECONDS)

    try:
        await start_cache_sweep_scheduler(app.state.financial_cache)
        logger.info("✅ Financial cache sweep scheduler started")
    except Exception as e:
        logger.exception(f"❌ Failed to start cache sweep scheduler: {e}")

    yield

    try:
        await stop_cache_sweep_scheduler()
        logger.info("🛑 Financial cache sweep scheduler stopped")
    except Exception as e:
        logger.exception(f"❌ Error stopping cache sweep scheduler: {e}")

    app.state.financial_cache.clear()
    logger.info("🛑 Shutting down Clinic Ledger Backend API")


# Create FastAPI application
app = FastAPI(
    title="Clinic Ledger Backend",
    description="Recurring appointments, billable sessions and financial reconciliation",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(
    bookings.router,
    prefix="/api/bookings",
    tags=["bookings"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    sessions.router,
    prefix="/api/sessions",
    tags=["sessions"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)
app.include_router(
    financial.router,
    prefix="/api/financial",
    tags=["financial"],
    responses={
        400: {"description": "Bad request"},
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Clinic Ledger Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}


# Global exception handlers
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.exception(f"Domain error: {exc}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions globally."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Handle ValueError exceptions."""
    logger.warning(f"ValueError: {exc}")
    return JSONResponse(
        status_code=400,
        content={"detail": str(exc), "type": "validation_error"},
    )
