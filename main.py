"""
BettsTax Practice - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import init_db, close_db
from app.utils.error_handling import (
    setup_exception_handlers,
    ErrorTrackingMiddleware,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(
        "Tax authority submission: "
        + ("enabled" if settings.tax_authority_enabled else "disabled (no base URL)")
    )

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Tax practice management for Sierra Leone: filings, associate delegation and NRA submission",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(ErrorTrackingMiddleware)

# Standardized error envelopes
setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
        "endpoints": {
            "auth": "/api/auth",
            "tax_filings": "/api/tax-filings",
            "associate_permissions": "/api/associate-permissions",
            "on_behalf_actions": "/api/on-behalf-actions",
            "tax_authority": "/api/tax-authority",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "tax_authority_configured": settings.tax_authority_enabled,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

from app.routers import (
    auth,
    tax_filings,
    associate_permissions,
    on_behalf_actions,
    tax_authority,
)

# Authentication
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])

# Tax Filings (lifecycle, schedules, on-behalf, liability, authority submission)
app.include_router(tax_filings.router, prefix="/api/tax-filings", tags=["Tax Filings"])

# Delegated Associate Permissions (admin)
app.include_router(
    associate_permissions.router,
    prefix="/api/associate-permissions",
    tags=["Associate Permissions"],
)

# On-Behalf Action Log
app.include_router(on_behalf_actions.router, prefix="/api/on-behalf-actions", tags=["On-Behalf Actions"])

# Tax Authority connectivity
app.include_router(tax_authority.router, prefix="/api/tax-authority", tags=["Tax Authority"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=5120,
        reload=settings.is_development,
    )
