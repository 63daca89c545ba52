"""
School Management API - Main Application

FastAPI backend with:
- PostgreSQL for all tenant data (one school per tenant)
- JWT authentication (bearer access token + refresh cookie)
- Uniform success/error envelopes

Run: uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from app.api.error_handlers import register_error_handlers
from app.api.routes import api_router
from app.core.config import get_settings
from app.core.observability import setup_logging
from app.db.postgres import engine, test_postgres_connection

settings = get_settings()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level, settings.log_format, silent=settings.environment == "test")

    if not test_postgres_connection():
        if settings.is_production:
            raise RuntimeError("PostgreSQL is unreachable")
        logger.warning("PostgreSQL is unreachable; continuing without a verified connection")
    else:
        logger.info("PostgreSQL connection verified")

    yield

    engine.dispose()
    logger.info("Database pool disposed")


# Create FastAPI app
app = FastAPI(
    title="School Management API",
    description="""
    Multi-tenant school administration backend.

    ## Features
    - **Schools**: Signup creates the school, its admin, class levels and terms
    - **Academic calendar**: Sessions (one active) and terms (one current)
    - **Classes & Subjects**: Class arms per level, subjects linked to levels
    - **People**: Teachers and students with login accounts
    - **Leadership & Announcements**
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware (all origins in development, whitelist elsewhere)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "development" else settings.cors_whitelist,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

register_error_handlers(app)

# Include API routes
app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness plus database reachability."""
    return {
        "status": "healthy",
        "postgres": "connected" if test_postgres_connection() else "disconnected",
    }
