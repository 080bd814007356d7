"""
FastAPI application entry point for the curator admin API.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.src.curator.api.router import api_router
from backend.src.curator.core.config import settings
from backend.src.curator.core.logging_config import setup_logging
from backend.src.curator.database.models.base import create_tables
from backend.src.curator.services.catalog.errors import (
    CatalogError,
    create_error_response,
)
from backend.src.curator.services.jobs import (
    create_quota_budget,
    create_taxonomy_store,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info(f"Starting {settings.app_name} API...")

    try:
        create_tables()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info(f"Shutting down {settings.app_name} API...")


# Create FastAPI application
app = FastAPI(
    title=f"{settings.app_name} API",
    description="Taxonomy tagging, coverage analysis, acquisition and profile jobs",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# One taxonomy store (and cache) and one quota budget per process
app.state.taxonomy_store = create_taxonomy_store()
app.state.quota_budget = create_quota_budget()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CatalogError)
async def catalog_exception_handler(request, exc: CatalogError):
    """Catalog failures that escape a job surface as a 502."""
    return JSONResponse(status_code=502, content=create_error_response(exc))


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    return JSONResponse(status_code=500, content=create_error_response(exc))


# Include routers
app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": f"{settings.app_name} API",
        "version": settings.app_version,
        "docs_url": "/docs",
        "health_check": f"{settings.api_prefix}/health",
    }


if __name__ == "__main__":
    uvicorn.run(
        "backend.src.curator.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
