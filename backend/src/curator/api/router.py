"""
Main API router for the curator pipeline.
"""

from fastapi import APIRouter

from .routers.curation import router as curation_router
from .routers.health import router as health_router
from .routers.taxonomy import router as taxonomy_router

# Create main API router
api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router)
api_router.include_router(taxonomy_router)
api_router.include_router(curation_router)
