"""
Shared FastAPI dependencies.
"""

from fastapi import Request

from backend.src.curator.database.models.base import SessionLocal
from backend.src.curator.services.quota_manager import QuotaBudget
from backend.src.curator.services.taxonomy_store import TaxonomyStore


def get_taxonomy_store(request: Request) -> TaxonomyStore:
    """The application's taxonomy store handle (created at startup)."""
    return request.app.state.taxonomy_store


def get_session_factory():
    """Session factory handed to job entry points, which manage their own sessions."""
    return SessionLocal


def get_quota_budget(request: Request) -> QuotaBudget:
    """The application's external-call budget, shared by every acquisition run."""
    return request.app.state.quota_budget
