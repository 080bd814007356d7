"""
External video catalog integration.
"""

from .base import CatalogAdapter, CatalogItem
from .errors import CatalogError, InvalidCandidateError, QuotaExhaustedError
from .youtube import YouTubeCatalog

__all__ = [
    "CatalogAdapter",
    "CatalogItem",
    "CatalogError",
    "InvalidCandidateError",
    "QuotaExhaustedError",
    "YouTubeCatalog",
]
