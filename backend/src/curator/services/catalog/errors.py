"""
Error types raised by catalog adapters.
"""

import logging
from typing import Any, Dict

from backend.src.curator.services.task_runner import HaltBatch

logger = logging.getLogger(__name__)

# Daily quota only; rateLimitExceeded is a short-lived throttle and stays a CatalogError
QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded")


class CatalogError(Exception):
    """Transient or per-item failure talking to the external catalog."""

    def __init__(self, message: str, error_code: str = "catalog_error"):
        self.message = message
        self.error_code = error_code
        super().__init__(self.message)


class QuotaExhaustedError(CatalogError, HaltBatch):
    """The catalog's daily quota is spent. Stops the current run."""

    def __init__(self, message: str = "Catalog quota exhausted"):
        super().__init__(message, "quota_exhausted")


class InvalidCandidateError(CatalogError):
    """A search result is missing required fields."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_candidate")


def create_error_response(error: Exception) -> Dict[str, Any]:
    """
    Create standardized error response.

    Args:
        error: Exception that occurred

    Returns:
        Standardized error response dictionary
    """
    if isinstance(error, CatalogError):
        return {
            "error": {
                "code": error.error_code,
                "message": error.message,
                "type": type(error).__name__,
            },
            "status": "error",
        }

    logger.error(f"Unexpected error: {error}")
    return {
        "error": {
            "code": "internal_error",
            "message": "An error occurred",
            "type": "InternalError",
        },
        "status": "error",
    }
