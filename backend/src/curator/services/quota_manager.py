"""
Quota budget for external catalog calls.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from backend.src.curator.services.catalog.errors import QuotaExhaustedError

logger = logging.getLogger(__name__)


class QuotaBudget:
    """Single shared external-call budget, in YouTube Data API v3 quota units."""

    DAILY_QUOTA_LIMIT = 10000  # YouTube Data API v3 daily quota

    # API costs (YouTube Data API v3 quota units)
    COSTS = {
        "search": 100,  # Per search request (expensive!)
        "videos_list": 1,  # Per video details request
        "channels_list": 1,  # Per channel info request
    }

    def __init__(
        self,
        daily_limit: Optional[int] = None,
        today: Optional[Callable[[], Any]] = None,
    ):
        self.daily_limit = (
            self.DAILY_QUOTA_LIMIT if daily_limit is None else daily_limit
        )
        self._today = today or (lambda: datetime.now(timezone.utc).date())
        self._day = self._today()
        self.units_used = 0
        self.calls: Dict[str, int] = {}
        self.exhausted = False

    def cost_of(self, operation: str) -> int:
        """Get quota cost for an operation (unknown operations cost 1 unit)."""
        return self.COSTS.get(operation, 1)

    def remaining(self) -> int:
        self._reset_if_new_day()
        return max(0, self.daily_limit - self.units_used)

    def can_afford(self, operation: str) -> bool:
        """
        Check if an operation fits in what is left of today's quota.

        Args:
            operation: Operation key from COSTS

        Returns:
            True if operation is within budget
        """
        self._reset_if_new_day()
        if self.exhausted:
            return False
        return self.cost_of(operation) <= self.daily_limit - self.units_used

    def charge(self, operation: str) -> None:
        """
        Reserve quota for an operation before the call is made.

        Raises:
            QuotaExhaustedError: If the call would exceed today's quota
        """
        if not self.can_afford(operation):
            logger.warning(
                f"Quota insufficient for {operation}: "
                f"need {self.cost_of(operation)}, have {self.remaining()}"
            )
            self.exhausted = True
            raise QuotaExhaustedError(
                f"Daily quota exhausted ({self.units_used}/{self.daily_limit} units)"
            )

        self.units_used += self.cost_of(operation)
        self.calls[operation] = self.calls.get(operation, 0) + 1

    def mark_exhausted(self) -> None:
        """Record that the API itself reported the quota as exceeded."""
        self._reset_if_new_day()
        self.exhausted = True
        self.units_used = max(self.units_used, self.daily_limit)
        logger.warning("Catalog reported quota exceeded; budget closed until reset")

    def status(self) -> Dict[str, Any]:
        """Get current quota usage."""
        self._reset_if_new_day()
        return {
            "day": self._day.isoformat(),
            "used": self.units_used,
            "limit": self.daily_limit,
            "remaining": self.remaining(),
            "exhausted": self.exhausted,
            "calls": dict(self.calls),
        }

    def _reset_if_new_day(self) -> None:
        """Reset usage if it's a new (UTC) day."""
        today = self._today()
        if today != self._day:
            self._day = today
            self.units_used = 0
            self.calls = {}
            self.exhausted = False
            logger.info("Daily quota budget reset")
