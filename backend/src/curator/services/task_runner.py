"""
Sequential batch execution with a fixed inter-task delay and a shared rate limiter.

Every job in the pipeline is a fold over items: each item either succeeds, is
skipped for a named reason, or fails. Failures never abort the batch; only a
``HaltBatch`` raised by the handler stops it early.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

OK = "ok"


class HaltBatch(Exception):
    """Raised by a task handler to stop the remaining items of a batch."""


class RateLimiter:
    """
    Token bucket limiter.

    ``rate`` tokens are added per second up to ``capacity``; each ``acquire``
    takes one token and sleeps until one is available.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.rate = rate
        self.capacity = max(1, capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(self.capacity)
        self._last = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._last = now

    def acquire(self) -> None:
        self._refill()
        if self._tokens < 1:
            wait = (1 - self._tokens) / self.rate
            self._sleep(wait)
            self._refill()
            # A sleep that returned early (e.g. stubbed in tests) still pays.
            self._tokens = max(self._tokens, 1.0)
        self._tokens -= 1


@dataclass
class BatchResult:
    """Accumulated outcome of a batch run."""

    label: str = "batch"
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: Counter = field(default_factory=Counter)
    errors: List[str] = field(default_factory=list)
    halted: bool = False
    halt_reason: Optional[str] = None

    def record(self, outcome: Optional[str]) -> None:
        self.processed += 1
        if outcome in (None, OK):
            self.succeeded += 1
        else:
            self.skipped[outcome] += 1

    def record_failure(self, item: Any, error: Exception) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append(f"{item}: {error}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": dict(self.skipped),
            "errors": list(self.errors),
            "halted": self.halted,
            "halt_reason": self.halt_reason,
        }


class BatchRunner:
    """Runs a handler over items one at a time."""

    PROGRESS_EVERY = 100

    def __init__(
        self,
        delay_seconds: float = 0.0,
        limiter: Optional[RateLimiter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.delay_seconds = delay_seconds
        self.limiter = limiter
        self._sleep = sleep

    def run(
        self,
        items: Iterable[Any],
        handler: Callable[[Any], Optional[str]],
        label: str = "batch",
    ) -> BatchResult:
        """
        Apply ``handler`` to each item and fold the outcomes.

        Args:
            items: Items to process, in order
            handler: Returns None/"ok" on success or a skip reason string
            label: Name used in log lines

        Returns:
            BatchResult with per-outcome counters
        """
        result = BatchResult(label=label)
        first = True

        for item in items:
            if not first and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)
            first = False

            if self.limiter is not None:
                self.limiter.acquire()

            try:
                outcome = handler(item)
            except HaltBatch as e:
                result.halted = True
                result.halt_reason = str(e)
                logger.warning(f"[{label}] Halting batch at {item!r}: {e}")
                break
            except Exception as e:
                logger.error(f"[{label}] Failed on {item!r}: {e}")
                result.record_failure(item, e)
            else:
                result.record(outcome)

            if result.processed % self.PROGRESS_EVERY == 0:
                logger.info(
                    f"[{label}] Progress: {result.processed} processed, "
                    f"{result.succeeded} ok, {result.failed} failed"
                )

        logger.info(
            f"[{label}] Complete: {result.processed} processed, "
            f"{result.succeeded} ok, {sum(result.skipped.values())} skipped, "
            f"{result.failed} failed{' (halted)' if result.halted else ''}"
        )
        return result
