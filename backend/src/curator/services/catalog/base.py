"""
Catalog adapter interface consumed by the acquisition pipeline.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol


@dataclass(frozen=True)
class CatalogItem:
    """One search hit from the external catalog."""

    external_id: str
    title: str
    channel_name: str = ""
    published_at: Optional[datetime] = None


class CatalogAdapter(Protocol):
    """Keyword search and per-item metadata lookups against a video catalog."""

    def search(self, query: str, max_results: int) -> List[CatalogItem]:
        """Return up to ``max_results`` candidates for ``query``."""
        ...

    def get_duration(self, external_id: str) -> int:
        """Return the item's duration in seconds."""
        ...
