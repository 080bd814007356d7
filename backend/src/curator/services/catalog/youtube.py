"""
YouTube Data API v3 catalog adapter for video discovery and duration lookups.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import isodate
import requests

from backend.src.curator.services.catalog.base import CatalogItem
from backend.src.curator.services.catalog.errors import (
    QUOTA_REASONS,
    CatalogError,
    QuotaExhaustedError,
)
from backend.src.curator.services.task_runner import RateLimiter

if TYPE_CHECKING:
    from backend.src.curator.services.quota_manager import QuotaBudget

logger = logging.getLogger(__name__)


class YouTubeCatalog:
    """YouTube API service for search and video metadata."""

    BASE_URL = "https://www.googleapis.com/youtube/v3"
    MAX_PAGE_SIZE = 50  # YouTube API limit

    def __init__(
        self,
        api_key: str,
        budget: Optional["QuotaBudget"] = None,
        session: Optional[requests.Session] = None,
        limiter: Optional[RateLimiter] = None,
        timeout: int = 10,
    ):
        if not api_key:
            raise ValueError("YouTube API key is required")
        self.api_key = api_key
        self.budget = budget
        self.session = session or requests.Session()
        self.limiter = limiter
        self.timeout = timeout

    def search(self, query: str, max_results: int = 25) -> List[CatalogItem]:
        """
        Search for videos.

        Args:
            query: Search query
            max_results: Maximum number of results (capped at 50)

        Returns:
            List of CatalogItem
        """
        params = {
            "key": self.api_key,
            "q": query,
            "part": "snippet",
            "type": "video",
            "order": "relevance",
            "maxResults": min(max_results, self.MAX_PAGE_SIZE),
            "videoDuration": "medium",
            "relevanceLanguage": "en",
            "safeSearch": "strict",
        }

        data = self._get("search", "search", params)

        items = []
        for item in data.get("items", []):
            video_id = item.get("id", {}).get("videoId")
            snippet = item.get("snippet", {})
            if not video_id:
                continue
            items.append(
                CatalogItem(
                    external_id=video_id,
                    title=snippet.get("title", ""),
                    channel_name=snippet.get("channelTitle", ""),
                    published_at=self._parse_youtube_date(snippet.get("publishedAt")),
                )
            )
        return items

    def get_duration(self, external_id: str) -> int:
        """
        Get a video's duration in seconds.

        Raises:
            CatalogError: If the video is unknown or the request fails
        """
        params = {
            "key": self.api_key,
            "id": external_id,
            "part": "contentDetails",
        }

        data = self._get("videos", "videos_list", params)
        items = data.get("items", [])
        if not items:
            raise CatalogError(f"Video {external_id} not found", "not_found")

        duration_str = items[0].get("contentDetails", {}).get("duration", "PT0S")
        try:
            return int(isodate.parse_duration(duration_str).total_seconds())
        except (isodate.ISO8601Error, ValueError) as e:
            raise CatalogError(
                f"Bad duration {duration_str!r} for {external_id}: {e}",
                "bad_duration",
            )

    def _get(self, endpoint: str, operation: str, params: Dict[str, Any]) -> Dict:
        """Issue one GET against the API, charging the quota budget first."""
        if self.budget is not None:
            self.budget.charge(operation)
        if self.limiter is not None:
            self.limiter.acquire()

        try:
            response = self.session.get(
                f"{self.BASE_URL}/{endpoint}", params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise CatalogError(f"YouTube request failed: {e}", "network_error")

        if response.status_code == 403 and self._is_quota_error(response):
            if self.budget is not None:
                self.budget.mark_exhausted()
            raise QuotaExhaustedError("YouTube API quota exceeded")

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise CatalogError(f"YouTube API error: {e}", "api_error")

        return response.json()

    def _is_quota_error(self, response: requests.Response) -> bool:
        try:
            errors = response.json().get("error", {}).get("errors", [])
        except ValueError:
            return False
        return any(err.get("reason") in QUOTA_REASONS for err in errors)

    def _parse_youtube_date(self, date_string: Optional[str]) -> Optional[datetime]:
        """Parse YouTube API date string to datetime."""
        if not date_string:
            return None

        try:
            return datetime.fromisoformat(date_string.replace("Z", "+00:00"))
        except ValueError as e:
            logger.warning(f"Error parsing date {date_string}: {e}")
            return None
