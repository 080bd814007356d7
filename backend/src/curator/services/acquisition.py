"""
Targeted acquisition: search the catalog, filter and dedupe, store and tag.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.src.curator.core.config import settings
from backend.src.curator.database.models.video import VIDEO_STATUS_ACTIVE, Video
from backend.src.curator.ml.content_analysis.tag_generation import TaxonomyTagger
from backend.src.curator.services.catalog.base import CatalogAdapter, CatalogItem
from backend.src.curator.services.catalog.errors import (
    CatalogError,
    InvalidCandidateError,
    QuotaExhaustedError,
)
from backend.src.curator.services.task_runner import BatchResult, BatchRunner

logger = logging.getLogger(__name__)

SKIP_DUPLICATE = "duplicate"
SKIP_TOO_SHORT = "too_short"
SKIP_INVALID = "invalid"

MAX_TITLE_LENGTH = 500

# Seed queries by category, used when there is no gap signal to follow
SEARCH_QUERIES = {
    "positions": [
        "turtle attacks bjj technique",
        "north south attacks escapes bjj",
        "crucifix position bjj tutorial",
        "deep half guard sweeps bjj",
        "reverse de la riva guard bjj",
        "k guard entries bjj",
        "leg entanglement 50/50 bjj",
        "saddle position leg lock bjj",
    ],
    "escapes": [
        "mount escape tutorial bjj fundamentals",
        "side control escape details technique",
        "back escape defense bjj instruction",
        "turtle recovery bjj escape",
        "guard retention concepts bjj",
        "defensive frames bjj tutorial",
    ],
    "submissions": [
        "armbar from guard details bjj",
        "triangle choke setups bjj",
        "kimura trap system bjj",
        "heel hook mechanics bjj",
        "guillotine choke details bjj",
    ],
    "passing": [
        "bodylock pass bjj technique",
        "knee cut pass details bjj",
        "smash pass half guard",
        "leg weave pass guard",
        "floating pass bjj tutorial",
    ],
}

INSTRUCTOR_QUERY_TEMPLATES = (
    "{name} jiu jitsu technique",
    "{name} BJJ instructional",
    "{name} tutorial",
)


def get_search_queries(category: str) -> List[str]:
    """Get seed queries for a category (all categories if unknown)."""
    queries = SEARCH_QUERIES.get((category or "").lower())
    if queries is not None:
        return list(queries)
    return [q for group in SEARCH_QUERIES.values() for q in group]


def queries_for_instructors(names: Iterable[str]) -> List[str]:
    """Build catalog queries targeting specific instructors."""
    queries = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        for template in INSTRUCTOR_QUERY_TEMPLATES:
            queries.append(template.format(name=name))
    return queries


@dataclass
class AcquisitionResult:
    """Aggregate counters for one acquisition run."""

    queries_executed: int = 0
    items_found: int = 0
    items_added: int = 0
    duplicates: int = 0
    too_short: int = 0
    invalid: int = 0
    errors: int = 0
    tagged: int = 0
    tag_errors: int = 0
    quota_exhausted: bool = False
    halted_query: Optional[str] = None
    added_external_ids: List[str] = field(default_factory=list)
    error_messages: List[str] = field(default_factory=list)

    def absorb(self, items: BatchResult) -> None:
        """Fold one query's item batch into the run totals."""
        self.items_added += items.succeeded
        self.duplicates += items.skipped[SKIP_DUPLICATE]
        self.too_short += items.skipped[SKIP_TOO_SHORT]
        self.invalid += items.skipped[SKIP_INVALID]
        self.errors += items.failed
        self.error_messages.extend(items.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queries_executed": self.queries_executed,
            "items_found": self.items_found,
            "items_added": self.items_added,
            "duplicates": self.duplicates,
            "too_short": self.too_short,
            "invalid": self.invalid,
            "errors": self.errors,
            "tagged": self.tagged,
            "tag_errors": self.tag_errors,
            "quota_exhausted": self.quota_exhausted,
            "halted_query": self.halted_query,
        }


class AcquisitionPipeline:
    """Runs search queries against the catalog and commits new videos."""

    def __init__(
        self,
        catalog: CatalogAdapter,
        tagger: TaxonomyTagger,
        runner: Optional[BatchRunner] = None,
        max_results: Optional[int] = None,
        min_duration_seconds: Optional[int] = None,
        default_score: Optional[float] = None,
    ):
        self.catalog = catalog
        self.tagger = tagger
        self.runner = runner or BatchRunner(delay_seconds=settings.query_delay_seconds)
        # Items within a query go back to back
        self.item_runner = BatchRunner(delay_seconds=0)
        self.max_results = (
            settings.acquisition_max_results if max_results is None else max_results
        )
        self.min_duration_seconds = (
            settings.min_duration_seconds
            if min_duration_seconds is None
            else min_duration_seconds
        )
        self.default_score = (
            settings.default_acceptance_score if default_score is None else default_score
        )

    def run(self, db: Session, queries: Iterable[str]) -> AcquisitionResult:
        """
        Execute one acquisition run.

        Args:
            db: Database session
            queries: Search queries, processed in order

        Returns:
            AcquisitionResult; quota exhaustion is reported, not raised
        """
        queries = [q for q in dict.fromkeys(q.strip() for q in queries) if q]
        result = AcquisitionResult()
        # Ids known to be stored, and ids already measured too short this run
        present: Set[str] = set()
        short: Set[str] = set()

        logger.info(f"Acquisition run: {len(queries)} queries")

        def handle_query(query: str) -> Optional[str]:
            try:
                candidates = self.catalog.search(query, self.max_results)
            except QuotaExhaustedError:
                result.halted_query = query
                raise
            result.queries_executed += 1
            result.items_found += len(candidates)

            items = self.item_runner.run(
                candidates,
                lambda item: self._process_candidate(
                    db, item, present, short, result
                ),
                label=f"query:{query}",
            )
            result.absorb(items)

            if items.halted:
                result.halted_query = query
                raise QuotaExhaustedError(items.halt_reason or "quota exhausted")

            logger.info(
                f'"{query}": found {len(candidates)} | added {items.succeeded} | '
                f"running total {result.items_added}"
            )
            return None

        queries_batch = self.runner.run(queries, handle_query, label="acquisition")
        result.errors += queries_batch.failed
        result.error_messages.extend(queries_batch.errors)
        if queries_batch.halted:
            result.quota_exhausted = True
            logger.warning(
                f"Quota exhausted during {result.halted_query!r}; "
                f"{len(queries) - result.queries_executed} queries not run"
            )

        logger.info(
            f"Acquisition complete: {result.queries_executed} queries, "
            f"{result.items_found} found, {result.items_added} added, "
            f"{result.duplicates} duplicates, {result.too_short} too short, "
            f"{result.errors} errors"
        )
        return result

    def _process_candidate(
        self,
        db: Session,
        item: CatalogItem,
        present: Set[str],
        short: Set[str],
        result: AcquisitionResult,
    ) -> Optional[str]:
        """Returns None when added, otherwise the skip reason."""
        try:
            self._validate(item)
        except InvalidCandidateError as e:
            logger.debug(f"Skipping candidate: {e}")
            return SKIP_INVALID

        external_id = item.external_id.strip()
        if external_id in present or self._exists(db, external_id):
            present.add(external_id)
            return SKIP_DUPLICATE
        if external_id in short:
            return SKIP_TOO_SHORT

        # QuotaExhaustedError propagates and halts the batch
        duration = self.catalog.get_duration(external_id)
        if duration is None:
            raise CatalogError(f"No duration for {external_id}", "missing_duration")
        if duration < self.min_duration_seconds:
            short.add(external_id)
            return SKIP_TOO_SHORT

        video = Video(
            external_id=external_id,
            title=item.title.strip()[:MAX_TITLE_LENGTH],
            channel_name=(item.channel_name or "").strip(),
            duration_seconds=int(duration),
            published_at=item.published_at,
            acceptance_score=self.default_score,
            status=VIDEO_STATUS_ACTIVE,
            url=f"https://www.youtube.com/watch?v={external_id}",
        )
        db.add(video)
        try:
            db.commit()
        except IntegrityError:
            # Unique external_id already present: idempotent no-op
            db.rollback()
            present.add(external_id)
            return SKIP_DUPLICATE

        present.add(external_id)
        result.added_external_ids.append(external_id)
        logger.info(f"Added: {video.title[:50]}")

        tagged = self.tagger.tag_video(db, video.id)
        if tagged.success:
            result.tagged += 1
        else:
            result.tag_errors += 1
        return None

    def _validate(self, item: Any) -> None:
        if not isinstance(item, CatalogItem):
            raise InvalidCandidateError(f"Unexpected candidate type {type(item).__name__}")
        if not item.external_id or not item.external_id.strip():
            raise InvalidCandidateError("Candidate has no external id")
        if not item.title or not item.title.strip():
            raise InvalidCandidateError(f"Candidate {item.external_id} has no title")

    def _exists(self, db: Session, external_id: str) -> bool:
        return (
            db.query(Video.id).filter(Video.external_id == external_id).first()
            is not None
        )
