"""
Job entry points for the scheduled pipeline runs.

Each job opens its own database session, runs one pass and returns a plain
summary dict. At most one run of each job kind is in flight per process.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from backend.src.curator.core.config import settings
from backend.src.curator.database.models.base import SessionLocal
from backend.src.curator.ml.content_analysis.tag_generation import TaxonomyTagger
from backend.src.curator.ml.recommendations.profile_builder import ProfileBuilder
from backend.src.curator.services.acquisition import (
    AcquisitionPipeline,
    get_search_queries,
    queries_for_instructors,
)
from backend.src.curator.services.catalog.base import CatalogAdapter
from backend.src.curator.services.catalog.youtube import YouTubeCatalog
from backend.src.curator.services.coverage_analyzer import (
    CoverageAnalyzer,
    build_queries,
)
from backend.src.curator.services.instructor_priority import InstructorPriorityService
from backend.src.curator.services.quota_manager import QuotaBudget
from backend.src.curator.services.task_runner import RateLimiter
from backend.src.curator.services.taxonomy_store import TaxonomyCache, TaxonomyStore

logger = logging.getLogger(__name__)

JOB_TAGGING = "tagging"
JOB_COVERAGE = "coverage"
JOB_ACQUISITION = "acquisition"
JOB_PROFILES = "profiles"
JOB_INSTRUCTORS = "instructors"

SessionFactory = Callable[[], Session]


class JobAlreadyRunningError(RuntimeError):
    """A run of the same job kind is already in flight."""

    def __init__(self, kind: str):
        self.kind = kind
        self.error_code = "job_running"
        super().__init__(f"Job '{kind}' is already running")


class JobLock:
    """One non-blocking lock per job kind."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, kind: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(kind, threading.Lock())

    def is_running(self, kind: str) -> bool:
        return self._lock_for(kind).locked()

    @contextmanager
    def hold(self, kind: str):
        """
        Hold the lock for ``kind`` for the duration of the block.

        Raises:
            JobAlreadyRunningError: If another run of ``kind`` holds it
        """
        lock = self._lock_for(kind)
        if not lock.acquire(blocking=False):
            raise JobAlreadyRunningError(kind)
        try:
            yield
        finally:
            lock.release()


job_lock = JobLock()


def create_taxonomy_store() -> TaxonomyStore:
    """New store handle with the configured cache TTL."""
    return TaxonomyStore(TaxonomyCache(ttl_seconds=settings.taxonomy_cache_ttl))


def create_quota_budget() -> QuotaBudget:
    """Daily external-call budget. Keep one per process and pass it to every run."""
    return QuotaBudget(settings.youtube_quota_limit)


def create_catalog(budget: Optional[QuotaBudget] = None) -> YouTubeCatalog:
    """YouTube catalog charging ``budget`` and paced by a token bucket."""
    limiter = None
    if settings.youtube_requests_per_second > 0:
        limiter = RateLimiter(settings.youtube_requests_per_second)
    return YouTubeCatalog(
        settings.youtube_api_key,
        budget=budget if budget is not None else create_quota_budget(),
        limiter=limiter,
        timeout=settings.youtube_timeout,
    )


def run_tagging_backfill(
    store: Optional[TaxonomyStore] = None,
    limit: Optional[int] = None,
    session_factory: SessionFactory = SessionLocal,
) -> Dict[str, Any]:
    """Tag every active video that has no taxonomy tags yet."""
    with job_lock.hold(JOB_TAGGING):
        tagger = TaxonomyTagger(store or create_taxonomy_store())
        db = session_factory()
        try:
            result = tagger.backfill_untagged(db, limit=limit)
        finally:
            db.close()

    return {
        "job": JOB_TAGGING,
        "total_untagged": result.total_untagged,
        "processed": result.processed,
        "tags_added": result.tags_added,
        "errors": result.errors,
    }


def run_coverage_analysis(
    techniques: Optional[Iterable[str]] = None,
    top_n: Optional[int] = None,
    store: Optional[TaxonomyStore] = None,
    session_factory: SessionFactory = SessionLocal,
) -> Dict[str, Any]:
    """Rank under-covered techniques (all level-2/3 nodes unless names are given)."""
    with job_lock.hold(JOB_COVERAGE):
        analyzer = CoverageAnalyzer(store or create_taxonomy_store())
        db = session_factory()
        try:
            report = analyzer.analyze(db, techniques=techniques, top_n=top_n)
        finally:
            db.close()

    summary = report.to_dict()
    summary["job"] = JOB_COVERAGE
    return summary


def run_acquisition(
    techniques: Optional[Iterable[str]] = None,
    instructors: Optional[Iterable[str]] = None,
    category: Optional[str] = None,
    catalog: Optional[CatalogAdapter] = None,
    budget: Optional[QuotaBudget] = None,
    store: Optional[TaxonomyStore] = None,
    session_factory: SessionFactory = SessionLocal,
) -> Dict[str, Any]:
    """
    Run one acquisition pass.

    Query source, first that applies:
    1. Explicit technique and/or instructor targets
    2. A seed query category
    3. Current coverage priorities
    4. Under-represented high-priority instructors
    5. All seed queries

    Pass the process-wide ``budget`` so the daily limit holds across runs;
    without one the live catalog gets a fresh budget.

    Returns:
        Acquisition counters plus the query source and, when a budget is
        in use, its status
    """
    techniques = [t for t in (techniques or []) if t and t.strip()]
    instructors = [i for i in (instructors or []) if i and i.strip()]

    with job_lock.hold(JOB_ACQUISITION):
        store = store or create_taxonomy_store()
        if catalog is None:
            if budget is None:
                budget = create_quota_budget()
            catalog = create_catalog(budget)

        db = session_factory()
        try:
            if techniques or instructors:
                source = "targets"
                queries = build_queries(techniques) + queries_for_instructors(
                    instructors
                )
            elif category:
                source = f"category:{category}"
                queries = get_search_queries(category)
            else:
                source, queries = _gap_queries(db, store)

            logger.info(f"Acquisition queries from {source}: {len(queries)}")
            pipeline = AcquisitionPipeline(catalog, TaxonomyTagger(store))
            result = pipeline.run(db, queries)
        finally:
            db.close()

    summary = result.to_dict()
    summary["job"] = JOB_ACQUISITION
    summary["query_source"] = source
    if budget is not None:
        summary["quota"] = budget.status()
    return summary


def _gap_queries(db: Session, store: TaxonomyStore):
    """Queries for the current coverage gaps, with instructor and seed fallbacks."""
    report = CoverageAnalyzer(store).analyze(db)
    if report.priorities:
        return "coverage", build_queries(p.technique_name for p in report.priorities)

    names = InstructorPriorityService().underrepresented_instructors(db)
    if names:
        return "instructors", queries_for_instructors(names)

    return "seed", get_search_queries("")


def run_profile_refresh(
    user_ids: Optional[Iterable[str]] = None,
    builder: Optional[ProfileBuilder] = None,
    session_factory: SessionFactory = SessionLocal,
) -> Dict[str, Any]:
    """Rebuild profiles for the given users, or every recently active user."""
    with job_lock.hold(JOB_PROFILES):
        builder = builder or ProfileBuilder()
        db = session_factory()
        try:
            result = builder.update_profiles(db, user_ids=user_ids)
        finally:
            db.close()

    summary = result.to_dict()
    summary["job"] = JOB_PROFILES
    return summary


def run_instructor_recalculation(
    service: Optional[InstructorPriorityService] = None,
    session_factory: SessionFactory = SessionLocal,
) -> Dict[str, Any]:
    """Refresh instructor counts and priority scores."""
    with job_lock.hold(JOB_INSTRUCTORS):
        service = service or InstructorPriorityService()
        db = session_factory()
        try:
            result = service.recalculate_all(db)
        finally:
            db.close()

    summary = result.to_dict()
    summary["job"] = JOB_INSTRUCTORS
    return summary


JOBS = {
    JOB_TAGGING: run_tagging_backfill,
    JOB_COVERAGE: run_coverage_analysis,
    JOB_ACQUISITION: run_acquisition,
    JOB_PROFILES: run_profile_refresh,
    JOB_INSTRUCTORS: run_instructor_recalculation,
}
