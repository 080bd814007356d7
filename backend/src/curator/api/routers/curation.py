"""
Curation routes: coverage report and job triggers.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from backend.src.curator.api.dependencies import (
    get_quota_budget,
    get_session_factory,
    get_taxonomy_store,
)
from backend.src.curator.services import jobs
from backend.src.curator.services.quota_manager import QuotaBudget
from backend.src.curator.services.taxonomy_store import TaxonomyStore


class CoveragePriorityResponse(BaseModel):
    """API response model for one under-covered technique."""

    technique_name: str
    slug: Optional[str] = None
    level: Optional[int] = None
    current_count: int
    target_count: int
    coverage_ratio: float
    priority_score: float
    needs_curation: bool


class CoverageResponse(BaseModel):
    """API response model for a coverage report."""

    priorities: List[CoveragePriorityResponse]
    techniques_analyzed: int
    techniques_needing_curation: int
    library_total: int
    library_target: int
    library_remaining: int


class JobRequest(BaseModel):
    """Optional targets for a job run; fields not used by a job are ignored."""

    techniques: Optional[List[str]] = None
    instructors: Optional[List[str]] = None
    category: Optional[str] = None
    user_ids: Optional[List[str]] = None
    top_n: Optional[int] = None


router = APIRouter(prefix="/curation", tags=["Curation"])


@router.get("/coverage", response_model=CoverageResponse)
def coverage_report(
    technique: Optional[List[str]] = Query(None),
    top_n: Optional[int] = Query(None, ge=1, le=500),
    store: TaxonomyStore = Depends(get_taxonomy_store),
    session_factory=Depends(get_session_factory),
):
    """Rank under-covered techniques."""
    try:
        summary = jobs.run_coverage_analysis(
            techniques=technique,
            top_n=top_n,
            store=store,
            session_factory=session_factory,
        )
    except jobs.JobAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    summary.pop("job", None)
    return summary


@router.post("/jobs/{kind}")
def trigger_job(
    kind: str,
    payload: Optional[JobRequest] = None,
    store: TaxonomyStore = Depends(get_taxonomy_store),
    budget: QuotaBudget = Depends(get_quota_budget),
    session_factory=Depends(get_session_factory),
):
    """Run one job to completion and return its summary."""
    if kind not in jobs.JOBS:
        raise HTTPException(status_code=404, detail=f"Unknown job: {kind}")

    payload = payload or JobRequest()
    try:
        if kind == jobs.JOB_TAGGING:
            return jobs.run_tagging_backfill(
                store=store, session_factory=session_factory
            )
        if kind == jobs.JOB_COVERAGE:
            return jobs.run_coverage_analysis(
                techniques=payload.techniques,
                top_n=payload.top_n,
                store=store,
                session_factory=session_factory,
            )
        if kind == jobs.JOB_ACQUISITION:
            return jobs.run_acquisition(
                techniques=payload.techniques,
                instructors=payload.instructors,
                category=payload.category,
                budget=budget,
                store=store,
                session_factory=session_factory,
            )
        if kind == jobs.JOB_PROFILES:
            return jobs.run_profile_refresh(
                user_ids=payload.user_ids, session_factory=session_factory
            )
        return jobs.run_instructor_recalculation(session_factory=session_factory)
    except jobs.JobAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
