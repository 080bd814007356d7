"""
Health endpoints: process resources, pipeline state and database readiness.
"""

import os
from datetime import datetime, timezone
from typing import Optional

import psutil
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.orm import Session

from backend.src.curator.api.dependencies import get_taxonomy_store
from backend.src.curator.core.config import settings
from backend.src.curator.database.models.base import get_db
from backend.src.curator.services.jobs import JOBS, job_lock
from backend.src.curator.services.taxonomy_store import TaxonomyStore

router = APIRouter(tags=["Health"])

STARTED_AT = datetime.now(timezone.utc)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    uptime_seconds: float
    running_jobs: list
    taxonomy_cache_age_seconds: Optional[float] = None
    process: dict


def _process_info() -> dict:
    proc = psutil.Process(os.getpid())
    with proc.oneshot():
        rss = proc.memory_info().rss
        return {
            "pid": proc.pid,
            "rss_mb": round(rss / (1024**2), 1),
            "threads": proc.num_threads(),
            "cpu_percent": proc.cpu_percent(interval=None),
        }


@router.get("/health", response_model=HealthResponse)
def health_check(store: TaxonomyStore = Depends(get_taxonomy_store)):
    """Uptime, in-flight jobs and the taxonomy cache age.

    Reports ``degraded`` rather than failing when process stats are unavailable.
    """
    now = datetime.now(timezone.utc)
    status = "healthy"
    try:
        process = _process_info()
    except psutil.Error as e:
        status = "degraded"
        process = {"error": str(e)}

    return HealthResponse(
        status=status,
        timestamp=now,
        version=settings.app_version,
        uptime_seconds=(now - STARTED_AT).total_seconds(),
        running_jobs=[kind for kind in JOBS if job_lock.is_running(kind)],
        taxonomy_cache_age_seconds=store.cache.age(),
        process=process,
    )


@router.get("/health/ready")
def readiness_check(db: Session = Depends(get_db)):
    """The database answers a trivial query."""
    db.execute(text("SELECT 1"))
    return {"status": "ready", "timestamp": datetime.now(timezone.utc)}


@router.get("/health/live")
def liveness_check():
    return {"status": "alive", "timestamp": datetime.now(timezone.utc)}
