"""
Taxonomy administration routes: read the tree, bulk load, invalidate the cache.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from backend.src.curator.api.dependencies import get_taxonomy_store
from backend.src.curator.database.models.base import get_db
from backend.src.curator.services.taxonomy_store import (
    TaxonomyStore,
    TaxonomyValidationError,
)


class TaxonomyNodeResponse(BaseModel):
    """API response model for one taxonomy node."""

    id: int
    name: str
    slug: str
    level: int
    parent_id: Optional[int] = None


class TaxonomyNodeIn(BaseModel):
    """One node in a bulk load payload."""

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    level: int = Field(..., ge=1, le=3)
    parent_slug: Optional[str] = None


class BulkLoadRequest(BaseModel):
    """Bulk load payload; nodes are upserted by slug."""

    nodes: List[TaxonomyNodeIn]


class BulkLoadResponse(BaseModel):
    """API response model for a bulk load."""

    created: int
    updated: int


router = APIRouter(prefix="/taxonomy", tags=["Taxonomy"])


@router.get("/nodes", response_model=List[TaxonomyNodeResponse])
def list_nodes(
    level: Optional[int] = None,
    db: Session = Depends(get_db),
    store: TaxonomyStore = Depends(get_taxonomy_store),
):
    """List taxonomy nodes ordered by level, then id."""
    snapshot = store.snapshot(db)
    nodes = snapshot.by_level(level) if level else snapshot.nodes
    return [
        TaxonomyNodeResponse(
            id=n.id, name=n.name, slug=n.slug, level=n.level, parent_id=n.parent_id
        )
        for n in nodes
    ]


@router.put("/nodes", response_model=BulkLoadResponse)
def bulk_load_nodes(
    payload: BulkLoadRequest,
    db: Session = Depends(get_db),
    store: TaxonomyStore = Depends(get_taxonomy_store),
):
    """Create or update nodes by slug. The cache is invalidated on success."""
    try:
        counts = store.bulk_load(db, [node.model_dump() for node in payload.nodes])
    except TaxonomyValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return BulkLoadResponse(**counts)


@router.post("/cache/invalidate")
def invalidate_cache(store: TaxonomyStore = Depends(get_taxonomy_store)):
    """Drop the cached taxonomy tree after an out-of-band edit."""
    store.invalidate()
    return {"status": "invalidated"}
