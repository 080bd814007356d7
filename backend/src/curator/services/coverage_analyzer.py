"""
Coverage gap analysis over the tagged video library.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.src.curator.core.config import settings
from backend.src.curator.database.models.video import (
    VIDEO_STATUS_ACTIVE,
    Video,
    VideoTechniqueTag,
)
from backend.src.curator.services.taxonomy_store import TaxonomyStore

logger = logging.getLogger(__name__)

DEFAULT_LEVELS = (2, 3)
NEEDS_CURATION_RATIO = 0.8  # Less than 80% covered
QUERY_SUFFIX = "bjj technique"


@dataclass
class CoveragePriority:
    """How under-covered one technique is. Never persisted."""

    technique_name: str
    slug: Optional[str]
    level: Optional[int]
    current_count: int
    target_count: int
    coverage_ratio: float
    priority_score: float
    needs_curation: bool


@dataclass
class CoverageReport:
    """Ranked priorities plus library-wide totals."""

    priorities: List[CoveragePriority] = field(default_factory=list)
    techniques_analyzed: int = 0
    techniques_needing_curation: int = 0
    library_total: int = 0
    library_target: int = 0

    @property
    def library_remaining(self) -> int:
        return max(0, self.library_target - self.library_total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priorities": [asdict(p) for p in self.priorities],
            "techniques_analyzed": self.techniques_analyzed,
            "techniques_needing_curation": self.techniques_needing_curation,
            "library_total": self.library_total,
            "library_target": self.library_target,
            "library_remaining": self.library_remaining,
        }


class CoverageAnalyzer:
    """Compares per-technique video counts to targets and ranks the gaps."""

    def __init__(
        self,
        store: TaxonomyStore,
        target_per_technique: Optional[int] = None,
        library_target: Optional[int] = None,
        needs_curation_ratio: float = NEEDS_CURATION_RATIO,
    ):
        self.store = store
        self.target_per_technique = (
            settings.coverage_target_per_technique
            if target_per_technique is None
            else target_per_technique
        )
        self.library_target = (
            settings.library_target_total if library_target is None else library_target
        )
        self.needs_curation_ratio = needs_curation_ratio

    def analyze(
        self,
        db: Session,
        techniques: Optional[Iterable[str]] = None,
        levels: Sequence[int] = DEFAULT_LEVELS,
        top_n: Optional[int] = None,
    ) -> CoverageReport:
        """
        Rank under-covered techniques.

        Args:
            db: Database session
            techniques: Restrict to these technique names (case-insensitive)
            levels: Taxonomy levels to analyze when no names are given
            top_n: Number of priorities to return

        Returns:
            CoverageReport ordered by priority desc, then name, then slug
        """
        top_n = settings.coverage_top_n if top_n is None else top_n
        table = self._coverage_table(db, techniques, levels)

        library_total = (
            db.query(func.count(Video.id))
            .filter(Video.status == VIDEO_STATUS_ACTIVE)
            .scalar()
            or 0
        )

        report = CoverageReport(
            techniques_analyzed=len(table),
            library_total=int(library_total),
            library_target=self.library_target,
        )
        if table.empty:
            return report

        gaps = table[table["needs_curation"]]
        report.techniques_needing_curation = len(gaps)
        report.priorities = [
            CoveragePriority(
                technique_name=row.technique_name,
                slug=row.slug or None,
                level=int(row.level) if row.level else None,
                current_count=int(row.current_count),
                target_count=int(row.target_count),
                coverage_ratio=float(row.coverage_ratio),
                priority_score=float(row.priority_score),
                needs_curation=bool(row.needs_curation),
            )
            for row in gaps.head(top_n).itertuples(index=False)
        ]

        logger.info(
            f"Coverage: {report.techniques_needing_curation}/{report.techniques_analyzed} "
            f"techniques under target; library {report.library_total}/{report.library_target}"
        )
        return report

    def _coverage_table(
        self,
        db: Session,
        techniques: Optional[Iterable[str]],
        levels: Sequence[int],
    ) -> pd.DataFrame:
        snapshot = self.store.snapshot(db)
        counts = self._tag_counts(db)

        rows = []
        if techniques:
            by_name = {}
            for node in snapshot.nodes:
                by_name.setdefault(node.name.strip().lower(), node)
            requested = {}
            for t in techniques:
                if t.strip():
                    requested.setdefault(t.strip().lower(), t.strip())
            for key, name in requested.items():
                node = by_name.get(key)
                rows.append(
                    {
                        "technique_name": node.name if node else name,
                        "slug": node.slug if node else "",
                        "level": node.level if node else 0,
                        "current_count": counts.get(node.id, 0) if node else 0,
                    }
                )
        else:
            for node in snapshot.nodes:
                if node.level in levels:
                    rows.append(
                        {
                            "technique_name": node.name,
                            "slug": node.slug,
                            "level": node.level,
                            "current_count": counts.get(node.id, 0),
                        }
                    )

        if not rows:
            return pd.DataFrame(
                columns=[
                    "technique_name",
                    "slug",
                    "level",
                    "current_count",
                    "target_count",
                    "coverage_ratio",
                    "priority_score",
                    "needs_curation",
                ]
            )

        df = pd.DataFrame(rows)
        df["target_count"] = self.target_per_technique
        df["coverage_ratio"] = (df["current_count"] / df["target_count"]).round(4)
        df["priority_score"] = (
            100 * np.clip(1 - df["current_count"] / df["target_count"], 0, 1)
        ).round(2)
        df["needs_curation"] = df["coverage_ratio"] < self.needs_curation_ratio

        # mergesort is stable, so the ordering is reproducible run to run
        return df.sort_values(
            by=["priority_score", "technique_name", "slug"],
            ascending=[False, True, True],
            kind="mergesort",
        ).reset_index(drop=True)

    def _tag_counts(self, db: Session) -> Dict[int, int]:
        """Distinct active videos per taxonomy node."""
        rows = (
            db.query(
                VideoTechniqueTag.taxonomy_id,
                func.count(func.distinct(VideoTechniqueTag.video_id)),
            )
            .join(Video, Video.id == VideoTechniqueTag.video_id)
            .filter(Video.status == VIDEO_STATUS_ACTIVE)
            .group_by(VideoTechniqueTag.taxonomy_id)
            .all()
        )
        return {taxonomy_id: int(count) for taxonomy_id, count in rows}


def build_queries(
    technique_names: Iterable[str], suffix: str = QUERY_SUFFIX
) -> List[str]:
    """Turn technique names (e.g. from coverage priorities) into catalog search queries."""
    queries = []
    for name in technique_names:
        if not name or not name.strip():
            continue
        query = f"{name.strip()} {suffix}".strip()
        if query not in queries:
            queries.append(query)
    return queries
