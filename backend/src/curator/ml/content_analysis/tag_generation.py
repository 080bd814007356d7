"""
Taxonomy auto-tagging engine.

Assigns technique taxonomy nodes to a video from its free-text fields using
four heuristics, applied in order:

1. Position detection (regex rules over title, technique name and position)
2. Technique-type mapping (type field -> level-1 categories)
3. Fuzzy name matching (technique name vs level-3, then level-2 node names)
4. Fallback to a general node so every video carries at least one tag
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.src.curator.core.config import settings
from backend.src.curator.database.models.video import (
    RELEVANCE_PRIMARY,
    RELEVANCE_SECONDARY,
    VIDEO_STATUS_ACTIVE,
    Video,
    VideoTechniqueTag,
)
from backend.src.curator.ml.content_analysis.text_matching import (
    detect_positions,
    fuzzy_score,
    map_technique_types,
)
from backend.src.curator.services.taxonomy_store import (
    TaxonomyNodeRecord,
    TaxonomySnapshot,
    TaxonomyStore,
)

logger = logging.getLogger(__name__)

PROVENANCE_POSITION = "position-detect"
PROVENANCE_TYPE_MAP = "type-map"
PROVENANCE_NAME = "name-match"
PROVENANCE_FALLBACK = "fallback"


@dataclass
class TagAssignment:
    """A taxonomy node chosen for a video, with the rule that chose it."""

    taxonomy_id: int
    slug: str
    name: str
    level: int
    relevance: str
    provenance: str
    score: Optional[float] = None

    def describe(self) -> str:
        suffix = f"score={self.score:.2f}" if self.score is not None else self.provenance
        return f"L{self.level}:{self.name}({suffix})"


@dataclass
class TaggingResult:
    """Outcome of tagging one video."""

    video_id: int
    success: bool
    tags_added: int = 0
    node_ids: List[int] = field(default_factory=list)
    details: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BackfillResult:
    """Outcome of tagging every untagged video."""

    total_untagged: int = 0
    processed: int = 0
    tags_added: int = 0
    errors: int = 0


class _Matches:
    """Ordered node set; the first rule to claim a node keeps the provenance."""

    def __init__(self):
        self._items: "OrderedDict[int, tuple]" = OrderedDict()

    def add(
        self,
        node: Optional[TaxonomyNodeRecord],
        provenance: str,
        score: Optional[float] = None,
    ) -> None:
        if node is not None and node.id not in self._items:
            self._items[node.id] = (node, provenance, score)

    def __len__(self) -> int:
        return len(self._items)

    def values(self):
        return self._items.values()


class TaxonomyTagger:
    """Classifies videos against the technique taxonomy and stores the tags."""

    def __init__(
        self,
        store: TaxonomyStore,
        match_threshold: Optional[float] = None,
        max_name_matches: Optional[int] = None,
        fallback_slug: Optional[str] = None,
    ):
        self.store = store
        self.match_threshold = (
            settings.tag_match_threshold if match_threshold is None else match_threshold
        )
        self.max_name_matches = (
            settings.tag_max_name_matches
            if max_name_matches is None
            else max_name_matches
        )
        self.fallback_slug = fallback_slug or settings.tag_fallback_slug

    def classify(
        self,
        snapshot: TaxonomySnapshot,
        title: Optional[str] = None,
        technique_name: Optional[str] = None,
        technique_type: Optional[str] = None,
        position_category: Optional[str] = None,
    ) -> List[TagAssignment]:
        """
        Pick taxonomy nodes for one video. Pure: no database access.

        Returns:
            Assignments in the order they were matched (empty only for an empty taxonomy)
        """
        if len(snapshot) == 0:
            return []

        matches = _Matches()
        search_text = " ".join(
            part for part in (technique_name, title, position_category) if part
        )

        # 1. Position detection
        for slug in detect_positions(search_text):
            node = self._resolve_position(snapshot, slug)
            if node is not None:
                matches.add(node, PROVENANCE_POSITION)
                matches.add(snapshot.level1_ancestor(node.id), PROVENANCE_POSITION)

        # 2. Technique-type mapping
        for slug in map_technique_types(technique_type or ""):
            node = snapshot.by_slug(slug)
            if node is not None and node.level == 1:
                matches.add(node, PROVENANCE_TYPE_MAP)

        # 3. Name-based fuzzy match
        if technique_name:
            self._match_name(snapshot, technique_name, matches)

        # 4. Fallback
        if len(matches) == 0:
            fallback = snapshot.by_slug(self.fallback_slug)
            if fallback is None:
                level1 = snapshot.by_level(1)
                fallback = level1[0] if level1 else snapshot.nodes[0]
            matches.add(fallback, PROVENANCE_FALLBACK)

        total = len(matches)
        return [
            TagAssignment(
                taxonomy_id=node.id,
                slug=node.slug,
                name=node.name,
                level=node.level,
                relevance=(
                    RELEVANCE_SECONDARY
                    if node.level == 1 and total > 1
                    else RELEVANCE_PRIMARY
                ),
                provenance=provenance,
                score=score,
            )
            for node, provenance, score in matches.values()
        ]

    def _resolve_position(
        self, snapshot: TaxonomySnapshot, slug: str
    ) -> Optional[TaxonomyNodeRecord]:
        """Exact slug first, then a level-2 and finally a level-3 slug overlap."""
        node = snapshot.by_slug(slug)
        if node is not None:
            return node
        for level in (2, 3):
            for candidate in snapshot.by_level(level):
                if slug in candidate.slug or candidate.slug in slug:
                    return candidate
        return None

    def _match_name(
        self, snapshot: TaxonomySnapshot, technique_name: str, matches: _Matches
    ) -> None:
        scored = []
        for node in snapshot.by_level(3):
            score = fuzzy_score(technique_name, node.name)
            if score >= self.match_threshold:
                scored.append((score, node))

        if scored:
            # sort is stable, so equal scores keep taxonomy order
            scored.sort(key=lambda pair: pair[0], reverse=True)
            for score, node in scored[: self.max_name_matches]:
                matches.add(node, PROVENANCE_NAME, score)
                if node.parent_id is not None:
                    matches.add(snapshot.by_id(node.parent_id), PROVENANCE_NAME)
                matches.add(snapshot.level1_ancestor(node.id), PROVENANCE_NAME)
            return

        for node in snapshot.by_level(2):
            score = fuzzy_score(technique_name, node.name)
            if score >= self.match_threshold:
                matches.add(node, PROVENANCE_NAME, score)
                matches.add(snapshot.level1_ancestor(node.id), PROVENANCE_NAME)

    def tag_video(self, db: Session, video_id: int) -> TaggingResult:
        """
        Classify one stored video and insert any missing tag rows.

        Failures are logged and reported in the result, never raised.
        """
        try:
            snapshot = self.store.snapshot(db)
            if len(snapshot) == 0:
                logger.warning("Taxonomy is empty; cannot tag videos")
                return TaggingResult(video_id, False, error="empty taxonomy")

            video = db.query(Video).filter(Video.id == video_id).first()
            if video is None:
                return TaggingResult(video_id, False, error="video not found")

            assignments = self.classify(
                snapshot,
                title=video.title,
                technique_name=video.technique_name,
                technique_type=video.technique_type,
                position_category=video.position_category,
            )
            added = self._persist(db, video_id, assignments)

            return TaggingResult(
                video_id=video_id,
                success=True,
                tags_added=added,
                node_ids=[a.taxonomy_id for a in assignments],
                details=[a.describe() for a in assignments],
            )

        except Exception as e:
            db.rollback()
            logger.error(f"[AUTO-TAG] Error tagging video {video_id}: {e}")
            return TaggingResult(video_id, False, error=str(e))

    def _persist(
        self, db: Session, video_id: int, assignments: List[TagAssignment]
    ) -> int:
        """Insert-if-absent; existing (video, node) rows keep their relevance."""
        for attempt in range(2):
            existing = {
                row.taxonomy_id
                for row in db.query(VideoTechniqueTag.taxonomy_id).filter(
                    VideoTechniqueTag.video_id == video_id
                )
            }
            new_rows = [a for a in assignments if a.taxonomy_id not in existing]
            for a in new_rows:
                db.add(
                    VideoTechniqueTag(
                        video_id=video_id,
                        taxonomy_id=a.taxonomy_id,
                        relevance=a.relevance,
                    )
                )
            try:
                db.commit()
                return len(new_rows)
            except IntegrityError:
                # Another writer inserted some of the same pairs; re-read and retry
                db.rollback()
                if attempt:
                    raise
        return 0

    def backfill_untagged(
        self, db: Session, limit: Optional[int] = None
    ) -> BackfillResult:
        """Tag every active video that has no tag rows yet, in id order."""
        query = (
            db.query(Video.id)
            .filter(
                Video.status == VIDEO_STATUS_ACTIVE,
                ~exists().where(VideoTechniqueTag.video_id == Video.id),
            )
            .order_by(Video.id)
        )
        if limit:
            query = query.limit(limit)
        video_ids = [row.id for row in query]

        result = BackfillResult(total_untagged=len(video_ids))
        logger.info(f"[AUTO-TAG] Found {result.total_untagged} untagged videos to process")

        for video_id in video_ids:
            tagged = self.tag_video(db, video_id)
            if tagged.success:
                result.tags_added += tagged.tags_added
            else:
                result.errors += 1
            result.processed += 1

            if result.processed % 100 == 0:
                logger.info(
                    f"[AUTO-TAG] Progress: {result.processed}/{result.total_untagged} "
                    f"videos, {result.tags_added} tags added"
                )

        logger.info(
            f"[AUTO-TAG] Backfill complete: {result.processed} videos, "
            f"{result.tags_added} tags added, {result.errors} errors"
        )
        return result


def summarize_assignments(assignments: List[TagAssignment]) -> Dict[str, List[str]]:
    """Group assigned slugs by provenance, for audit output."""
    summary: Dict[str, List[str]] = {}
    for a in assignments:
        summary.setdefault(a.provenance, []).append(a.slug)
    return summary
