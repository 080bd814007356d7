"""
Instructor priority recalculation.

Priority is a 100-point weighted score:
- Subscribers: 30 points max
- Achievements: 25 points max
- Instructional series: 20 points max
- User feedback: 25 points max

Instructors with ``manual_override`` keep their admin-set ``priority_score``;
only ``auto_priority_score`` is refreshed for them.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from backend.src.curator.database.models.instructor import InstructorCredibility
from backend.src.curator.database.models.video import (
    VIDEO_STATUS_ACTIVE,
    UserFeedback,
    Video,
)
from backend.src.curator.services.task_runner import BatchResult, BatchRunner

logger = logging.getLogger(__name__)

ELITE_ACHIEVEMENTS = (
    "ibjjf world champion",
    "ibjjf pan champion",
    "adcc champion",
    "world champion",
    "pan champion",
    "adcc gold",
)
NOTABLE_ACHIEVEMENTS = (
    "ibjjf",
    "adcc",
    "world",
    "pan",
    "european",
    "asian",
    "brazilian nationals",
    "medalist",
    "silver",
    "bronze",
)
COMPETITIVE_ACHIEVEMENTS = ("competitor", "champion", "tournament", "competition", "medal")
MAJOR_PLATFORMS = ("bjj fanatics", "grapplers guide", "digitsu", "jiu jitsu x")


def subscriber_score(subscribers: int) -> int:
    if subscribers >= 1_000_000:
        return 30
    if subscribers >= 500_000:
        return 20
    if subscribers >= 100_000:
        return 10
    if subscribers >= 10_000:
        return 5
    return 0


def achievements_score(achievements: Optional[Iterable[str]]) -> int:
    text = " ".join(achievements or []).lower()
    if not text:
        return 0
    if any(k in text for k in ELITE_ACHIEVEMENTS):
        return 25
    if any(k in text for k in NOTABLE_ACHIEVEMENTS):
        return 15
    if any(k in text for k in COMPETITIVE_ACHIEVEMENTS):
        return 5
    return 0


def instructional_score(has_series: bool, platforms: Optional[Iterable[str]]) -> int:
    platforms = list(platforms or [])
    if not has_series or not platforms:
        return 0
    text = " ".join(platforms).lower()
    if any(p in text for p in MAJOR_PLATFORMS):
        return 20
    return 10


def feedback_score(helpful_ratio: float) -> int:
    if helpful_ratio >= 80:
        return 25
    if helpful_ratio >= 60:
        return 15
    if helpful_ratio >= 40:
        return 5
    return 0


def calculate_priority(instructor: InstructorCredibility) -> float:
    """Total 0-100 priority for one instructor."""
    return float(
        subscriber_score(instructor.subscriber_count or 0)
        + achievements_score(instructor.achievements)
        + instructional_score(
            bool(instructor.has_instructional_series),
            instructor.instructional_platforms,
        )
        + feedback_score(instructor.helpful_ratio or 0.0)
    )


class InstructorPriorityService:
    """Keeps instructor credibility aggregates in step with the library."""

    def __init__(self, runner: Optional[BatchRunner] = None):
        self.runner = runner or BatchRunner()

    def recalculate_all(self, db: Session) -> BatchResult:
        """Refresh counts and scores for every instructor."""
        instructors = db.query(InstructorCredibility).order_by(InstructorCredibility.name)

        def recalculate(instructor: InstructorCredibility) -> Optional[str]:
            try:
                self.recalculate(db, instructor)
                db.commit()
            except Exception:
                db.rollback()
                raise
            return "manual_override" if instructor.manual_override else None

        return self.runner.run(
            instructors.all(), recalculate, label="instructor-priority"
        )

    def recalculate(self, db: Session, instructor: InstructorCredibility) -> None:
        """Update one instructor in the session (caller commits)."""
        name_key = instructor.name.strip().lower()

        instructor.video_count = (
            db.query(func.count(Video.id))
            .filter(
                func.lower(Video.channel_name) == name_key,
                Video.status == VIDEO_STATUS_ACTIVE,
            )
            .scalar()
            or 0
        )

        total, helpful = (
            db.query(
                func.count(UserFeedback.id),
                func.sum(case((UserFeedback.helpful.is_(True), 1), else_=0)),
            )
            .join(Video, Video.id == UserFeedback.video_id)
            .filter(func.lower(Video.channel_name) == name_key)
            .one()
        )
        instructor.helpful_ratio = round(100.0 * (helpful or 0) / total, 2) if total else 0.0

        instructor.auto_priority_score = calculate_priority(instructor)
        if not instructor.manual_override:
            instructor.priority_score = instructor.auto_priority_score
        instructor.last_recalculated = datetime.now(timezone.utc)

        logger.debug(
            f"{instructor.name}: auto {instructor.auto_priority_score}, "
            f"effective {instructor.priority_score}, {instructor.video_count} videos"
        )

    def set_manual_priority(
        self, db: Session, name: str, priority: Optional[float]
    ) -> InstructorCredibility:
        """
        Pin an instructor's priority, or pass None to return to the automatic score.

        Raises:
            LookupError: If no instructor has that name
        """
        instructor = (
            db.query(InstructorCredibility)
            .filter(func.lower(InstructorCredibility.name) == name.strip().lower())
            .first()
        )
        if instructor is None:
            raise LookupError(f"Unknown instructor: {name}")

        if priority is None:
            instructor.manual_override = False
            instructor.priority_score = instructor.auto_priority_score or 0.0
        else:
            instructor.manual_override = True
            instructor.priority_score = float(priority)
        db.commit()
        return instructor

    def underrepresented_instructors(
        self,
        db: Session,
        min_priority: float = 80,
        max_videos: int = 10,
        limit: int = 20,
    ) -> List[str]:
        """High-priority instructors with few videos in the library."""
        rows = (
            db.query(InstructorCredibility.name)
            .filter(
                InstructorCredibility.priority_score >= min_priority,
                InstructorCredibility.video_count < max_videos,
            )
            .order_by(
                InstructorCredibility.priority_score.desc(),
                InstructorCredibility.video_count.asc(),
                InstructorCredibility.name.asc(),
            )
            .limit(limit)
            .all()
        )
        return [row.name for row in rows]
