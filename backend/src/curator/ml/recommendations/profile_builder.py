"""
User profile builder.

Derives personalization signals from a user's feedback history:
- preferred instructors (top 3 by helpful feedback)
- preferred video length window (median of helpful videos +/- 5 minutes)

The profile is fully derived, so rebuilding from the same feedback rows always
yields the same values.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import numpy as np
from sqlalchemy.orm import Session

from backend.src.curator.core.config import settings
from backend.src.curator.database.models.profile import UserProfile
from backend.src.curator.database.models.video import UserFeedback, Video
from backend.src.curator.services.task_runner import BatchResult, BatchRunner

logger = logging.getLogger(__name__)

STATUS_UPDATED = "updated"
STATUS_INSUFFICIENT_DATA = "insufficient_data"

MAX_PREFERRED_INSTRUCTORS = 3


@dataclass
class ProfileBuildResult:
    """What the builder derived for one user."""

    user_id: str
    status: str
    feedback_count: int = 0
    preferred_instructors: List[str] = field(default_factory=list)
    preferred_length_min: Optional[int] = None
    preferred_length_max: Optional[int] = None


class ProfileBuilder:
    """Turns feedback history into a UserProfile."""

    def __init__(
        self,
        window: Optional[int] = None,
        min_samples: Optional[int] = None,
        length_floor: int = 5,
        length_ceiling: int = 30,
        length_margin: int = 5,
    ):
        self.window = settings.profile_window if window is None else window
        self.min_samples = (
            settings.profile_min_samples if min_samples is None else min_samples
        )
        self.length_floor = length_floor
        self.length_ceiling = length_ceiling
        self.length_margin = length_margin

    def build_profile(self, db: Session, user_id: str) -> ProfileBuildResult:
        """
        Rebuild one user's profile from their most recent feedback.

        Args:
            db: Database session
            user_id: Target user ID

        Returns:
            ProfileBuildResult; insufficient data leaves the profile untouched
        """
        rows = (
            db.query(
                UserFeedback.helpful,
                Video.channel_name,
                Video.duration_seconds,
            )
            .join(Video, Video.id == UserFeedback.video_id)
            .filter(UserFeedback.user_id == user_id)
            .order_by(UserFeedback.created_at.desc(), UserFeedback.id.desc())
            .limit(self.window)
            .all()
        )

        if len(rows) < self.min_samples:
            logger.info(
                f"Not enough feedback data for user {user_id} ({len(rows)} feedbacks)"
            )
            return ProfileBuildResult(
                user_id=user_id,
                status=STATUS_INSUFFICIENT_DATA,
                feedback_count=len(rows),
            )

        instructor_counts: Counter = Counter()
        durations: List[int] = []
        for helpful, instructor, duration in rows:
            if not helpful:
                continue
            if instructor:
                instructor_counts[instructor] += 1
            if duration:
                durations.append(duration)

        # Counter preserves first-seen order, and most_common sorts stably
        preferred = [
            name for name, _ in instructor_counts.most_common(MAX_PREFERRED_INSTRUCTORS)
        ]
        length_min, length_max = self.length_window(durations)

        profile = db.query(UserProfile).filter(UserProfile.user_id == user_id).first()
        if profile is None:
            profile = UserProfile(user_id=user_id)
            db.add(profile)

        profile.preferred_instructors = preferred
        profile.preferred_length_min = length_min
        profile.preferred_length_max = length_max
        profile.last_profile_build = datetime.now(timezone.utc)
        db.commit()

        logger.info(
            f"Updated profile for user {user_id}: {', '.join(preferred) or 'no instructors'}, "
            f"{length_min}-{length_max} min"
        )
        return ProfileBuildResult(
            user_id=user_id,
            status=STATUS_UPDATED,
            feedback_count=len(rows),
            preferred_instructors=preferred,
            preferred_length_min=length_min,
            preferred_length_max=length_max,
        )

    def length_window(self, durations: List[int]):
        """
        Preferred length in whole minutes around the median helpful duration.

        Uses the upper median for even counts. Returns (None, None) when empty.
        """
        if not durations:
            return None, None
        ordered = sorted(durations)
        median_minutes = ordered[len(ordered) // 2] // 60
        low, high = np.clip(
            [median_minutes - self.length_margin, median_minutes + self.length_margin],
            self.length_floor,
            self.length_ceiling,
        )
        return int(low), int(high)

    def active_users(
        self, db: Session, days: Optional[int] = None, limit: int = 100
    ) -> List[str]:
        """Users with feedback in the trailing window, sorted by id."""
        days = settings.profile_active_days if days is None else days
        # Naive UTC, matching how created_at is stored
        since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)
        rows = (
            db.query(UserFeedback.user_id)
            .filter(UserFeedback.created_at > since)
            .distinct()
            .order_by(UserFeedback.user_id)
            .limit(limit)
            .all()
        )
        return [row.user_id for row in rows if row.user_id]

    def update_profiles(
        self,
        db: Session,
        user_ids: Optional[Iterable[str]] = None,
        runner: Optional[BatchRunner] = None,
    ) -> BatchResult:
        """
        Rebuild profiles for the given users, or every recently active user.

        Per-user failures are logged and counted; they never stop the batch.
        """
        users = list(user_ids) if user_ids is not None else self.active_users(db)
        runner = runner or BatchRunner(
            delay_seconds=settings.profile_user_delay_seconds
        )
        logger.info(f"Updating profiles for {len(users)} users...")

        def build(user_id: str) -> Optional[str]:
            try:
                outcome = self.build_profile(db, user_id)
            except Exception:
                db.rollback()
                raise
            if outcome.status == STATUS_INSUFFICIENT_DATA:
                return STATUS_INSUFFICIENT_DATA
            return None

        return runner.run(users, build, label="profiles")
