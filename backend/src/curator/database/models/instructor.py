"""
Instructor credibility models.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Float,
    DateTime,
    BigInteger,
    JSON,
)
from sqlalchemy.sql import func

from backend.src.curator.database.models.base import Base


class InstructorCredibility(Base):
    """Per-instructor aggregate used to prioritise acquisition."""

    __tablename__ = "instructor_credibility"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    external_channel_ref = Column(String)  # YouTube channel ID
    subscriber_count = Column(BigInteger, default=0)
    video_count = Column(Integer, default=0)  # Active videos in our library
    helpful_ratio = Column(Float, default=0.0)  # 0-100

    # Credentials
    achievements = Column(JSON, default=list)
    instructional_platforms = Column(JSON, default=list)
    has_instructional_series = Column(Boolean, default=False)

    # Priority
    auto_priority_score = Column(Float, default=0.0)
    priority_score = Column(Float, default=0.0)  # Effective score
    manual_override = Column(Boolean, default=False)  # priority_score set by admin

    last_recalculated = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
