"""
Video-related database models.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.src.curator.database.models.base import Base

VIDEO_STATUS_ACTIVE = "active"
VIDEO_STATUS_INACTIVE = "inactive"
VIDEO_STATUS_SUPERSEDED = "superseded"

RELEVANCE_PRIMARY = "primary"
RELEVANCE_SECONDARY = "secondary"


class Video(Base):
    """Accepted instructional video."""

    __tablename__ = "videos"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=False)
    channel_name = Column(String, nullable=False, default="")  # Instructor/channel
    duration_seconds = Column(Integer)
    published_at = Column(DateTime)
    acceptance_score = Column(Float, default=0.0)
    status = Column(String, nullable=False, default=VIDEO_STATUS_ACTIVE, index=True)
    url = Column(String)

    # Classifier inputs filled by enrichment jobs
    technique_name = Column(String)
    technique_type = Column(String)  # e.g. "sweep/guard"
    position_category = Column(String)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    technique_tags = relationship("VideoTechniqueTag", back_populates="video")
    feedback = relationship("UserFeedback", back_populates="video")


class VideoTechniqueTag(Base):
    """Taxonomy node assigned to a video."""

    __tablename__ = "video_technique_tags"
    __table_args__ = (
        UniqueConstraint("video_id", "taxonomy_id", name="uq_video_taxonomy"),
    )

    id = Column(Integer, primary_key=True, index=True)
    video_id = Column(Integer, ForeignKey("videos.id"), nullable=False, index=True)
    taxonomy_id = Column(
        Integer, ForeignKey("taxonomy_nodes.id"), nullable=False, index=True
    )
    relevance = Column(String, nullable=False, default=RELEVANCE_PRIMARY)

    created_at = Column(DateTime, default=func.now())

    # Relationships
    video = relationship("Video", back_populates="technique_tags")
    taxonomy_node = relationship("TaxonomyNode", back_populates="video_tags")


class UserFeedback(Base):
    """Helpful / not helpful feedback left by a user on a video. Append-only."""

    __tablename__ = "user_feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    video_id = Column(Integer, ForeignKey("videos.id"), nullable=False)

    helpful = Column(Boolean, nullable=False)
    category = Column(String)  # e.g. 'too_advanced', 'great_details'
    notes = Column(Text)

    created_at = Column(DateTime, default=func.now(), index=True)

    # Relationships
    video = relationship("Video", back_populates="feedback")
