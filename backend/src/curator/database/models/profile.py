"""
User profile models.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func

from backend.src.curator.database.models.base import Base


class UserProfile(Base):
    """Derived personalization signals. Safe to rebuild from feedback at any time."""

    __tablename__ = "user_profiles"

    user_id = Column(String, primary_key=True, index=True)

    # Preferences
    preferred_instructors = Column(JSON, default=list)  # Ordered, at most 3
    preferred_length_min = Column(Integer)  # minutes
    preferred_length_max = Column(Integer)  # minutes

    last_profile_build = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
