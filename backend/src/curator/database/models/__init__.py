"""
Database models for the curator pipeline.
"""

from backend.src.curator.database.models.taxonomy import TaxonomyNode
from backend.src.curator.database.models.video import (
    Video,
    VideoTechniqueTag,
    UserFeedback,
)
from backend.src.curator.database.models.instructor import InstructorCredibility
from backend.src.curator.database.models.profile import UserProfile
from backend.src.curator.database.models.base import (
    Base,
    SessionLocal,
    get_db,
    create_tables,
)

__all__ = [
    "TaxonomyNode",
    "Video",
    "VideoTechniqueTag",
    "UserFeedback",
    "InstructorCredibility",
    "UserProfile",
    "Base",
    "SessionLocal",
    "get_db",
    "create_tables",
]
