"""
Database package for the curator pipeline.
"""

from .models import (
    TaxonomyNode,
    Video,
    VideoTechniqueTag,
    UserFeedback,
    InstructorCredibility,
    UserProfile,
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
    "SessionLocal",
    "get_db",
    "create_tables",
]
