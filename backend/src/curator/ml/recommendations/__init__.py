"""
Recommendations package: derives per-user preference profiles from feedback.
"""

from backend.src.curator.ml.recommendations.profile_builder import (
    ProfileBuilder,
    ProfileBuildResult,
)

__all__ = [
    "ProfileBuilder",
    "ProfileBuildResult",
]
