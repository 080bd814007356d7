"""
ML package for the curator pipeline.

- content_analysis/ - Text matching and taxonomy auto-tagging
- recommendations/ - User profile building for personalized ranking
"""

from backend.src.curator.ml.content_analysis import (
    TaxonomyTagger,
    TagAssignment,
    TaggingResult,
    BackfillResult,
)
from backend.src.curator.ml.recommendations import (
    ProfileBuilder,
    ProfileBuildResult,
)

__all__ = [
    # Content Analysis
    "TaxonomyTagger",
    "TagAssignment",
    "TaggingResult",
    "BackfillResult",
    # Recommendations
    "ProfileBuilder",
    "ProfileBuildResult",
]
