"""
Content Analysis package for text matching and taxonomy tagging.
"""

from backend.src.curator.ml.content_analysis.text_matching import (
    normalize,
    fuzzy_score,
    detect_positions,
    map_technique_types,
)
from backend.src.curator.ml.content_analysis.tag_generation import (
    TaxonomyTagger,
    TagAssignment,
    TaggingResult,
    BackfillResult,
    summarize_assignments,
)

__all__ = [
    "normalize",
    "fuzzy_score",
    "detect_positions",
    "map_technique_types",
    "TaxonomyTagger",
    "TagAssignment",
    "TaggingResult",
    "BackfillResult",
    "summarize_assignments",
]
