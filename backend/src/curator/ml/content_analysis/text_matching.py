"""
Text normalization and fuzzy matching for taxonomy tagging.

All functions here are pure; the lookup tables live in ``vocabulary``.
"""

import re
from typing import Iterable, List, Mapping, Sequence, Tuple

from backend.src.curator.ml.content_analysis.vocabulary import (
    POSITION_PATTERNS,
    STOP_WORDS,
    TECHNIQUE_TYPE_TO_L1,
)

EXACT_SCORE = 1.0
CONTAINS_SCORE = 0.9
CONTAINED_SCORE = 0.85
TOKEN_OVERLAP_WEIGHT = 0.8

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_TYPE_SEPARATORS = re.compile(r"[/,]")
_WHITESPACE = re.compile(r"\s+")


def normalize(text: str, stop_words: Iterable[str] = STOP_WORDS) -> str:
    """
    Lower-case, strip punctuation, drop stop words and one-letter tokens.

    Args:
        text: Free text
        stop_words: Words to drop

    Returns:
        Space-joined remaining tokens ("" if nothing is left)
    """
    if not text:
        return ""
    stop = stop_words if isinstance(stop_words, (set, frozenset)) else set(stop_words)
    tokens = _NON_ALNUM.sub(" ", text.lower()).split()
    return " ".join(t for t in tokens if len(t) > 1 and t not in stop)


def fuzzy_score(video_text: str, node_name: str) -> float:
    """
    Similarity between video text (A) and a taxonomy node name (B), in [0, 1].

    1.0 on an exact normalized match, 0.9 if A contains B, 0.85 if B contains A,
    otherwise 0.8 times the share of B's tokens found in A (a token is found
    when an A token equals it or either contains the other).
    """
    a = normalize(video_text)
    b = normalize(node_name)

    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SCORE
    if b in a:
        return CONTAINS_SCORE
    if a in b:
        return CONTAINED_SCORE

    a_tokens = a.split()
    b_tokens = b.split()
    matching = sum(
        1 for bt in b_tokens if any(at == bt or bt in at or at in bt for at in a_tokens)
    )
    if matching == 0:
        return 0.0
    return (matching / len(b_tokens)) * TOKEN_OVERLAP_WEIGHT


def detect_positions(
    text: str,
    patterns: Sequence[Tuple["re.Pattern", str]] = POSITION_PATTERNS,
) -> List[str]:
    """Slugs of every position rule matching ``text``, in rule order, deduplicated."""
    if not text:
        return []
    slugs: List[str] = []
    for pattern, slug in patterns:
        if pattern.search(text) and slug not in slugs:
            slugs.append(slug)
    return slugs


def split_technique_types(field: str) -> List[str]:
    """Split "Sweep / Guard Pass" into ["sweep", "guard_pass"]."""
    if not field:
        return []
    tokens = []
    for part in _TYPE_SEPARATORS.split(field):
        token = _WHITESPACE.sub("_", part.strip().lower())
        if token:
            tokens.append(token)
    return tokens


def map_technique_types(
    field: str,
    mapping: Mapping[str, Sequence[str]] = TECHNIQUE_TYPE_TO_L1,
) -> List[str]:
    """Level-1 slugs implied by a technique-type field, first occurrence order."""
    slugs: List[str] = []
    for token in split_technique_types(field):
        for slug in mapping.get(token, ()):
            if slug not in slugs:
                slugs.append(slug)
    return slugs
