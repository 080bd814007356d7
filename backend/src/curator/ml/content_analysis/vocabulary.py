"""Technique vocabulary used by the taxonomy tagger.

Static lookup tables only: stop words, position patterns and the
technique-type to level-1 category map. Extend these tables rather than
adding branches to the matcher.
"""

import re

# Words that carry no technique information
STOP_WORDS = frozenset({
    "from", "the", "a", "an", "basic", "advanced", "in", "to", "and",
    "or", "with", "for", "on", "of", "vs", "how", "setup", "entry",
    "position", "technique", "counter", "defense", "overview", "system",
    "general", "fundamentals", "concepts",
})

# Ordered (pattern, slug) rules; every matching rule contributes its slug
POSITION_PATTERNS = (
    (re.compile(r"closed\s*guard", re.I), "closed-guard"),
    (re.compile(r"half\s*guard", re.I), "half-guard"),
    (re.compile(r"spider\s*guard", re.I), "spider-guard"),
    (re.compile(r"de\s*la\s*riva", re.I), "de-la-riva-guard"),
    (re.compile(r"worm\s*guard", re.I), "worm-guard"),
    (re.compile(r"squid\s*guard", re.I), "squid-guard"),
    (re.compile(r"sit\s*up\s*guard", re.I), "sit-up-guard"),
    (re.compile(r"octopus\s*guard", re.I), "octopus-guard"),
    (re.compile(r"open\s*guard", re.I), "guard-play"),
    (re.compile(r"side\s*control", re.I), "side-control"),
    (re.compile(r"mount", re.I), "mount"),
    (re.compile(r"back\s*control|back\s*mount|rear\s*naked", re.I), "back-attacks"),
    (re.compile(r"turtle", re.I), "turtle"),
    (re.compile(r"knee\s*on\s*belly", re.I), "knee-on-belly"),
    (re.compile(r"north\s*south", re.I), "north-south"),
    (re.compile(r"standing|stand\s*up", re.I), "takedowns"),
    (re.compile(r"50\s*/?\s*50|fifty\s*fifty", re.I), "leg-locks"),
    (re.compile(r"ashi\s*garami|saddle", re.I), "leg-locks"),
    (re.compile(r"k[\s-]*guard", re.I), "guard-play"),
    (re.compile(r"butterfly", re.I), "guard-play"),
    (re.compile(r"lasso", re.I), "guard-play"),
    (re.compile(r"rubber\s*guard", re.I), "guard-play"),
    (re.compile(r"x[\s-]*guard", re.I), "guard-play"),
    (re.compile(r"single\s*leg\s*x", re.I), "guard-play"),
)

# technique_type token -> candidate level-1 slugs
TECHNIQUE_TYPE_TO_L1 = {
    "technique": ("fundamentals",),
    "attack": ("submissions", "guard-play"),
    "submission": ("submissions",),
    "defense": ("escapes",),
    "pass": ("passing",),
    "position": ("top-control",),
    "sweep": ("sweeps",),
    "concept": ("fundamentals",),
    "transition": ("transitions",),
    "escape": ("escapes",),
    "guard": ("guard-play",),
    "takedown": ("takedowns",),
    "drill": ("fundamentals",),
    "control": ("top-control",),
    "guard_pass": ("passing",),
    "guard_retention": ("guard-retention",),
    "back_attack": ("back-attacks",),
    "leg_lock": ("leg-locks",),
    "choke": ("submissions",),
    "armlock": ("submissions",),
    "back": ("back-attacks",),
    "retention": ("guard-retention",),
}
