"""Placeholder rules for route segments.

``{page}`` matches any single segment; ``{page:int}`` and ``{x:float}``
restrict what the segment may look like; ``{rest:path}`` takes the rest
of the path and must come last. Bound values stay strings: handlers get
them converted through their parameter annotations.
"""

import re

PARAM_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Full-match pattern per converter name
SEGMENT_PATTERNS: dict[str, re.Pattern[str]] = {
    "str": re.compile(r"[^/]+"),
    "int": re.compile(r"\d+"),
    "float": re.compile(r"\d+(?:\.\d+)?"),
    "path": re.compile(r".+"),
}


def segment_matches(param_type: str, segment: str) -> bool:
    """Whether *segment* is acceptable for a ``{name:param_type}`` placeholder."""
    return SEGMENT_PATTERNS[param_type].fullmatch(segment) is not None
