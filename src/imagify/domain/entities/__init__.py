"""
Domain Entities

Core business objects for image search.
"""

from __future__ import annotations

from .image import (
    UNKNOWN_LICENSE,
    Candidate,
    ImageSource,
    License,
    Orientation,
    ScoreBreakdown,
    ScoredCandidate,
)
from .query import DEFAULT_LIMIT, QueryContext, parse_sources, tokenize

__all__ = [
    # Image entities
    "Candidate",
    "ImageSource",
    "License",
    "Orientation",
    "ScoreBreakdown",
    "ScoredCandidate",
    "UNKNOWN_LICENSE",
    # Query
    "QueryContext",
    "DEFAULT_LIMIT",
    "parse_sources",
    "tokenize",
]
