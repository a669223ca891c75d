"""
Domain Layer - Core Business Logic

Contains:
- entities: Core domain entities (Candidate, QueryContext, ScoredCandidate)
"""

from .entities import (
    Candidate,
    ImageSource,
    License,
    QueryContext,
    ScoredCandidate,
)

__all__ = [
    "Candidate",
    "ImageSource",
    "License",
    "QueryContext",
    "ScoredCandidate",
]
