"""
Imagify - Multi-source image search with deduplication and ranking

Fetches candidate images for a "city, keywords" query from several open
image providers, normalizes them into one shape, removes duplicates
returned by more than one provider, and returns a stable top-K ranking.

Usage:
    from imagify import Aggregator, QueryContext
    from imagify.infrastructure.sources import OpenverseClient, WikimediaClient

    aggregator = Aggregator([OpenverseClient(), WikimediaClient()])
    result = await aggregator.run(QueryContext.from_input("Paris, eiffel tower", limit=12))

    for scored in result.candidates:
        print(f"{scored.score:.3f} {scored.candidate.title}")

Features:
    - Openverse, Wikimedia Commons, Unsplash and Pexels connectors
    - Tracking-parameter-insensitive URL deduplication
    - Weighted keyword / city / resolution / license / source scoring
    - Query controller that drops stale in-flight results
"""

from .application.search import (
    Aggregator,
    AggregationResult,
    CandidateScorer,
    QueryController,
    RankingConfig,
    SearchState,
    SearchStatus,
    canonicalize,
)
from .domain.entities import Candidate, ImageSource, License, QueryContext, ScoredCandidate

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "Aggregator",
    "AggregationResult",
    "CandidateScorer",
    "RankingConfig",
    "QueryController",
    "SearchState",
    "SearchStatus",
    "canonicalize",
    # Entities
    "Candidate",
    "ImageSource",
    "License",
    "QueryContext",
    "ScoredCandidate",
]
