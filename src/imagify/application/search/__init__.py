"""
Search application services: canonicalization, scoring, aggregation and
query-driven orchestration.
"""

from .aggregator import (
    AggregationResult,
    AggregationStats,
    Aggregator,
    ImageConnector,
)
from .canonicalizer import TRACKING_PARAMS, canonicalize, dedup_key, deduplicate
from .controller import QueryController, SearchState, SearchStatus
from .scorer import (
    CandidateScorer,
    LicenseCategory,
    RankingConfig,
    classify_license,
    score_candidate,
    token_match_fraction,
)

__all__ = [
    # Canonicalizer
    "TRACKING_PARAMS",
    "canonicalize",
    "dedup_key",
    "deduplicate",
    # Scorer
    "CandidateScorer",
    "LicenseCategory",
    "RankingConfig",
    "classify_license",
    "score_candidate",
    "token_match_fraction",
    # Aggregator
    "Aggregator",
    "AggregationResult",
    "AggregationStats",
    "ImageConnector",
    # Controller
    "QueryController",
    "SearchState",
    "SearchStatus",
]
