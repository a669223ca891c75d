"""
Scorer - weighted multi-dimensional relevance for image candidates.

Final score is a fixed weighted sum of independently bounded sub-scores:

    keyword      0.35  fraction of keyword tokens found in title + source
    city         0.22  fraction of city tokens found in title + source
    resolution   0.18  pixels / reference pixels (4 MP), clamped to [0, 1]
    license      0.17  how freely the image can be reused
    source_prior 0.06  small per-source trust constant
    phrase       0.02  full query phrase appears in the title

Keyword/city relevance dominates so results answer the query; resolution
and license break ties on quality; the source prior is a thumb on the
scale that never outweighs content relevance. Weights are tunable via
RankingConfig and are normalized to sum to 1.0.

Example:
    >>> scorer = CandidateScorer()
    >>> context = QueryContext.from_input("Paris, eiffel tower")
    >>> scored = scorer.score_candidate(candidate, context)
    >>> scored.breakdown.keyword  # 1.0 when "eiffel" and "tower" are in the title
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from imagify.domain.entities import (
    Candidate,
    ImageSource,
    QueryContext,
    ScoreBreakdown,
    ScoredCandidate,
    UNKNOWN_LICENSE,
    tokenize,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================


class LicenseCategory(Enum):
    """License families, most reusable first."""

    PUBLIC_DOMAIN = "public_domain"
    ATTRIBUTION = "attribution"
    SHARE_ALIKE = "share_alike"
    NON_COMMERCIAL = "non_commercial"
    UNKNOWN = "unknown"
    OTHER = "other"


DEFAULT_LICENSE_SCORES: dict[LicenseCategory, float] = {
    LicenseCategory.PUBLIC_DOMAIN: 1.0,
    LicenseCategory.ATTRIBUTION: 0.85,
    LicenseCategory.SHARE_ALIKE: 0.7,
    LicenseCategory.NON_COMMERCIAL: 0.35,
    LicenseCategory.UNKNOWN: 0.3,
    LicenseCategory.OTHER: 0.5,
}

DEFAULT_SOURCE_PRIORS: dict[ImageSource, float] = {
    ImageSource.WIKIMEDIA: 1.0,
    ImageSource.OPENVERSE: 0.9,
    ImageSource.UNSPLASH: 0.8,
    ImageSource.PEXELS: 0.8,
}

DEFAULT_SOURCE_PRIOR = 0.5

# 4 megapixels
DEFAULT_REFERENCE_PIXELS = 4_000_000


@dataclass
class RankingConfig:
    """
    Configuration for candidate scoring.

    Weights should sum to 1.0 (they are normalized if not).
    """

    keyword_weight: float = 0.35
    city_weight: float = 0.22
    resolution_weight: float = 0.18
    license_weight: float = 0.17
    source_prior_weight: float = 0.06
    phrase_weight: float = 0.02

    reference_pixels: int = DEFAULT_REFERENCE_PIXELS

    license_scores: dict[LicenseCategory, float] = field(
        default_factory=lambda: DEFAULT_LICENSE_SCORES.copy()
    )
    source_priors: dict[ImageSource, float] = field(
        default_factory=lambda: DEFAULT_SOURCE_PRIORS.copy()
    )
    default_source_prior: float = DEFAULT_SOURCE_PRIOR

    @classmethod
    def default(cls) -> RankingConfig:
        """Get default configuration."""
        return cls()

    def normalized_weights(self) -> dict[str, float]:
        """Get normalized weights that sum to 1.0."""
        weights = {
            "keyword": self.keyword_weight,
            "city": self.city_weight,
            "resolution": self.resolution_weight,
            "license": self.license_weight,
            "source_prior": self.source_prior_weight,
            "phrase": self.phrase_weight,
        }
        if any(w < 0 for w in weights.values()):
            raise ValueError(f"Ranking weights must be non-negative: {weights}")

        total = sum(weights.values())
        if total == 0:
            total = 1.0
        return {name: w / total for name, w in weights.items()}


# =============================================================================
# Sub-scores
# =============================================================================


def token_match_fraction(terms: tuple[str, ...] | list[str], text: str | None) -> float:
    """Fraction of distinct ``terms`` present as whole tokens in ``text``."""
    unique_terms = set(terms)
    if not unique_terms:
        return 0.0
    tokens = set(tokenize(text))
    return len(unique_terms & tokens) / len(unique_terms)


def classify_license(license_type: str | None) -> LicenseCategory:
    """
    Bucket a free-text license name into a LicenseCategory.

    Handles both Openverse-style names ("CC BY-SA 4.0", "CC0 1.0") and
    Commons short names ("Public domain", "CC BY-NC 2.0").
    """
    text = (license_type or "").strip().lower()
    if not text or text == UNKNOWN_LICENSE:
        return LicenseCategory.UNKNOWN

    tokens = set(tokenize(text))
    if "cc0" in tokens or "pdm" in tokens or "public domain" in text or {"pd", "publicdomain"} & tokens:
        return LicenseCategory.PUBLIC_DOMAIN
    if "nc" in tokens or "noncommercial" in text.replace("-", "").replace(" ", ""):
        return LicenseCategory.NON_COMMERCIAL
    if "nd" in tokens or "noderivatives" in text.replace("-", "").replace(" ", ""):
        return LicenseCategory.OTHER
    if "sa" in tokens or "sharealike" in text.replace("-", "").replace(" ", ""):
        return LicenseCategory.SHARE_ALIKE
    if "by" in tokens or "attribution" in text:
        return LicenseCategory.ATTRIBUTION
    return LicenseCategory.OTHER


class CandidateScorer:
    """
    Pure scoring function over (candidate, query context).

    Every sub-score is exposed as its own method so each can be tested
    in isolation; `score()` is their weighted sum.
    """

    def __init__(self, config: RankingConfig | None = None):
        self._config = config or RankingConfig.default()
        self._weights = self._config.normalized_weights()

    @property
    def config(self) -> RankingConfig:
        return self._config

    @staticmethod
    def _match_text(candidate: Candidate) -> str:
        return f"{candidate.title or ''} {candidate.source.value}"

    def keyword_match(self, candidate: Candidate, context: QueryContext) -> float:
        return token_match_fraction(context.keyword_terms, self._match_text(candidate))

    def city_match(self, candidate: Candidate, context: QueryContext) -> float:
        return token_match_fraction(context.city_terms, self._match_text(candidate))

    def resolution_score(self, candidate: Candidate) -> float:
        if not candidate.width or not candidate.height or self._config.reference_pixels <= 0:
            return 0.0
        return min(1.0, (candidate.width * candidate.height) / self._config.reference_pixels)

    def license_score(self, candidate: Candidate) -> float:
        category = classify_license(candidate.license.type)
        return self._config.license_scores.get(
            category, DEFAULT_LICENSE_SCORES[category]
        )

    def source_prior(self, candidate: Candidate) -> float:
        return self._config.source_priors.get(candidate.source, self._config.default_source_prior)

    def phrase_bonus(self, candidate: Candidate, context: QueryContext) -> float:
        if not context.phrase or not candidate.title:
            return 0.0
        return 1.0 if context.phrase in candidate.title.lower() else 0.0

    def breakdown(self, candidate: Candidate, context: QueryContext) -> ScoreBreakdown:
        """All sub-scores for one candidate."""
        return ScoreBreakdown(
            keyword=self.keyword_match(candidate, context),
            city=self.city_match(candidate, context),
            resolution=self.resolution_score(candidate),
            license=self.license_score(candidate),
            source_prior=self.source_prior(candidate),
            phrase=self.phrase_bonus(candidate, context),
        )

    def combine(self, breakdown: ScoreBreakdown) -> float:
        """Weighted sum of sub-scores."""
        w = self._weights
        return (
            breakdown.keyword * w["keyword"]
            + breakdown.city * w["city"]
            + breakdown.resolution * w["resolution"]
            + breakdown.license * w["license"]
            + breakdown.source_prior * w["source_prior"]
            + breakdown.phrase * w["phrase"]
        )

    def score(self, candidate: Candidate, context: QueryContext) -> float:
        return self.combine(self.breakdown(candidate, context))

    def score_candidate(self, candidate: Candidate, context: QueryContext) -> ScoredCandidate:
        breakdown = self.breakdown(candidate, context)
        return ScoredCandidate(candidate=candidate, score=self.combine(breakdown), breakdown=breakdown)


def score_candidate(
    candidate: Candidate,
    context: QueryContext,
    config: RankingConfig | None = None,
) -> float:
    """Convenience function: score one candidate with the given (or default) config."""
    return CandidateScorer(config).score(candidate, context)
