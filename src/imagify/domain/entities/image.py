"""
Domain Entity: Candidate

Unified image search result.
Pure domain entity: no source-specific factory methods.
Source mapping is handled by Infrastructure layer mappers.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ImageSource(str, Enum):
    """Image source identifier."""

    OPENVERSE = "openverse"
    WIKIMEDIA = "wikimedia"
    UNSPLASH = "unsplash"
    PEXELS = "pexels"


class Orientation(str, Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    SQUARE = "square"
    UNKNOWN = "unknown"


UNKNOWN_LICENSE = "unknown"


@dataclass(frozen=True, slots=True)
class License:
    """License as reported by the provider."""

    type: str = UNKNOWN_LICENSE
    url: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Candidate:
    """
    Unified image search result.

    Every connector produces this shape; provider-specific fields are
    translated at the connector boundary. A candidate always has at least
    one of ``image_url`` / ``thumbnail_url`` (connectors drop the rest).
    """

    id: str  # provider-prefixed, e.g. "wm_12345"
    source: ImageSource
    title: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    page_url: str | None = None
    width: int | None = None
    height: int | None = None
    license: License = field(default_factory=License)
    creator: str | None = None
    fetched_at: datetime = field(default_factory=_utcnow)

    @property
    def orientation(self) -> Orientation:
        """Orientation tag derived from pixel dimensions."""
        if not self.width or not self.height:
            return Orientation.UNKNOWN
        if self.width > self.height:
            return Orientation.LANDSCAPE
        if self.height > self.width:
            return Orientation.PORTRAIT
        return Orientation.SQUARE

    @property
    def megapixels(self) -> float:
        if not self.width or not self.height:
            return 0.0
        return self.width * self.height / 1_000_000

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        data = dataclasses.asdict(self)
        data["source"] = self.source.value
        data["fetched_at"] = self.fetched_at.isoformat()
        data["orientation"] = self.orientation.value
        return data


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Per-dimension sub-scores, each in [0, 1]."""

    keyword: float = 0.0
    city: float = 0.0
    resolution: float = 0.0
    license: float = 0.0
    source_prior: float = 0.0
    phrase: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    """Candidate plus its relevance score (higher = more relevant)."""

    candidate: Candidate
    score: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    @property
    def id(self) -> str:
        return self.candidate.id

    @property
    def source(self) -> ImageSource:
        return self.candidate.source

    def to_dict(self) -> dict[str, Any]:
        data = self.candidate.to_dict()
        data["score"] = round(self.score, 6)
        data["score_breakdown"] = self.breakdown.to_dict()
        return data
