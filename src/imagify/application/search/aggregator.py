"""
Aggregator - fan out, merge, deduplicate, score and rank image candidates.

One `run()` is one pipeline pass for a single QueryContext:

1. Call every enabled connector concurrently (each bounded by a timeout)
2. Concatenate successful results in connector registration order
3. Deduplicate by canonical key (first occurrence wins)
4. Score each survivor
5. Stable sort by descending score (ties keep first-seen order)
6. Truncate to the requested K

A failing connector, including one that returns something other than a
list, contributes zero candidates and is logged; it never aborts the run. Only when every enabled connector fails does the run
raise, as a single AllSourcesFailedError.

Example:
    >>> aggregator = Aggregator([OpenverseClient(), WikimediaClient()])
    >>> result = await aggregator.run(QueryContext.from_input("Paris, eiffel tower", limit=12))
    >>> [c.id for c in result.candidates]
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from imagify.domain.entities import Candidate, ImageSource, QueryContext, ScoredCandidate
from imagify.shared.async_utils import gather_with_errors
from imagify.shared.exceptions import AllSourcesFailedError, ErrorContext, NetworkError, ParseError

from .canonicalizer import deduplicate
from .scorer import CandidateScorer

logger = logging.getLogger(__name__)

DEFAULT_CONNECTOR_TIMEOUT = 10.0


class ImageConnector(Protocol):
    """Anything that can search one provider for image candidates."""

    source: ImageSource

    async def fetch(self, query_text: str) -> list[Candidate]: ...


@dataclass
class AggregationStats:
    """Statistics from one aggregation run."""

    total_input: int = 0
    unique_candidates: int = 0
    duplicates_removed: int = 0
    returned: int = 0
    by_source: dict[str, int] = field(default_factory=dict)
    failed_sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_candidates": self.unique_candidates,
            "duplicates_removed": self.duplicates_removed,
            "returned": self.returned,
            "by_source": dict(self.by_source),
            "failed_sources": list(self.failed_sources),
        }


@dataclass
class AggregationResult:
    """Ranked candidates plus run diagnostics."""

    candidates: list[ScoredCandidate] = field(default_factory=list)
    stats: AggregationStats = field(default_factory=AggregationStats)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [c.to_dict() for c in self.candidates],
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
        }


class Aggregator:
    """
    Runs the aggregate-dedup-score-rank pipeline over a fixed connector list.

    Usage:
        aggregator = Aggregator(connectors, scorer=CandidateScorer(config))
        result = await aggregator.run(context)
    """

    def __init__(
        self,
        connectors: Sequence[ImageConnector],
        scorer: CandidateScorer | None = None,
        connector_timeout: float | None = DEFAULT_CONNECTOR_TIMEOUT,
    ):
        """
        Args:
            connectors: Connectors in registration order (also the dedup priority order)
            scorer: Scorer to rank with (default weights if omitted)
            connector_timeout: Per-connector time budget in seconds; None disables it
        """
        self._connectors = list(connectors)
        self._scorer = scorer or CandidateScorer()
        self._connector_timeout = connector_timeout

    @property
    def connectors(self) -> list[ImageConnector]:
        return list(self._connectors)

    @property
    def sources(self) -> list[ImageSource]:
        return [c.source for c in self._connectors]

    async def run(self, context: QueryContext) -> AggregationResult:
        """
        Execute one pipeline pass.

        Returns:
            AggregationResult with at most ``context.limit`` candidates

        Raises:
            AllSourcesFailedError: every enabled connector failed
        """
        if context.is_empty:
            return AggregationResult()

        active = [c for c in self._connectors if c.source in context.enabled_sources]
        if not active:
            logger.info("Aggregator: no enabled sources, returning empty result")
            return AggregationResult()

        outcomes = await gather_with_errors(
            *(self._fetch_one(connector, context.query_text) for connector in active),
            return_exceptions=True,
        )

        stats = AggregationStats()
        errors: list[str] = []
        failures: list[Exception] = []
        merged: list[Candidate] = []

        for connector, outcome in zip(active, outcomes, strict=True):
            name = connector.source.value
            if isinstance(outcome, Exception):
                logger.warning(f"Aggregator: {name} failed: {outcome}")
                failures.append(outcome)
                errors.append(f"{name}: {outcome}")
                stats.failed_sources.append(name)
                continue
            stats.by_source[name] = len(outcome)
            merged.extend(outcome)

        if len(failures) == len(active):
            raise AllSourcesFailedError(failures, sources=stats.failed_sources)

        stats.total_input = len(merged)
        unique = deduplicate(merged)
        stats.unique_candidates = len(unique)
        stats.duplicates_removed = stats.total_input - stats.unique_candidates

        ranked = self.rank(unique, context)
        stats.returned = len(ranked)

        logger.info(
            f"Aggregator: {context.query_text!r} -> {stats.returned} results "
            f"({stats.total_input} fetched, {stats.duplicates_removed} duplicates, "
            f"{len(failures)} failed sources)"
        )
        return AggregationResult(candidates=ranked, stats=stats, errors=errors)

    def rank(self, candidates: Sequence[Candidate], context: QueryContext) -> list[ScoredCandidate]:
        """Score, stable-sort descending and truncate to ``context.limit``."""
        scored = [self._scorer.score_candidate(c, context) for c in candidates]
        # sorted() is stable with reverse=True, so equal scores keep input order
        ranked = sorted(scored, key=lambda s: s.score, reverse=True)
        return ranked[: context.limit]

    async def _fetch_one(self, connector: ImageConnector, query_text: str) -> list[Candidate]:
        try:
            async with asyncio.timeout(self._connector_timeout):
                candidates = await connector.fetch(query_text)
        except TimeoutError as e:
            raise NetworkError(
                f"{connector.source.value}: timed out after {self._connector_timeout}s",
                context=ErrorContext(source=connector.source.value, operation="fetch"),
            ) from e
        if not isinstance(candidates, list):
            raise ParseError(
                f"expected a list of candidates, got {type(candidates).__name__}",
                source=connector.source.value,
            )
        return candidates

    async def close(self) -> None:
        """Close connectors that own HTTP clients."""
        for connector in self._connectors:
            close = getattr(connector, "close", None)
            if close is not None:
                await close()
