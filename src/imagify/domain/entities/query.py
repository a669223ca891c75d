"""
Domain Entity: QueryContext

Everything a single pipeline run needs to know about the user's input,
derived once and never mutated afterwards.

Input form is ``"<city>[, <keywords>]"``: text before the first comma is
the city, anything after it is treated as free keywords.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from imagify.shared.exceptions import InvalidParameterError

from .image import ImageSource

# Any run of non-alphanumeric characters (underscore included) is a boundary
_TOKEN_SPLIT = re.compile(r"[\W_]+", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")

DEFAULT_LIMIT = 24


def tokenize(text: str | None) -> list[str]:
    """Lowercase, alphanumeric-only tokenization."""
    if not text:
        return []
    return [t for t in _TOKEN_SPLIT.split(text.lower()) if t]


def _unique(tokens: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(tokens))


def normalize_query_text(text: str | None) -> str:
    """Trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (text or "").strip())


@dataclass(frozen=True, slots=True)
class QueryContext:
    """Immutable per-run view of the query and search settings."""

    raw: str
    query_text: str
    city_terms: tuple[str, ...] = ()
    keyword_terms: tuple[str, ...] = ()
    phrase: str = ""
    enabled_sources: frozenset[ImageSource] = field(
        default_factory=lambda: frozenset(ImageSource)
    )
    limit: int = DEFAULT_LIMIT

    @classmethod
    def from_input(
        cls,
        text: str | None,
        enabled_sources: Iterable[ImageSource | str] | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> QueryContext:
        """
        Build a context from raw user input.

        Args:
            text: ``"Paris, eiffel tower"`` style query
            enabled_sources: Sources to query (None = all known sources)
            limit: Number of results to keep (K), must be >= 0

        Raises:
            InvalidParameterError: negative limit or unknown source name
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise InvalidParameterError("limit", limit, "a non-negative integer")

        raw = text or ""
        query_text = normalize_query_text(raw)
        city, _, keywords = query_text.partition(",")

        return cls(
            raw=raw,
            query_text=query_text,
            city_terms=_unique(tokenize(city)),
            keyword_terms=_unique(tokenize(keywords)),
            phrase=query_text.lower(),
            enabled_sources=parse_sources(enabled_sources),
            limit=limit,
        )

    @property
    def is_empty(self) -> bool:
        return not self.query_text


def parse_sources(
    sources: Iterable[ImageSource | str] | None,
) -> frozenset[ImageSource]:
    """Resolve source names into ImageSource members (None = all)."""
    if sources is None:
        return frozenset(ImageSource)
    resolved: set[ImageSource] = set()
    for source in sources:
        if isinstance(source, ImageSource):
            resolved.add(source)
            continue
        try:
            resolved.add(ImageSource(str(source).strip().lower()))
        except ValueError:
            raise InvalidParameterError(
                "sources",
                source,
                f"one of {sorted(s.value for s in ImageSource)}",
            ) from None
    return frozenset(resolved)
