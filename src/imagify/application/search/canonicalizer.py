"""
Canonicalizer - stable dedup keys for image candidates.

The same image often comes back from several providers with cosmetic URL
differences (tracking parameters, fragments, host casing). Canonical keys
erase those so the aggregator can keep one copy.

Malformed input never raises: a string that does not parse as an absolute
URL is its own key.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from imagify.domain.entities import Candidate

logger = logging.getLogger(__name__)

TRACKING_PARAMS: frozenset[str] = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "gclid",
    "fbclid",
    "msclkid",
    "mc_cid",
    "mc_eid",
})


def canonicalize(url: str) -> str:
    """
    Normalize a URL into a dedup key.

    - drops the fragment
    - drops tracking query parameters (case-insensitive names)
    - lowercases scheme and host
    - re-encodes the remaining query, preserving parameter order

    Idempotent: ``canonicalize(canonicalize(u)) == canonicalize(u)``.

    Args:
        url: Candidate URL

    Returns:
        Canonical URL, or the input unchanged if it is not a well-formed URL
    """
    if not isinstance(url, str):
        return url
    text = url.strip()
    try:
        parts = urlsplit(text)
        if not parts.scheme or not parts.netloc:
            return url
        query = urlencode(
            [
                (key, value)
                for key, value in parse_qsl(parts.query, keep_blank_values=True)
                if key.lower() not in TRACKING_PARAMS
            ]
        )
        return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path, query, "")).strip()
    except ValueError:
        # e.g. unbalanced IPv6 brackets
        logger.debug(f"Canonicalizer: falling back to raw key for {url!r}")
        return url


def dedup_key(candidate: Candidate) -> str:
    """
    Key used to detect duplicates.

    First non-empty of image_url → thumbnail_url → page_url (canonicalized),
    falling back to the candidate id, so every candidate yields a key.
    """
    for url in (candidate.image_url, candidate.thumbnail_url, candidate.page_url):
        if url and url.strip():
            return canonicalize(url)
    return candidate.id


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Keep the first occurrence of each canonical key, in input order."""
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        key = dedup_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique
