"""
Wikimedia Commons Image Search Client

Searches the File: namespace of Wikimedia Commons through the MediaWiki
Action API (generator=search + prop=imageinfo).

API Documentation: https://commons.wikimedia.org/w/api.php

Notes:
- No key required, but Wikimedia asks for a descriptive User-Agent
- ``query.pages`` is keyed by page id; ``index`` carries the search rank
- License comes from extmetadata (LicenseShortName / License / LicenseUrl),
  values may contain HTML
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any

from imagify.domain.entities import Candidate, ImageSource, License, UNKNOWN_LICENSE
from imagify.infrastructure.sources.base_client import (
    DEFAULT_USER_AGENT,
    ImageSourceClient,
    clean_text,
    first_text,
    positive_int,
)
from imagify.shared.exceptions import ParseError

logger = logging.getLogger(__name__)

WIKIMEDIA_API_URL = "https://commons.wikimedia.org/w/api.php"
WIKIMEDIA_PAGE_URL = "https://commons.wikimedia.org/?curid={pageid}"

_HTML_TAG = re.compile(r"<[^>]+>")


class WikimediaClient(ImageSourceClient):
    """
    Wikimedia Commons image search client.

    Usage:
        client = WikimediaClient()
        candidates = await client.fetch("Paris eiffel tower")
    """

    _service_name = "Wikimedia"
    source = ImageSource.WIKIMEDIA

    def __init__(
        self,
        limit: int = 50,
        thumb_width: int = 1200,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._limit = limit
        self._thumb_width = thumb_width
        super().__init__(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    def _build_params(self, query_text: str) -> dict[str, Any]:
        return {
            "action": "query",
            "format": "json",
            "generator": "search",
            "gsrnamespace": 6,
            "gsrwhat": "text",
            "gsrlimit": self._limit,
            "gsrsearch": query_text,
            "prop": "imageinfo",
            "iiprop": "url|size|mime|extmetadata",
            "iiurlwidth": self._thumb_width,
        }

    async def fetch(self, query_text: str) -> list[Candidate]:
        if not query_text.strip():
            return []

        data = await self._make_request(WIKIMEDIA_API_URL, params=self._build_params(query_text))
        if not isinstance(data, dict):
            raise ParseError("expected a JSON object", source=self._service_name)
        if "error" in data:
            info = data["error"].get("info") if isinstance(data["error"], dict) else data["error"]
            raise ParseError(f"API returned an error: {info}", source=self._service_name)

        # No "query" key means the search had no hits
        pages = (data.get("query") or {}).get("pages") or {}
        if isinstance(pages, dict):
            pages = sorted(pages.values(), key=lambda p: p.get("index", 0) if isinstance(p, dict) else 0)
        return self._collect(pages, self._map_to_candidate)

    @staticmethod
    def _map_to_candidate(page: dict[str, Any], fetched_at: datetime) -> Candidate | None:
        """Map one ``query.pages`` entry to Candidate."""
        pageid = page.get("pageid")
        if pageid is None:
            return None

        imageinfo = page.get("imageinfo") or [{}]
        info = imageinfo[0] if isinstance(imageinfo[0], dict) else {}
        extmetadata = info.get("extmetadata") or {}

        image_url = first_text(info.get("url"))
        return Candidate(
            id=f"wm_{pageid}",
            source=ImageSource.WIKIMEDIA,
            title=_clean_title(page.get("title")),
            image_url=image_url,
            thumbnail_url=first_text(info.get("thumburl"), image_url),
            page_url=first_text(info.get("descriptionurl")) or WIKIMEDIA_PAGE_URL.format(pageid=pageid),
            width=positive_int(info.get("width")),
            height=positive_int(info.get("height")),
            license=License(
                type=_meta_value(extmetadata, "LicenseShortName")
                or _meta_value(extmetadata, "License")
                or UNKNOWN_LICENSE,
                url=_meta_value(extmetadata, "LicenseUrl"),
            ),
            creator=_meta_value(extmetadata, "Artist"),
            fetched_at=fetched_at,
        )


def _meta_value(extmetadata: dict[str, Any], key: str) -> str | None:
    """Read an extmetadata ``{"value": ...}`` entry as plain text."""
    entry = extmetadata.get(key)
    if not isinstance(entry, dict):
        return None
    value = entry.get("value")
    if not isinstance(value, str):
        return None
    return clean_text(_HTML_TAG.sub("", value))


def _clean_title(title: Any) -> str | None:
    """'File:Eiffel Tower.jpg' -> 'Eiffel Tower.jpg'"""
    text = clean_text(title)
    if text and text.startswith("File:"):
        text = clean_text(text[len("File:"):])
    return text
