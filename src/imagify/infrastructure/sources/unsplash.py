"""
Unsplash Photo Search Client

API Documentation: https://unsplash.com/documentation#search-photos

Notes:
- Requires an access key (``Authorization: Client-ID <key>``); without one
  the connector is skipped and returns no candidates
- All photos are under the Unsplash License
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from imagify.domain.entities import Candidate, ImageSource, License
from imagify.infrastructure.sources.base_client import (
    DEFAULT_USER_AGENT,
    ImageSourceClient,
    clean_text,
    first_text,
    positive_int,
)
from imagify.shared.exceptions import ParseError

logger = logging.getLogger(__name__)

UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
UNSPLASH_LICENSE = License(type="Unsplash License", url="https://unsplash.com/license")


class UnsplashClient(ImageSourceClient):
    """
    Unsplash photo search client.

    Usage:
        client = UnsplashClient(api_key="...")
        candidates = await client.fetch("Tokyo shibuya")
    """

    _service_name = "Unsplash"
    source = ImageSource.UNSPLASH
    requires_api_key = True

    def __init__(
        self,
        api_key: str | None = None,
        per_page: int = 30,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._per_page = per_page
        super().__init__(
            api_key=api_key,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/json",
                "Accept-Version": "v1",
            },
        )

    async def fetch(self, query_text: str) -> list[Candidate]:
        if not self.is_configured():
            logger.debug("Unsplash: no access key configured, skipping")
            return []
        if not query_text.strip():
            return []

        data = await self._make_request(
            UNSPLASH_SEARCH_URL,
            params={"query": query_text, "per_page": self._per_page, "content_filter": "high"},
            headers={"Authorization": f"Client-ID {self._api_key}"},
        )
        if not isinstance(data, dict):
            raise ParseError("expected a JSON object", source=self._service_name)
        return self._collect(data.get("results", []), self._map_to_candidate)

    @staticmethod
    def _map_to_candidate(item: dict[str, Any], fetched_at: datetime) -> Candidate | None:
        native_id = clean_text(item.get("id"))
        if not native_id:
            return None
        urls = item.get("urls") or {}
        links = item.get("links") or {}
        user = item.get("user") or {}

        return Candidate(
            id=f"us_{native_id}",
            source=ImageSource.UNSPLASH,
            title=first_text(item.get("description"), item.get("alt_description")),
            image_url=first_text(urls.get("full"), urls.get("regular"), urls.get("raw")),
            thumbnail_url=first_text(urls.get("small"), urls.get("thumb"), urls.get("regular")),
            page_url=first_text(links.get("html")),
            width=positive_int(item.get("width")),
            height=positive_int(item.get("height")),
            license=UNSPLASH_LICENSE,
            creator=first_text(user.get("name"), user.get("username")),
            fetched_at=fetched_at,
        )
