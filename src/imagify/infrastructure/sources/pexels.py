"""
Pexels Photo Search Client

API Documentation: https://www.pexels.com/api/documentation/#photos-search

Notes:
- Requires an API key sent verbatim in the ``Authorization`` header;
  without one the connector is skipped and returns no candidates
- ``url`` is the photo page, image files live under ``src``
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

PEXELS_SEARCH_URL = "https://api.pexels.com/v1/search"
PEXELS_LICENSE = License(type="Pexels License", url="https://www.pexels.com/license/")


class PexelsClient(ImageSourceClient):
    """
    Pexels photo search client.

    Usage:
        client = PexelsClient(api_key="...")
        candidates = await client.fetch("Mumbai gateway of india")
    """

    _service_name = "Pexels"
    source = ImageSource.PEXELS
    requires_api_key = True

    def __init__(
        self,
        api_key: str | None = None,
        per_page: int = 40,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self._per_page = per_page
        super().__init__(
            api_key=api_key,
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    async def fetch(self, query_text: str) -> list[Candidate]:
        if not self.is_configured():
            logger.debug("Pexels: no API key configured, skipping")
            return []
        if not query_text.strip():
            return []

        data = await self._make_request(
            PEXELS_SEARCH_URL,
            params={"query": query_text, "per_page": self._per_page},
            headers={"Authorization": self._api_key or ""},
        )
        if not isinstance(data, dict):
            raise ParseError("expected a JSON object", source=self._service_name)
        return self._collect(data.get("photos", []), self._map_to_candidate)

    @staticmethod
    def _map_to_candidate(item: dict[str, Any], fetched_at: datetime) -> Candidate | None:
        native_id = item.get("id")
        if native_id is None or native_id == "":
            return None
        src = item.get("src") or {}

        return Candidate(
            id=f"px_{native_id}",
            source=ImageSource.PEXELS,
            title=first_text(item.get("alt")),
            image_url=first_text(src.get("original"), src.get("large2x"), src.get("large")),
            thumbnail_url=first_text(src.get("medium"), src.get("small"), src.get("tiny")),
            page_url=first_text(item.get("url")),
            width=positive_int(item.get("width")),
            height=positive_int(item.get("height")),
            license=PEXELS_LICENSE,
            creator=clean_text(item.get("photographer")),
            fetched_at=fetched_at,
        )
