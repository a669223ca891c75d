"""
Openverse Image Search Client

Openverse indexes openly licensed media (Flickr, museums, Wikimedia, ...).

API Documentation: https://api.openverse.org/v1/

Notes:
- Anonymous access is allowed; anonymous page_size is capped at 20
- Requests can go through the same-origin proxy (``/api/openverse``),
  which forwards ``q`` and ``page_size`` and returns the raw JSON unchanged
- License is exposed as a short code ("by-sa", "cc0", "pdm") plus version
"""

from __future__ import annotations

import logging
import uuid
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

logger = logging.getLogger(__name__)

OPENVERSE_API_URL = "https://api.openverse.org/v1/images/"


class OpenverseClient(ImageSourceClient):
    """
    Openverse image search client.

    Usage:
        client = OpenverseClient()
        candidates = await client.fetch("Paris eiffel tower")

        # Through the same-origin proxy
        client = OpenverseClient(proxy_url="http://localhost:8765/api/openverse")
    """

    _service_name = "Openverse"
    source = ImageSource.OPENVERSE

    def __init__(
        self,
        proxy_url: str | None = None,
        page_size: int = 20,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        """
        Initialize Openverse client.

        Args:
            proxy_url: Optional proxy endpoint used instead of the public API
            page_size: Results requested per query (single page)
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
        """
        self._endpoint = (proxy_url or "").strip() or OPENVERSE_API_URL
        self._page_size = page_size
        super().__init__(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    @property
    def uses_proxy(self) -> bool:
        return self._endpoint != OPENVERSE_API_URL

    async def fetch(self, query_text: str) -> list[Candidate]:
        if not query_text.strip():
            return []

        params = {"q": query_text, "page_size": self._page_size}
        logger.debug(f"Openverse search via {self._endpoint}: {query_text!r}")
        data = await self._make_request(self._endpoint, params=params)

        results = data.get("results", []) if isinstance(data, dict) else data
        return self._collect(results, self._map_to_candidate)

    @staticmethod
    def _map_to_candidate(item: dict[str, Any], fetched_at: datetime) -> Candidate:
        """Map one Openverse ``results[]`` entry to Candidate."""
        native_id = clean_text(item.get("id")) or uuid.uuid4().hex

        image_url = first_text(item.get("url"))
        thumbnail_url = first_text(item.get("thumbnail"), image_url)

        return Candidate(
            id=f"ov_{native_id}",
            source=ImageSource.OPENVERSE,
            title=first_text(item.get("title"), item.get("alt"), item.get("source")),
            image_url=image_url or thumbnail_url,
            thumbnail_url=thumbnail_url,
            page_url=first_text(item.get("foreign_landing_url"), image_url),
            width=positive_int(item.get("width")),
            height=positive_int(item.get("height")),
            license=License(
                type=format_license(item.get("license"), item.get("license_version")),
                url=clean_text(item.get("license_url")),
            ),
            creator=clean_text(item.get("creator")),
            fetched_at=fetched_at,
        )


def format_license(code: Any, version: Any = None) -> str:
    """
    Turn an Openverse short code into a readable license name.

    "by-sa", "4.0" -> "CC BY-SA 4.0"; "cc0" -> "CC0 1.0"; "pdm" -> "Public Domain Mark 1.0"
    """
    code_text = clean_text(code)
    if not code_text:
        return UNKNOWN_LICENSE
    version_text = clean_text(str(version)) if version is not None else None
    code_text = code_text.lower()

    if code_text == "cc0":
        name = "CC0"
    elif code_text == "pdm":
        name = "Public Domain Mark"
    else:
        name = f"CC {code_text.upper()}"
    return f"{name} {version_text}" if version_text else name
