"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from imagify.domain.entities import Candidate, ImageSource, License

FIXED_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================
# Candidate Factory
# ============================================================


def make_candidate(
    id: str = "wm_1",
    source: ImageSource = ImageSource.WIKIMEDIA,
    title: str | None = "Untitled",
    image_url: str | None = "https://example.org/image.jpg",
    thumbnail_url: str | None = None,
    page_url: str | None = None,
    width: int | None = None,
    height: int | None = None,
    license_type: str = "unknown",
    creator: str | None = None,
) -> Candidate:
    """Build a Candidate with sensible defaults for tests."""
    return Candidate(
        id=id,
        source=source,
        title=title,
        image_url=image_url,
        thumbnail_url=thumbnail_url,
        page_url=page_url,
        width=width,
        height=height,
        license=License(type=license_type),
        creator=creator,
        fetched_at=FIXED_TIME,
    )


# ============================================================
# Fake Connectors
# ============================================================


class FakeConnector:
    """
    In-memory connector.

    Returns a fixed candidate list or raises a fixed error, optionally
    after a delay.
    """

    def __init__(
        self,
        source: ImageSource,
        candidates: list[Candidate] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ):
        self.source = source
        self.candidates = list(candidates or [])
        self.error = error
        self.delay = delay
        self.calls: list[str] = []
        self.closed = False

    async def fetch(self, query_text: str) -> list[Candidate]:
        self.calls.append(query_text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.candidates)

    async def close(self) -> None:
        self.closed = True


# ============================================================
# Mock Provider Responses
# ============================================================


@pytest.fixture
def openverse_response() -> dict[str, Any]:
    """Mock Openverse /v1/images/ response."""
    return {
        "result_count": 2,
        "page_count": 1,
        "results": [
            {
                "id": "4bc43a04-ef46-4544-a0c1-63c63f56e276",
                "title": "Eiffel Tower at night",
                "url": "https://live.staticflickr.com/65535/eiffel.jpg",
                "thumbnail": "https://api.openverse.org/v1/images/4bc43a04/thumb/",
                "foreign_landing_url": "https://www.flickr.com/photos/someone/123",
                "creator": "someone",
                "license": "by-sa",
                "license_version": "2.0",
                "license_url": "https://creativecommons.org/licenses/by-sa/2.0/",
                "width": 4000,
                "height": 3000,
                "source": "flickr",
            },
            {
                "id": "no-urls",
                "title": "Broken record",
                "url": "",
                "thumbnail": None,
                "license": "cc0",
            },
        ],
    }


@pytest.fixture
def wikimedia_response() -> dict[str, Any]:
    """Mock MediaWiki generator=search + prop=imageinfo response."""
    return {
        "batchcomplete": "",
        "query": {
            "pages": {
                "222": {
                    "pageid": 222,
                    "ns": 6,
                    "title": "File:Louvre Pyramid.jpg",
                    "index": 2,
                    "imageinfo": [
                        {
                            "url": "https://upload.wikimedia.org/wikipedia/commons/louvre.jpg",
                            "thumburl": "https://upload.wikimedia.org/wikipedia/commons/thumb/louvre.jpg/1200px-louvre.jpg",
                            "descriptionurl": "https://commons.wikimedia.org/wiki/File:Louvre_Pyramid.jpg",
                            "width": 1600,
                            "height": 1200,
                            "extmetadata": {
                                "LicenseShortName": {"value": "CC BY 3.0"},
                                "LicenseUrl": {"value": "https://creativecommons.org/licenses/by/3.0"},
                                "Artist": {"value": '<a href="//commons.wikimedia.org/wiki/User:Alice">Alice</a>'},
                            },
                        }
                    ],
                },
                "111": {
                    "pageid": 111,
                    "ns": 6,
                    "title": "File:Tour Eiffel Paris.jpg",
                    "index": 1,
                    "imageinfo": [
                        {
                            "url": "https://upload.wikimedia.org/wikipedia/commons/eiffel.jpg",
                            "width": 3000,
                            "height": 4000,
                            "extmetadata": {
                                "LicenseShortName": {"value": "Public domain"},
                            },
                        }
                    ],
                },
            }
        },
    }


@pytest.fixture
def unsplash_response() -> dict[str, Any]:
    """Mock Unsplash /search/photos response."""
    return {
        "total": 1,
        "total_pages": 1,
        "results": [
            {
                "id": "abc123",
                "width": 5000,
                "height": 3333,
                "description": None,
                "alt_description": "shibuya crossing at night in tokyo",
                "urls": {
                    "raw": "https://images.unsplash.com/photo-abc?ixid=1",
                    "full": "https://images.unsplash.com/photo-abc?q=85",
                    "regular": "https://images.unsplash.com/photo-abc?w=1080",
                    "small": "https://images.unsplash.com/photo-abc?w=400",
                    "thumb": "https://images.unsplash.com/photo-abc?w=200",
                },
                "links": {"html": "https://unsplash.com/photos/abc123"},
                "user": {"name": "Taro Yamada", "username": "taro"},
            }
        ],
    }


@pytest.fixture
def pexels_response() -> dict[str, Any]:
    """Mock Pexels /v1/search response."""
    return {
        "page": 1,
        "per_page": 40,
        "photos": [
            {
                "id": 2014422,
                "width": 3024,
                "height": 3024,
                "url": "https://www.pexels.com/photo/gateway-of-india-2014422/",
                "photographer": "Priya",
                "alt": "Gateway of India in Mumbai",
                "src": {
                    "original": "https://images.pexels.com/photos/2014422/original.jpeg",
                    "large2x": "https://images.pexels.com/photos/2014422/large2x.jpeg",
                    "medium": "https://images.pexels.com/photos/2014422/medium.jpeg",
                },
            },
            {"id": 5, "src": {}},
        ],
    }
