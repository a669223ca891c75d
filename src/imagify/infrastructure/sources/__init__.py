"""
Image source connectors.

Registration order matters: the aggregator concatenates results in the
order connectors are given, so on duplicate images the connector listed
first keeps its copy.
"""

from __future__ import annotations

from .base_client import BaseAPIClient, ImageSourceClient
from .openverse import OpenverseClient
from .pexels import PexelsClient
from .unsplash import UnsplashClient
from .wikimedia import WikimediaClient

__all__ = [
    "BaseAPIClient",
    "ImageSourceClient",
    "OpenverseClient",
    "WikimediaClient",
    "UnsplashClient",
    "PexelsClient",
]
