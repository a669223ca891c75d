"""
HTTP API for Imagify.

Provides the search endpoint and the same-origin Openverse proxy.
"""

from .server import create_api_server, run_api_server

__all__ = ["create_api_server", "run_api_server"]
