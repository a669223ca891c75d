"""
HTTP API Server for Imagify.

Thin HTTP surface over the search pipeline:
- ``GET /api/search``: one stateless aggregate-dedup-rank pass
- ``GET /api/openverse``: same-origin Openverse proxy (raw JSON passthrough)
- ``GET /health``: liveness plus the configured sources
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from imagify.container import ApplicationContainer, create_container
from imagify.domain.entities import QueryContext
from imagify.infrastructure.sources.openverse import OPENVERSE_API_URL
from imagify.shared.exceptions import (
    AllSourcesFailedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 8765
PROXY_PAGE_SIZE = 20
PROXY_USER_AGENT = "Imagify (Openverse Proxy)"


# Pydantic models for API responses
class SearchResponse(BaseModel):
    """Ranked search results."""
    query: str
    results: list[dict[str, Any]] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    sources: list[str]


def _error_response(status_code: int, payload: dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload)


def create_api_server(
    container: ApplicationContainer | None = None,
    proxy_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """
    Create the FastAPI server.

    Args:
        container: DI container (defaults to one configured from the environment)
        proxy_client: HTTP client used by the Openverse proxy endpoint

    Returns:
        Configured FastAPI instance.
    """
    container = container or create_container()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Imagify API server starting")
        yield
        logger.info("Imagify API server shutting down")
        await app.state.proxy_client.aclose()
        await app.state.container.aggregator().close()

    app = FastAPI(
        title="Imagify API",
        description="Aggregated, deduplicated and ranked image search across open image providers.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container
    app.state.proxy_client = proxy_client or httpx.AsyncClient(
        timeout=float(container.config.http_timeout() or 15.0),
        headers={"User-Agent": PROXY_USER_AGENT, "Accept": "application/json"},
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(request: Request) -> HealthResponse:
        """Health check endpoint."""
        aggregator = request.app.state.container.aggregator()
        return HealthResponse(status="healthy", sources=[s.value for s in aggregator.sources])

    @app.get("/api/search", response_model=SearchResponse)
    async def search(
        request: Request,
        q: str = Query(default="", description='City plus optional keywords, e.g. "Paris, eiffel tower"'),
        limit: int | None = Query(default=None, description="Number of results (top-K)"),
        sources: str | None = Query(default=None, description="Comma-separated source names"),
    ) -> Any:
        """Run one aggregation pass and return the ranked results (empty query: no run, no results)."""
        container: ApplicationContainer = request.app.state.container
        try:
            source_list = [s for s in sources.split(",") if s.strip()] if sources else None
            context = QueryContext.from_input(
                q,
                enabled_sources=source_list,
                limit=limit if limit is not None else int(container.config.default_limit()),
            )
        except ValidationError as e:
            return _error_response(400, e.to_dict())

        try:
            result = await container.aggregator().run(context)
        except AllSourcesFailedError as e:
            logger.warning(f"Search for {context.query_text!r} failed on every source")
            return _error_response(502, e.to_dict())

        return SearchResponse(query=context.query_text, **result.to_dict())

    @app.get("/api/openverse")
    async def openverse_proxy(
        request: Request,
        q: str = Query(default=""),
        page_size: int = Query(default=PROXY_PAGE_SIZE, ge=1, le=500),
    ) -> Any:
        """Forward ``q`` to Openverse and return its JSON unchanged."""
        if not q:
            return _error_response(400, {"error": "Missing ?q="})

        client: httpx.AsyncClient = request.app.state.proxy_client
        try:
            response = await client.get(OPENVERSE_API_URL, params={"q": q, "page_size": page_size})
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Openverse proxy failed: {e!r}")
            return _error_response(502, {"error": "Proxy failed", "details": str(e)})

        return JSONResponse(status_code=response.status_code, content=payload)

    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int = DEFAULT_API_PORT,
) -> None:
    """
    Run the HTTP API server.

    Args:
        host: Host to bind to (default: 127.0.0.1 for local only)
        port: Port to bind to (default: 8765)
    """
    import uvicorn

    logger.info(f"Starting Imagify API server on {host}:{port}")
    uvicorn.run(create_api_server(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Imagify HTTP API Server")
    parser.add_argument("--host", default=os.environ.get("IMAGIFY_HOST", "127.0.0.1"), help="Host to bind to")
    parser.add_argument(
        "--port", type=int, default=int(os.environ.get("IMAGIFY_PORT", DEFAULT_API_PORT)), help="Port to bind to"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    run_api_server(host=args.host, port=args.port)
