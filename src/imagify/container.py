"""
Application DI Container (dependency-injector).

Centralizes connector, scorer and aggregator creation.

Usage::

    from imagify.container import ApplicationContainer, load_config

    container = ApplicationContainer()
    container.config.from_dict(load_config())

    aggregator = container.aggregator()
    controller = container.query_controller()

    # In tests, override any provider:
    container.aggregator.override(providers.Object(fake_aggregator))
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dependency_injector import containers, providers

from imagify.application.search import Aggregator, CandidateScorer, QueryController, RankingConfig
from imagify.infrastructure.sources import OpenverseClient, PexelsClient, UnsplashClient, WikimediaClient
from imagify.infrastructure.sources.base_client import DEFAULT_USER_AGENT
from imagify.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "unsplash_access_key": None,
    "pexels_api_key": None,
    "openverse_proxy_url": None,
    "http_timeout": 15.0,
    "connector_timeout": 10.0,
    "default_limit": 24,
    "user_agent": DEFAULT_USER_AGENT,
}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def load_config(**overrides: Any) -> dict[str, Any]:
    """
    Build container configuration from IMAGIFY_* environment variables.

    Explicit keyword overrides win over the environment.

    Environment Variables:
        IMAGIFY_UNSPLASH_ACCESS_KEY: Unsplash access key (source skipped if unset)
        IMAGIFY_PEXELS_API_KEY: Pexels API key (source skipped if unset)
        IMAGIFY_OPENVERSE_PROXY_URL: Route Openverse through this proxy endpoint
        IMAGIFY_HTTP_TIMEOUT: Per-request HTTP timeout in seconds (default: 15)
        IMAGIFY_CONNECTOR_TIMEOUT: Per-connector budget in a run (default: 10)
        IMAGIFY_DEFAULT_LIMIT: Default top-K (default: 24)
        IMAGIFY_USER_AGENT: User-Agent sent to providers
    """
    config = dict(DEFAULTS)
    config.update(
        {
            "unsplash_access_key": os.environ.get("IMAGIFY_UNSPLASH_ACCESS_KEY") or None,
            "pexels_api_key": os.environ.get("IMAGIFY_PEXELS_API_KEY") or None,
            "openverse_proxy_url": os.environ.get("IMAGIFY_OPENVERSE_PROXY_URL") or None,
            "http_timeout": _env_float("IMAGIFY_HTTP_TIMEOUT", DEFAULTS["http_timeout"]),
            "connector_timeout": _env_float("IMAGIFY_CONNECTOR_TIMEOUT", DEFAULTS["connector_timeout"]),
            "default_limit": _env_int("IMAGIFY_DEFAULT_LIMIT", DEFAULTS["default_limit"]),
            "user_agent": os.environ.get("IMAGIFY_USER_AGENT") or DEFAULTS["user_agent"],
        }
    )
    config.update(overrides)
    return config


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for Imagify.

    Manages creation and lifecycle of all core services:
    - one singleton client per image source
    - ``connectors``: the fixed, ordered connector list
    - ``scorer`` / ``aggregator``: the ranking pipeline
    - ``query_controller``: a fresh controller per caller
    """

    config = providers.Configuration()

    ranking_config = providers.Singleton(RankingConfig)

    openverse_client = providers.Singleton(
        OpenverseClient,
        proxy_url=config.openverse_proxy_url,
        timeout=config.http_timeout,
        user_agent=config.user_agent,
    )

    wikimedia_client = providers.Singleton(
        WikimediaClient,
        timeout=config.http_timeout,
        user_agent=config.user_agent,
    )

    unsplash_client = providers.Singleton(
        UnsplashClient,
        api_key=config.unsplash_access_key,
        timeout=config.http_timeout,
        user_agent=config.user_agent,
    )

    pexels_client = providers.Singleton(
        PexelsClient,
        api_key=config.pexels_api_key,
        timeout=config.http_timeout,
        user_agent=config.user_agent,
    )

    connectors = providers.List(
        openverse_client,
        wikimedia_client,
        unsplash_client,
        pexels_client,
    )

    scorer = providers.Singleton(CandidateScorer, config=ranking_config)

    aggregator = providers.Singleton(
        Aggregator,
        connectors=connectors,
        scorer=scorer,
        connector_timeout=config.connector_timeout,
    )

    query_controller = providers.Factory(
        QueryController,
        aggregator=aggregator,
        limit=config.default_limit,
    )


def create_container(**overrides: Any) -> ApplicationContainer:
    """Container configured from the environment plus explicit overrides."""
    container = ApplicationContainer()
    container.config.from_dict(load_config(**overrides))
    logger.debug("Application container configured")
    return container


__all__ = ["ApplicationContainer", "create_container", "load_config"]
