"""
Base API Client - Common HTTP request pattern with retry, rate limiting, and circuit breaker.

Every image source connector builds on this class:
- Automatic retry on 429 (rate limit) with Retry-After support
- Rate limiting (configurable interval between requests)
- Circuit breaker for fault tolerance
- Failures raised as typed APIError subclasses so the aggregator can
  tell an empty provider apart from a broken one
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx
from typing_extensions import Self

from imagify.domain.entities import Candidate, ImageSource
from imagify.shared.async_utils import CircuitBreaker
from imagify.shared.exceptions import (
    APIError,
    ErrorContext,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    get_retry_delay,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Imagify/0.1 (+https://github.com/imagify/imagify)"


class BaseAPIClient:
    """
    Base class for external API clients.

    Provides common infrastructure:
    - httpx.AsyncClient management
    - Rate limiting with configurable interval
    - Retry on 429, 5xx and transport errors with exponential backoff
    - Circuit breaker for fault tolerance
    - Consistent error mapping

    Subclasses should set `_service_name` and can override:
    - `_execute_request()`: Add service-specific headers/params
    - `_parse_response()`: Custom response processing
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 1
    _RETRY_BASE_DELAY: float = 0.5

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 15.0,
        min_interval: float = 0.0,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            circuit_breaker: Optional circuit breaker for fault tolerance.
                             If None, a default one is created (threshold=5, recovery=60s).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_interval = min_interval
        self._last_request_time = 0.0
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            ),
        )
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60.0)

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_interval:
            await asyncio.sleep(self._min_interval - elapsed)
        self._last_request_time = time.time()

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    def _error_context(self, url: str, status_code: int | None = None) -> ErrorContext:
        return ErrorContext(source=self._service_name, operation=url, status_code=status_code)

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Make an HTTP GET with retry on 429 / retryable errors and circuit breaker protection.

        Args:
            url: Full URL or path (appended to base_url)
            params: Query parameters (URL-encoded by httpx)
            headers: Additional headers for this request

        Returns:
            Parsed JSON payload

        Raises:
            RateLimitError: 429 after retries, or circuit breaker open
            ServiceUnavailableError: 5xx response after retries
            APIError: any other non-2xx response
            NetworkError: connection failure or timeout after retries
            ParseError: body is not valid JSON
        """
        full_url = self._build_url(url)

        for attempt in range(self._MAX_RETRIES + 1):
            await self._rate_limit()
            try:
                async with self._circuit_breaker:
                    response = await self._execute_request(full_url, params=params, headers=headers)

                    if response.status_code == 429:
                        retry_after = self._get_retry_after(response, attempt, self._RETRY_BASE_DELAY)
                        if attempt < self._MAX_RETRIES:
                            logger.warning(
                                f"{self._service_name}: Rate limited (429), "
                                f"retry {attempt + 1}/{self._MAX_RETRIES} in {retry_after:.1f}s"
                            )
                            await asyncio.sleep(retry_after)
                            continue
                        raise RateLimitError(
                            f"{self._service_name}: rate limit exceeded",
                            retry_after=retry_after,
                            context=self._error_context(full_url, 429),
                        )

                    response.raise_for_status()
                    return self._parse_response(response)

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.warning(f"{self._service_name} HTTP error {status}: {e.response.reason_phrase}")
                cause: Exception = e
                if status >= 500:
                    error: APIError = ServiceUnavailableError(
                        f"HTTP {status}",
                        service=self._service_name,
                        context=self._error_context(full_url, status),
                    )
                else:
                    error = APIError(
                        f"{self._service_name}: HTTP {status} {e.response.reason_phrase}",
                        context=self._error_context(full_url, status),
                        retryable=False,
                    )
            except httpx.RequestError as e:
                logger.warning(f"{self._service_name} request error (attempt {attempt + 1}): {e!r}")
                cause = e
                error = NetworkError(
                    f"{self._service_name}: request failed: {e!r}",
                    context=self._error_context(full_url),
                )

            if attempt < self._MAX_RETRIES and is_retryable_error(error):
                await asyncio.sleep(get_retry_delay(error, attempt, self._RETRY_BASE_DELAY))
                continue
            raise error from cause

        raise NetworkError(f"{self._service_name}: retries exhausted", context=self._error_context(full_url))

    async def _execute_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        return await self._client.get(url, params=params, headers=headers or {})

    def _parse_response(self, response: httpx.Response) -> Any:
        """Parse response body. Override for custom extraction logic."""
        try:
            return response.json()
        except ValueError as e:
            raise ParseError("response body is not valid JSON", source=self._service_name) from e

    @staticmethod
    def _get_retry_after(response: httpx.Response, attempt: int, base_delay: float = 0.5) -> float:
        """Extract Retry-After from response headers, with exponential backoff fallback."""
        fallback = base_delay * (2**attempt)
        try:
            return float(response.headers.get("Retry-After", fallback))
        except (ValueError, TypeError):
            return fallback

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


class ImageSourceClient(BaseAPIClient, ABC):
    """
    Connector contract: ``fetch(query_text) -> list[Candidate]``.

    Subclasses set `source`, implement `fetch()`, and map provider records
    into Candidate. Records with neither an image nor a thumbnail URL are
    dropped before they leave the connector.
    """

    source: ImageSource
    requires_api_key: bool = False

    def __init__(self, *, api_key: str | None = None, **kwargs: Any) -> None:
        self._api_key = (api_key or "").strip() or None
        super().__init__(**kwargs)

    def is_configured(self) -> bool:
        """Keyed sources without a key are skipped (empty result, not an error)."""
        return not self.requires_api_key or self._api_key is not None

    @abstractmethod
    async def fetch(self, query_text: str) -> list[Candidate]:
        """Search the provider and return mapped candidates."""

    def _collect(self, records: Any, mapper: Any) -> list[Candidate]:
        """Map provider records, skipping malformed ones and those without image URLs."""
        if not isinstance(records, list):
            raise ParseError(
                f"expected a list of results, got {type(records).__name__}",
                source=self._service_name,
            )
        now = datetime.now(timezone.utc)
        candidates: list[Candidate] = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                candidate = mapper(record, now)
            except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"{self._service_name}: skipping malformed record: {e}")
                continue
            if candidate is None or not (candidate.image_url or candidate.thumbnail_url):
                continue
            candidates.append(candidate)
        logger.debug(f"{self._service_name}: mapped {len(candidates)}/{len(records)} records")
        return candidates


# =============================================================================
# Mapping helpers shared by connectors
# =============================================================================


def positive_int(value: Any) -> int | None:
    """Coerce a provider dimension to a positive int, else None."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def clean_text(value: Any) -> str | None:
    """Strip a provider string; empty or non-string → None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def first_text(*values: Any) -> str | None:
    """First non-empty string among the arguments."""
    for value in values:
        text = clean_text(value)
        if text:
            return text
    return None
