"""Tests for BaseAPIClient request/retry/error mapping and ImageSourceClient helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from imagify.domain.entities import Candidate, ImageSource
from imagify.infrastructure.sources.base_client import (
    BaseAPIClient,
    ImageSourceClient,
    clean_text,
    first_text,
    positive_int,
)
from imagify.shared.async_utils import CircuitBreaker
from imagify.shared.exceptions import (
    APIError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
)

URL = "https://api.example.org/search"


def _response(status_code: int = 200, *, json=None, content: bytes | None = None, headers=None) -> httpx.Response:
    request = httpx.Request("GET", URL)
    if json is not None:
        return httpx.Response(status_code, json=json, headers=headers, request=request)
    return httpx.Response(status_code, content=content or b"", headers=headers, request=request)


@pytest.fixture
def client():
    c = BaseAPIClient(base_url="https://api.example.org", timeout=5.0)
    c._service_name = "Example"
    c._client = AsyncMock()
    return c


@pytest.fixture
def no_sleep():
    with patch("imagify.infrastructure.sources.base_client.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        yield mock_sleep


# ============================================================
# Request / response
# ============================================================


class TestMakeRequest:
    async def test_success_returns_json(self, client):
        client._client.get.return_value = _response(json={"ok": True})

        assert await client._make_request(URL, params={"q": "paris"}) == {"ok": True}

        call = client._client.get.call_args
        assert call[0][0] == URL
        assert call[1]["params"] == {"q": "paris"}

    async def test_relative_url_joined_with_base(self, client):
        client._client.get.return_value = _response(json={})
        await client._make_request("/search")
        assert client._client.get.call_args[0][0] == URL

    async def test_extra_headers_forwarded(self, client):
        client._client.get.return_value = _response(json={})
        await client._make_request(URL, headers={"Authorization": "key"})
        assert client._client.get.call_args[1]["headers"] == {"Authorization": "key"}

    async def test_invalid_json_raises_parse_error(self, client):
        client._client.get.return_value = _response(content=b"<html>oops</html>")
        with pytest.raises(ParseError, match="Example"):
            await client._make_request(URL)


# ============================================================
# Error mapping
# ============================================================


class TestErrorMapping:
    async def test_server_error_retried_then_raised(self, client, no_sleep):
        client._client.get.return_value = _response(503)
        with pytest.raises(ServiceUnavailableError) as exc_info:
            await client._make_request(URL)
        assert exc_info.value.context.status_code == 503
        assert exc_info.value.context.source == "Example"
        assert client._client.get.call_count == client._MAX_RETRIES + 1
        no_sleep.assert_awaited()

    async def test_server_error_then_success(self, client, no_sleep):
        client._client.get.side_effect = [
            _response(502),
            _response(json={"results": []}),
        ]
        assert await client._make_request(URL) == {"results": []}
        assert client._client.get.call_count == 2

    async def test_client_error_not_retryable(self, client, no_sleep):
        client._client.get.return_value = _response(401)
        with pytest.raises(APIError) as exc_info:
            await client._make_request(URL)
        assert not isinstance(exc_info.value, ServiceUnavailableError)
        assert exc_info.value.retryable is False
        assert client._client.get.call_count == 1
        no_sleep.assert_not_awaited()

    async def test_rate_limit_retries_then_raises(self, client, no_sleep):
        client._client.get.return_value = _response(429, headers={"Retry-After": "2"})
        with pytest.raises(RateLimitError) as exc_info:
            await client._make_request(URL)
        assert client._client.get.call_count == client._MAX_RETRIES + 1
        assert exc_info.value.context.retry_after == 2.0
        no_sleep.assert_awaited_with(2.0)

    async def test_rate_limit_then_success(self, client, no_sleep):
        client._client.get.side_effect = [
            _response(429),
            _response(json={"results": []}),
        ]
        assert await client._make_request(URL) == {"results": []}
        assert client._client.get.call_count == 2

    async def test_transport_error_retried_then_network_error(self, client, no_sleep):
        client._client.get.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(NetworkError):
            await client._make_request(URL)
        assert client._client.get.call_count == client._MAX_RETRIES + 1

    async def test_timeout_becomes_network_error(self, client, no_sleep):
        client._client.get.side_effect = httpx.ReadTimeout("timed out")
        with pytest.raises(NetworkError):
            await client._make_request(URL)

    async def test_open_circuit_breaker_rejects(self, client):
        client._circuit_breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0)
        client._MAX_RETRIES = 0
        client._client.get.return_value = _response(500)
        with pytest.raises(ServiceUnavailableError):
            await client._make_request(URL)

        with pytest.raises(RateLimitError, match="Circuit breaker"):
            await client._make_request(URL)
        assert client._client.get.call_count == 1


class TestRetryAfter:
    def test_header_value(self):
        assert BaseAPIClient._get_retry_after(_response(429, headers={"Retry-After": "3"}), 0) == 3.0

    def test_fallback_backoff(self):
        assert BaseAPIClient._get_retry_after(_response(429), 2, base_delay=0.5) == 2.0

    def test_unparseable_header(self):
        response = _response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
        assert BaseAPIClient._get_retry_after(response, 0, base_delay=1.0) == 1.0


class TestLifecycle:
    async def test_async_context_manager_closes(self):
        client = BaseAPIClient()
        client._client = AsyncMock()
        async with client as c:
            assert c is client
        client._client.aclose.assert_awaited_once()


# ============================================================
# ImageSourceClient
# ============================================================


class _KeyedClient(ImageSourceClient):
    _service_name = "Keyed"
    source = ImageSource.PEXELS
    requires_api_key = True

    async def fetch(self, query_text: str) -> list[Candidate]:
        return []


class TestImageSourceClient:
    def test_missing_key_not_configured(self):
        assert _KeyedClient().is_configured() is False
        assert _KeyedClient(api_key="   ").is_configured() is False
        assert _KeyedClient(api_key="abc").is_configured() is True

    def test_collect_rejects_non_list(self):
        with pytest.raises(ParseError):
            _KeyedClient()._collect({"not": "a list"}, MagicMock())

    def test_collect_skips_bad_records(self):
        def mapper(record, fetched_at):
            if record.get("boom"):
                raise KeyError("boom")
            return Candidate(
                id=f"px_{record['id']}",
                source=ImageSource.PEXELS,
                image_url=record.get("url"),
                fetched_at=fetched_at,
            )

        records = [
            {"id": 1, "url": "https://x.org/1.jpg"},
            "garbage",
            {"id": 2, "boom": True},
            {"id": 3, "url": None},
            {"id": 4, "url": "https://x.org/4.jpg"},
        ]
        candidates = _KeyedClient()._collect(records, mapper)
        assert [c.id for c in candidates] == ["px_1", "px_4"]
        assert candidates[0].fetched_at == candidates[1].fetched_at


class TestMappingHelpers:
    @pytest.mark.parametrize(
        "value, expected",
        [(640, 640), ("480", 480), (0, None), (-1, None), (None, None), ("wide", None), (True, None)],
    )
    def test_positive_int(self, value, expected):
        assert positive_int(value) == expected

    def test_clean_text(self):
        assert clean_text("  hi ") == "hi"
        assert clean_text("   ") is None
        assert clean_text(42) is None

    def test_first_text(self):
        assert first_text(None, "", " b ", "c") == "b"
        assert first_text(None, 1) is None
