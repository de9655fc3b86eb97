"""
Tests for ConsoleApiClient.
"""

import httpx
import pytest

from conftest import UpstreamStub, make_api_client
from webconsole.exceptions import (
    UpstreamError,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTransportError,
)
from webconsole.services.api_client import ConsoleApiClient


class RecordingHandler:
    def __init__(self) -> None:
        self.errors: list[UpstreamError] = []

    def __call__(self, error: UpstreamError) -> None:
        self.errors.append(error)


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def client(upstream: UpstreamStub, handler: RecordingHandler) -> ConsoleApiClient:
    return make_api_client(upstream, error_handler=handler)


class TestGetJson:
    """Tests for ConsoleApiClient.get_json."""

    @pytest.mark.asyncio
    async def test_returns_object(self, upstream, client):
        upstream.set("/api/thing", {"success": True, "data": [1]})

        assert await client.get_json("/api/thing") == {"success": True, "data": [1]}

    @pytest.mark.asyncio
    async def test_sends_params_and_headers(self, upstream, client):
        upstream.set("/api/thing", {"ok": 1})

        await client.get_json("/api/thing", params={"p": 2}, headers={"X-Test": "yes"})

        request = upstream.requests[0]
        assert request.url.params["p"] == "2"
        assert request.headers["X-Test"] == "yes"

    @pytest.mark.asyncio
    async def test_http_error_keeps_body(self, upstream, client, handler):
        upstream.set("/api/thing", httpx.Response(403, json={"message": "denied"}))

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await client.get_json("/api/thing")

        assert exc_info.value.status_code == 403
        assert exc_info.value.body == {"message": "denied"}
        assert exc_info.value.path == "/api/thing"
        assert handler.errors == [exc_info.value]

    @pytest.mark.asyncio
    async def test_http_error_with_text_body(self, upstream, client):
        upstream.set("/api/thing", httpx.Response(500, text="Internal Server Error"))

        with pytest.raises(UpstreamHTTPError) as exc_info:
            await client.get_json("/api/thing")

        assert exc_info.value.body is None

    @pytest.mark.asyncio
    async def test_connect_error(self, upstream, client):
        upstream.set("/api/thing", httpx.ConnectError("refused"))

        with pytest.raises(UpstreamTransportError, match="refused"):
            await client.get_json("/api/thing")

    @pytest.mark.asyncio
    async def test_timeout(self, upstream, client):
        upstream.set("/api/thing", httpx.ReadTimeout("too slow"))

        with pytest.raises(UpstreamTransportError, match="timed out"):
            await client.get_json("/api/thing")

    @pytest.mark.asyncio
    async def test_invalid_json(self, upstream, client):
        upstream.set("/api/thing", httpx.Response(200, text="not json"))

        with pytest.raises(UpstreamParseError):
            await client.get_json("/api/thing")

    @pytest.mark.asyncio
    async def test_non_object_json(self, upstream, client):
        upstream.set("/api/thing", httpx.Response(200, json=["a"]))

        with pytest.raises(UpstreamParseError, match="list"):
            await client.get_json("/api/thing")


class TestErrorHandler:
    """The ambient error handler runs unless the caller opts out."""

    @pytest.mark.asyncio
    async def test_handler_called_by_default(self, upstream, client, handler):
        upstream.set("/api/thing", httpx.ConnectError("refused"))

        with pytest.raises(UpstreamTransportError):
            await client.get_json("/api/thing")

        assert len(handler.errors) == 1

    @pytest.mark.asyncio
    async def test_skip_error_handler(self, upstream, client, handler):
        upstream.set("/api/thing", httpx.Response(500))

        with pytest.raises(UpstreamHTTPError):
            await client.get_json("/api/thing", skip_error_handler=True)

        assert handler.errors == []

    @pytest.mark.asyncio
    async def test_handler_not_called_on_success(self, upstream, client, handler):
        upstream.set("/api/thing", {"ok": True})

        await client.get_json("/api/thing")

        assert handler.errors == []

    @pytest.mark.asyncio
    async def test_default_handler_logs_without_raising(self, upstream):
        upstream.set("/api/thing", httpx.Response(503))
        client = make_api_client(upstream)

        with pytest.raises(UpstreamHTTPError):
            await client.get_json("/api/thing")

    @pytest.mark.asyncio
    async def test_usage_lookup_opts_out(self, upstream, handler):
        from webconsole.services.usage_lookup import TokenUsageService

        upstream.set("/api/usage/token", httpx.Response(500))
        upstream.set("/api/log/token", httpx.Response(500))
        service = TokenUsageService(make_api_client(upstream, error_handler=handler))

        await service.submit_query("abc123")

        assert handler.errors == []


class TestClose:
    @pytest.mark.asyncio
    async def test_close_injected_client(self, upstream):
        client = make_api_client(upstream)
        await client.close()
        assert client.http_client.is_closed

    @pytest.mark.asyncio
    async def test_lazy_client_created_with_base_url(self):
        client = ConsoleApiClient(base_url="http://upstream.test/", timeout=3.0)
        assert client.base_url == "http://upstream.test"
        assert client.http_client.base_url.host == "upstream.test"
        assert client.http_client.timeout.read == 3.0
        await client.close()
