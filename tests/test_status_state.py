"""
Tests for StatusStateService.
"""

import json

import httpx
import pytest

from conftest import STATUS_PATH
from webconsole.services.status_state import StatusStateService

BLOB = json.dumps({"pricing": {"requireAuth": True}})


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def status_service(api_client, clock) -> StatusStateService:
    return StatusStateService(api_client, ttl_seconds=10, clock=clock)


class TestGetHeaderNavModules:
    """Tests for StatusStateService.get_header_nav_modules."""

    @pytest.mark.asyncio
    async def test_returns_blob(self, upstream, status_service):
        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": BLOB}})

        assert await status_service.get_header_nav_modules() == BLOB

    @pytest.mark.asyncio
    async def test_cached_within_ttl(self, upstream, status_service, clock):
        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": BLOB}})

        await status_service.get_header_nav_modules()
        clock.now += 5
        await status_service.get_header_nav_modules()

        assert len(upstream.calls(STATUS_PATH)) == 1

    @pytest.mark.asyncio
    async def test_refetched_after_ttl(self, upstream, status_service, clock):
        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": BLOB}})

        await status_service.get_header_nav_modules()
        clock.now += 11
        await status_service.get_header_nav_modules()

        assert len(upstream.calls(STATUS_PATH)) == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, upstream, status_service):
        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": BLOB}})

        await status_service.get_header_nav_modules()
        status_service.invalidate()
        await status_service.get_header_nav_modules()

        assert len(upstream.calls(STATUS_PATH)) == 2

    @pytest.mark.asyncio
    async def test_missing_flag(self, upstream, status_service):
        upstream.set(STATUS_PATH, {"success": True, "data": {"version": "v1"}})

        assert await status_service.get_header_nav_modules() is None

    @pytest.mark.asyncio
    async def test_non_string_flag_ignored(self, upstream, status_service):
        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": {"pricing": 1}}})

        assert await status_service.get_header_nav_modules() is None

    @pytest.mark.asyncio
    async def test_upstream_failure_not_cached(self, upstream, status_service):
        upstream.set(STATUS_PATH, httpx.Response(500))
        assert await status_service.get_header_nav_modules() is None

        upstream.set(STATUS_PATH, {"success": True, "data": {"HeaderNavModules": BLOB}})
        assert await status_service.get_header_nav_modules() == BLOB
