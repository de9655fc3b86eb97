"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes and fixtures for testing:
- A programmable upstream served through httpx.MockTransport
- Upstream client and token usage service wired to it
- Payload factories for usage summaries and log entries
"""

import os
from collections.abc import Callable
from inspect import isawaitable
from typing import Any

import httpx
import pytest

# Set environment variables BEFORE importing app modules
os.environ.setdefault("UPSTREAM_BASE_URL", "http://upstream.test")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DISPLAY_TIMEZONE", "UTC")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from webconsole.models.domain import SessionInfo
from webconsole.services.api_client import ConsoleApiClient
from webconsole.services.usage_lookup import TokenUsageService

UPSTREAM_URL = "http://upstream.test"
USAGE_PATH = "/api/usage/token"
LOGS_PATH = "/api/log/token"
STATUS_PATH = "/api/status"

Handler = Callable[[httpx.Request], Any]


# ============================================================================
# Fake Upstream
# ============================================================================


class UpstreamStub:
    """
    Fake upstream API.

    Each path maps to a JSON-able dict, an httpx.Response, an exception to
    raise, or a (sync or async) callable returning any of those.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Any] = {}
        self.requests: list[httpx.Request] = []

    def set(self, path: str, result: Any) -> None:
        self.routes[path] = result

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        result = self.routes.get(request.url.path)
        if result is None:
            return httpx.Response(404, json={"success": False, "message": "no such route"})

        if callable(result) and not isinstance(result, httpx.Response):
            result = result(request)
            if isawaitable(result):
                result = await result

        if isinstance(result, Exception):
            raise result
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)


class FakeImporter:
    """Stands in for importlib.import_module with a fixed set of modules."""

    def __init__(self, modules: dict[str, Any]) -> None:
        self.modules = modules
        self.imported: list[str] = []

    def __call__(self, name: str) -> Any:
        self.imported.append(name)
        if name not in self.modules:
            raise ModuleNotFoundError(f"No module named {name!r}")
        return self.modules[name]


def make_api_client(stub: UpstreamStub, **kwargs: Any) -> ConsoleApiClient:
    """ConsoleApiClient whose transport is the stub."""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(stub), base_url=UPSTREAM_URL)
    return ConsoleApiClient(base_url=UPSTREAM_URL, http_client=http_client, **kwargs)


@pytest.fixture
def upstream() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def api_client(upstream: UpstreamStub) -> ConsoleApiClient:
    return make_api_client(upstream)


@pytest.fixture
def usage_service(api_client: ConsoleApiClient) -> TokenUsageService:
    return TokenUsageService(api_client)


# ============================================================================
# Payload Factories
# ============================================================================


def usage_payload(**overrides: Any) -> dict[str, Any]:
    """Successful /api/usage/token body."""
    data = {
        "name": "ci-token",
        "unlimited_quota": False,
        "total_granted": 1_000_000,
        "total_used": 250_000,
        "total_available": 750_000,
        "expires_at": 0,
    }
    data.update(overrides)
    return {"code": 1, "data": data}


def log_entry(entry_id: int, created_at: int, **overrides: Any) -> dict[str, Any]:
    entry = {
        "id": entry_id,
        "created_at": created_at,
        "type": 2,
        "model_name": "gpt-4o-mini",
        "quota": 1500,
        "ip": "203.0.113.7",
    }
    entry.update(overrides)
    return entry


def log_entries(count: int, start_id: int = 1, base_ts: int = 1_700_000_000) -> list[dict]:
    """``count`` entries in ascending time order (server order is not trusted)."""
    return [log_entry(start_id + i, base_ts + i * 60) for i in range(count)]


def logs_payload(entries: list[dict] | None = None, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": entries if entries is not None else []}
    body.update(extra)
    return body


# ============================================================================
# Session Fixtures
# ============================================================================


@pytest.fixture
def anonymous_session() -> SessionInfo:
    return SessionInfo()


@pytest.fixture
def user_session() -> SessionInfo:
    return SessionInfo(user_id=42, role=1)


@pytest.fixture
def admin_session() -> SessionInfo:
    return SessionInfo(user_id=1, role=10)
