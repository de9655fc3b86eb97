"""
Upstream API client.

Thin wrapper over httpx.AsyncClient that turns every failure into a typed
UpstreamError. Failures are also reported to an ambient error handler (the
console-wide "toast" equivalent) unless the caller opts out with
``skip_error_handler=True`` and displays the error itself.
"""

from collections.abc import Callable, Mapping
from typing import Any

import httpx
from structlog import get_logger

from webconsole.exceptions import (
    UpstreamError,
    UpstreamHTTPError,
    UpstreamParseError,
    UpstreamTransportError,
)
from webconsole.observability.metrics import metrics, track_upstream_request
from webconsole.observability.tracing import trace_operation

logger = get_logger(__name__)

ErrorHandler = Callable[[UpstreamError], None]


def log_upstream_error(error: UpstreamError) -> None:
    """Default ambient error handler: log and count."""
    logger.warning(
        "upstream_request_failed",
        path=error.path,
        error_type=type(error).__name__,
        error=error.message,
    )
    metrics.record_error(type(error).__name__, "upstream_request")


class ConsoleApiClient:
    """Async JSON client for the upstream API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        error_handler: ErrorHandler | None = log_upstream_error,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.error_handler = error_handler
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._http_client

    async def get_json(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        skip_error_handler: bool = False,
    ) -> dict[str, Any]:
        """
        GET ``path`` and return the decoded JSON object.

        Raises:
            UpstreamHTTPError: non-2xx status (parsed body attached when JSON)
            UpstreamTransportError: connection failure or timeout
            UpstreamParseError: body is not a JSON object
        """
        try:
            return await self._get_json(path, params, headers)
        except UpstreamError as e:
            if not skip_error_handler and self.error_handler is not None:
                self.error_handler(e)
            raise

    async def _get_json(
        self,
        path: str,
        params: Mapping[str, Any] | None,
        headers: Mapping[str, str] | None,
    ) -> dict[str, Any]:
        with trace_operation("upstream_get", endpoint=path) as span, track_upstream_request(
            path
        ) as tracker:
            try:
                response = await self.http_client.get(
                    path, params=dict(params) if params else None, headers=headers
                )
            except httpx.TimeoutException as e:
                tracker.set_outcome("timeout")
                raise UpstreamTransportError(f"Request timed out: {e}", path) from e
            except httpx.HTTPError as e:
                tracker.set_outcome("transport_error")
                raise UpstreamTransportError(str(e) or type(e).__name__, path) from e

            span.set_attribute("http.status_code", response.status_code)

            if response.is_error:
                tracker.set_outcome("http_error")
                raise UpstreamHTTPError(path, response.status_code, _safe_json(response))

            try:
                payload = response.json()
            except ValueError as e:
                tracker.set_outcome("parse_error")
                raise UpstreamParseError(f"Invalid JSON body: {e}", path) from e

            if not isinstance(payload, dict):
                tracker.set_outcome("parse_error")
                raise UpstreamParseError(
                    f"Expected a JSON object, got {type(payload).__name__}", path
                )

            return payload

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
