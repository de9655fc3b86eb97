"""
Global status state.

Fetches the upstream ``/api/status`` payload for the feature flags the route
gate needs, cached for a few seconds so every route resolution does not hit
the upstream.
"""

import time
from collections.abc import Callable

from pydantic import ValidationError
from structlog import get_logger

from webconsole.config import settings
from webconsole.exceptions import UpstreamError
from webconsole.models.api import StatusEnvelope
from webconsole.services.api_client import ConsoleApiClient

logger = get_logger(__name__)

STATUS_ENDPOINT = "/api/status"


class StatusStateService:
    """Cached reader of the upstream status flags."""

    def __init__(
        self,
        client: ConsoleApiClient,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.status_cache_ttl_seconds
        )
        self._monotonic = clock
        self._cached_at: float | None = None
        self._header_nav_modules: str | None = None

    async def get_header_nav_modules(self) -> str | None:
        """
        The raw HeaderNavModules JSON blob, or None when unavailable.

        Upstream failures yield None (the gate treats that as permissive) and
        are not cached, so the next resolution tries again.
        """
        now = self._monotonic()
        if self._cached_at is not None and now - self._cached_at < self.ttl_seconds:
            logger.debug("status_cache_hit", age_seconds=now - self._cached_at)
            return self._header_nav_modules

        try:
            payload = await self.client.get_json(STATUS_ENDPOINT)
            envelope = StatusEnvelope.model_validate(payload)
        except (UpstreamError, ValidationError) as e:
            logger.warning("status_fetch_failed", error=str(e))
            return None

        blob = envelope.data.header_nav_modules if envelope.success and envelope.data else None
        self._header_nav_modules = blob
        self._cached_at = now
        return blob

    def invalidate(self) -> None:
        self._cached_at = None
