"""
Token Usage Lookup Service.

Orchestrates the self-service token lookup:
- submit_query: validates the token, then fetches the quota summary and the
  first usage log page concurrently and publishes both errors after both settle
- fetch_logs_page / change_page / change_page_size: the log pager, used for
  every later page or size change against the last queried token

Nothing raises past this layer: each channel converts its failure into a
display string, and the two strings stay separate so a partial failure still
shows the half that worked.
"""

import asyncio
from dataclasses import replace
from typing import Any

from pydantic import ValidationError
from structlog import get_logger

from webconsole.config import settings
from webconsole.exceptions import (
    ServerRejectionError,
    TokenRequiredError,
    UpstreamParseError,
    extract_error_message,
)
from webconsole.models.api import LogEnvelope, UsageEnvelope, UsageSummary, parse_total
from webconsole.models.domain import LogPage, LogRow, QueryOutcome, TokenQuery, TokenUsageView
from webconsole.observability.logging import mask_token
from webconsole.observability.metrics import metrics
from webconsole.services.api_client import ConsoleApiClient
from webconsole.services.usage_stats import display_key

logger = get_logger(__name__)

USAGE_ENDPOINT = "/api/usage/token"
LOGS_ENDPOINT = "/api/log/token"

USAGE_FALLBACK_ERROR = "Query failed"
LOGS_FALLBACK_ERROR = "Failed to fetch usage logs"


def _positive_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if number > 0 else None


def normalize_pagination(
    page: Any,
    page_size: Any,
    current_page_size: Any = None,
    default_page_size: int | None = None,
) -> tuple[int, int]:
    """
    Normalize a requested page and size.

    page falls back to 1; page_size falls back to the currently configured
    size, then to the default. Every pager entry point goes through here.
    """
    if default_page_size is None:
        default_page_size = settings.default_log_page_size
    normalized_page = _positive_int(page) or 1
    normalized_size = (
        _positive_int(page_size) or _positive_int(current_page_size) or default_page_size
    )
    return normalized_page, normalized_size


def require_token(raw_input: str | None) -> str:
    """Trim the input; raise TokenRequiredError if nothing is left."""
    token = (raw_input or "").strip()
    if not token:
        raise TokenRequiredError()
    return token


def build_log_page(envelope: LogEnvelope, page: int, page_size: int) -> LogPage:
    """
    Turn a successful log envelope into a LogPage.

    Entries are re-sorted newest first regardless of server order. The total
    comes from the top-level field, then pagination.total, then the number of
    rows on this page.
    """
    entries = sorted(envelope.data, key=lambda e: e.created_at or 0, reverse=True)
    offset = (page - 1) * page_size
    items = tuple(
        LogRow(key=display_key(entry, index, offset), entry=entry)
        for index, entry in enumerate(entries)
    )

    pagination_total = envelope.pagination.total if envelope.pagination else None
    total = parse_total(envelope.total) or parse_total(pagination_total) or len(entries)

    return LogPage(items=items, page=page, page_size=page_size, total=max(int(total), 0))


class TokenUsageService:
    """
    Query orchestrator and log pager over one TokenUsageView.

    Usage:
        service = TokenUsageService(client)
        outcome = await service.submit_query("  sk-abc123  ")
        await service.change_page(2)
        await service.change_page_size(50)   # always back to page 1
    """

    def __init__(
        self,
        client: ConsoleApiClient,
        view: TokenUsageView | None = None,
        default_page_size: int | None = None,
    ) -> None:
        self.client = client
        self.default_page_size = default_page_size or settings.default_log_page_size
        self.view = view or TokenUsageView(logs=LogPage(page_size=self.default_page_size))

    # ========================================================================
    # Query Orchestrator
    # ========================================================================

    async def submit_query(self, raw_input: str | None = None) -> QueryOutcome:
        """
        Look up a token's quota and first log page.

        An empty token resets the view and never touches the network.
        """
        if raw_input is None:
            raw_input = self.view.query.raw_input

        try:
            token = require_token(raw_input)
        except TokenRequiredError as e:
            self._reset(raw_input)
            self.view.usage_error = e.message
            self.view.logs_error = ""
            metrics.record_token_query("empty")
            return self.view.outcome

        page_size = self.view.logs.page_size or self.default_page_size
        self.view.usage_error = ""
        self.view.logs_error = ""
        self.view.query = TokenQuery(raw_input=raw_input, queried=True, queried_token=token)

        logger.info("token_query_submitted", token=mask_token(token), page_size=page_size)

        usage_error, logs_error = await asyncio.gather(
            self.fetch_usage_info(token),
            self.fetch_logs_page(token, 1, page_size),
        )

        self.view.usage_error = usage_error
        self.view.logs_error = logs_error

        outcome = self.view.outcome
        if outcome.ok:
            metrics.record_token_query("ok")
        elif usage_error and logs_error:
            metrics.record_token_query("failed")
        else:
            metrics.record_token_query("partial")
        return outcome

    async def fetch_usage_info(self, token: str) -> str:
        """Fetch the quota summary; returns '' on success or the error text."""
        self.view.usage_loading = True
        try:
            self.view.usage = await self._load_usage(token)
            return ""
        except Exception as e:
            self.view.usage = None
            logger.warning(
                "usage_lookup_failed",
                token=mask_token(token),
                error_type=type(e).__name__,
                error=str(e),
            )
            return extract_error_message(e) or USAGE_FALLBACK_ERROR
        finally:
            self.view.usage_loading = False

    async def _load_usage(self, token: str) -> UsageSummary | None:
        payload = await self.client.get_json(
            USAGE_ENDPOINT,
            headers={"Authorization": f"Bearer {token}"},
            skip_error_handler=True,
        )
        try:
            envelope = UsageEnvelope.model_validate(payload)
        except ValidationError as e:
            raise UpstreamParseError(
                f"Unexpected response shape from {USAGE_ENDPOINT}", USAGE_ENDPOINT
            ) from e

        if not envelope.ok:
            raise ServerRejectionError(envelope.message or "", endpoint=USAGE_ENDPOINT)
        return envelope.data

    # ========================================================================
    # Log Pager
    # ========================================================================

    async def fetch_logs_page(self, token: str, page: Any = None, page_size: Any = None) -> str:
        """
        Fetch one page of usage logs for ``token``.

        On success commits items, total, page and size. On failure clears
        items and total but keeps page and size so a retry asks for the same
        page. Returns '' or the error text.
        """
        page, page_size = normalize_pagination(
            page, page_size, self.view.logs.page_size, self.default_page_size
        )
        self.view.logs_loading = True
        try:
            envelope = await self._load_logs(token, page, page_size)
            self.view.logs = build_log_page(envelope, page, page_size)
            metrics.record_log_page_fetch(True)
            return ""
        except Exception as e:
            self.view.logs = replace(self.view.logs, items=(), total=0)
            metrics.record_log_page_fetch(False)
            logger.warning(
                "usage_logs_fetch_failed",
                token=mask_token(token),
                page=page,
                page_size=page_size,
                error_type=type(e).__name__,
                error=str(e),
            )
            return extract_error_message(e) or LOGS_FALLBACK_ERROR
        finally:
            self.view.logs_loading = False

    async def _load_logs(self, token: str, page: int, page_size: int) -> LogEnvelope:
        payload = await self.client.get_json(
            LOGS_ENDPOINT,
            params={"key": token, "p": page, "size": page_size, "order": "desc"},
            skip_error_handler=True,
        )
        try:
            envelope = LogEnvelope.model_validate(payload)
        except ValidationError as e:
            raise UpstreamParseError(
                f"Unexpected response shape from {LOGS_ENDPOINT}", LOGS_ENDPOINT
            ) from e

        if not envelope.success:
            raise ServerRejectionError(envelope.message or "", endpoint=LOGS_ENDPOINT)
        return envelope

    async def change_page(self, page: Any, page_size: Any = None) -> str:
        """
        Pagination event: go to ``page`` at ``page_size`` (default: current size).

        Before any token has been queried only the local page state moves.
        """
        next_page, next_size = normalize_pagination(
            page, page_size, self.view.logs.page_size, self.default_page_size
        )
        token = self.view.query.queried_token
        if not token:
            self.view.logs = replace(self.view.logs, page=next_page, page_size=next_size)
            return ""

        error = await self.fetch_logs_page(token, next_page, next_size)
        self.view.logs_error = error
        return error

    async def change_page_size(self, page_size: Any) -> str:
        """Pagination event: new page size, always starting over at page 1."""
        return await self.change_page(1, page_size)

    def _reset(self, raw_input: str = "") -> None:
        self.view.query = TokenQuery(raw_input=raw_input)
        self.view.usage = None
        self.view.logs = LogPage(page=1, page_size=self.default_page_size)
