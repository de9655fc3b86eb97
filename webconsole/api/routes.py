"""
API Routes - Token usage lookup endpoints.

Public endpoints (no session): the token itself is the lookup key. Each call
works on a fresh view; the client sends back whatever state it displays.
"""

from fastapi import APIRouter, Depends

from webconsole.api.dependencies import get_api_client
from webconsole.config import settings
from webconsole.models.api import (
    LogRowResponse,
    LogsPageRequest,
    StatRowResponse,
    TokenQueryRequest,
    TokenUsageResponse,
)
from webconsole.models.domain import LogPage, TokenQuery, TokenUsageView
from webconsole.services.api_client import ConsoleApiClient
from webconsole.services.usage_lookup import TokenUsageService, normalize_pagination
from webconsole.services.usage_stats import build_stats, log_count_label, render_log_row

router = APIRouter(prefix="/v1/token-usage", tags=["token-usage"])


def build_usage_response(view: TokenUsageView) -> TokenUsageResponse:
    """Flatten the view into the response model."""
    stats = build_stats(view.usage) if view.usage is not None else []
    rows = [render_log_row(row) for row in view.logs.items]
    return TokenUsageResponse(
        queried=view.query.queried,
        queried_token=view.query.queried_token,
        usage=view.usage,
        stats=[StatRowResponse(label=s.label, value=s.value) for s in stats],
        logs=[
            LogRowResponse(
                key=r.key, time=r.time, type=r.type, model=r.model, quota=r.quota, ip=r.ip
            )
            for r in rows
        ],
        page=view.logs.page,
        page_size=view.logs.page_size,
        total=view.logs.total,
        page_size_options=settings.log_page_size_options,
        log_count_label=log_count_label(view.logs.total),
        usage_error=view.usage_error,
        logs_error=view.logs_error,
        error=view.combined_error(settings.error_separator),
    )


@router.post("/query", response_model=TokenUsageResponse)
async def query_token_usage(
    request: TokenQueryRequest,
    client: ConsoleApiClient = Depends(get_api_client),
) -> TokenUsageResponse:
    """
    Look up a token's quota summary and the first page of its usage log.

    Both lookups run concurrently. A blank token returns the reset view with
    a "token required" error and makes no upstream call.
    """
    service = TokenUsageService(client)
    await service.submit_query(request.token)
    return build_usage_response(service.view)


@router.post("/logs", response_model=TokenUsageResponse)
async def page_token_logs(
    request: LogsPageRequest,
    client: ConsoleApiClient = Depends(get_api_client),
) -> TokenUsageResponse:
    """
    Apply a pagination event to the usage log of an already queried token.

    The view is seeded from ``current_page`` / ``current_page_size``, so a
    failed fetch reports the page the client still shows. A page size that
    differs from a sent ``current_page_size`` is a size change and restarts
    at page 1. Without a token only the pagination state moves.
    """
    current_page, current_size = normalize_pagination(
        request.current_page, request.current_page_size
    )
    token = request.token.strip()

    view = TokenUsageView(logs=LogPage(page=current_page, page_size=current_size))
    if token:
        view.query = TokenQuery(raw_input=token, queried=True, queried_token=token)

    service = TokenUsageService(client, view)
    _, requested_size = normalize_pagination(1, request.page_size, current_size)
    size_changed = request.current_page_size is not None and requested_size != current_size
    if size_changed:
        await service.change_page_size(request.page_size)
    else:
        await service.change_page(request.page, request.page_size)

    return build_usage_response(service.view)
