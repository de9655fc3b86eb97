"""
Main Application - FastAPI application setup.
"""

import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest

from webconsole.api.page_routes import router as page_router
from webconsole.api.routes import router
from webconsole.config import settings
from webconsole.exceptions import PageLoadError
from webconsole.models.api import HealthResponse
from webconsole.observability import (
    get_logger,
    log_context,
    metrics,
    setup_logging,
    setup_tracing,
)
from webconsole.observability.tracing import instrument_fastapi
from webconsole.services.api_client import ConsoleApiClient
from webconsole.services.route_gate import CONSOLE_ROUTES, PageLoader
from webconsole.services.status_state import StatusStateService

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Owns the single upstream HTTP client shared by every request.
    """
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        upstream=settings.upstream_base,
        tracing_enabled=settings.tracing_enabled,
    )

    api_client = ConsoleApiClient(
        base_url=settings.upstream_base,
        timeout=settings.upstream_timeout_seconds,
    )
    app.state.api_client = api_client
    app.state.status_service = StatusStateService(api_client)
    app.state.page_loader = PageLoader()

    if settings.preload_pages:
        try:
            app.state.page_loader.preload(CONSOLE_ROUTES)
            logger.info("page_bundles_preloaded", package=settings.page_bundle_package)
        except PageLoadError as e:
            # Remaining bundles still load on first render
            logger.error("page_bundle_preload_failed", bundle=e.bundle, reason=e.reason)

    yield

    logger.info("application_shutting_down")
    await api_client.close()
    logger.info("upstream_client_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)

setup_tracing()
instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    endpoint = request.url.path
    method = request.method

    logger.info("request_started", method=method, path=endpoint, request_id=request_id)
    metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

    try:
        with log_context(request_id=request_id):
            response = await call_next(request)
        duration = time.time() - start_time
        metrics.record_http_request(endpoint, method, response.status_code, duration)

        logger.info(
            "request_completed",
            method=method,
            path=endpoint,
            status_code=response.status_code,
            duration_seconds=duration,
            request_id=request_id,
        )
        return response
    except Exception as e:
        duration = time.time() - start_time
        metrics.record_http_request(endpoint, method, 500, duration)
        metrics.record_error(type(e).__name__, "http_request")

        logger.error(
            "request_failed",
            method=method,
            path=endpoint,
            error=str(e),
            duration_seconds=duration,
            request_id=request_id,
            exc_info=True,
        )
        raise
    finally:
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


app.include_router(router)  # Token usage lookup
app.include_router(page_router)  # Console route gate


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        service=settings.api_title,
        version=settings.api_version,
        status="running",
    )


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled", status_code=404)
    return PlainTextResponse(generate_latest())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "webconsole.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
