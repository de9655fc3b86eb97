"""
FastAPI Dependencies - shared clients, route gate and caller session.

Session mechanics live outside the console: an upstream auth layer
forwards the signed-in user as X-User-Id / X-User-Role headers.
"""

from fastapi import Header, Request
from structlog import get_logger

from webconsole.models.domain import SessionInfo
from webconsole.services.api_client import ConsoleApiClient
from webconsole.services.route_gate import PageLoader, RouteGate
from webconsole.services.status_state import StatusStateService

logger = get_logger(__name__)

_route_gate = RouteGate()


def get_api_client(request: Request) -> ConsoleApiClient:
    """Upstream client created in the application lifespan."""
    return request.app.state.api_client  # type: ignore[no-any-return]


def get_status_service(request: Request) -> StatusStateService:
    return request.app.state.status_service  # type: ignore[no-any-return]


def get_route_gate() -> RouteGate:
    return _route_gate


def get_page_loader(request: Request) -> PageLoader:
    """Page bundle loader created in the application lifespan."""
    return request.app.state.page_loader  # type: ignore[no-any-return]


def _parse_int_header(name: str, value: str | None) -> int | None:
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("session_header_invalid", header=name, value=value[:32])
        return None


async def get_session(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> SessionInfo:
    """
    Build the caller's session from forwarded headers.

    Missing or malformed headers yield an anonymous session, never an error:
    the gate then redirects to login where needed.
    """
    user_id = _parse_int_header("X-User-Id", x_user_id)
    if user_id is None:
        return SessionInfo()
    role = _parse_int_header("X-User-Role", x_user_role) or 0
    return SessionInfo(user_id=user_id, role=role)
