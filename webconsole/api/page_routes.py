"""
Route resolution endpoint for the console front end.
"""

from fastapi import APIRouter, Depends, Query
from structlog import get_logger

from webconsole.api.dependencies import (
    get_page_loader,
    get_route_gate,
    get_session,
    get_status_service,
)
from webconsole.exceptions import PageLoadError
from webconsole.models.api import RouteDecisionResponse
from webconsole.models.domain import SessionInfo
from webconsole.services.route_gate import PageLoader, RouteDecision, RouteGate
from webconsole.services.status_state import StatusStateService

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/routes", tags=["routes"])


def build_decision_response(
    decision: RouteDecision, bundle_loaded: bool = False
) -> RouteDecisionResponse:
    route = decision.route
    return RouteDecisionResponse(
        path=decision.path,
        decision=decision.kind,
        policy=decision.policy.value if decision.policy else None,
        bundle=route.bundle if route else None,
        lazy=route.lazy if route else False,
        bundle_loaded=bundle_loaded,
        params=decision.params,
        props=dict(route.props) if route else {},
        redirect_to=decision.redirect_to,
        from_path=decision.from_path,
    )


@router.get("/resolve", response_model=RouteDecisionResponse)
async def resolve_route(
    path: str = Query(..., min_length=1, max_length=2048),
    session: SessionInfo = Depends(get_session),
    gate: RouteGate = Depends(get_route_gate),
    status_service: StatusStateService = Depends(get_status_service),
    loader: PageLoader = Depends(get_page_loader),
) -> RouteDecisionResponse:
    """
    Resolve a console path for the calling session.

    Status flags are only fetched when the matched route's policy depends
    on them. The page bundle of a render (or not-found) decision is loaded
    on first use; a bundle that cannot be imported is reported as not
    loaded rather than failing the resolution.
    """
    header_nav_modules = None
    matched = gate.match(path)
    if matched is not None and matched.route.policy_resolver is not None:
        header_nav_modules = await status_service.get_header_nav_modules()

    decision = gate.resolve(path, session, header_nav_modules)

    try:
        bundle_loaded = loader.load_for(decision) is not None
    except PageLoadError as e:
        logger.warning("page_bundle_unavailable", bundle=e.bundle, reason=e.reason)
        bundle_loaded = False

    return build_decision_response(decision, bundle_loaded)
