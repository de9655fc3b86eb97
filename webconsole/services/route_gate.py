"""
Console Route Gate.

Static route table for the management console. Each route names a page
bundle and an access policy; ``RouteGate.resolve`` turns a path plus the
caller's session into a render / redirect / not-found decision.

The pricing page is the one conditional route: its policy comes from the
``HeaderNavModules`` feature-flag blob and defaults to public whenever the
blob is missing or unreadable.
"""

import importlib
import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from structlog import get_logger

from webconsole.config import settings
from webconsole.exceptions import PageLoadError
from webconsole.models.api import RouteDecisionKind
from webconsole.models.domain import SessionInfo
from webconsole.observability.metrics import metrics

logger = get_logger(__name__)

LOGIN_PATH = "/login"
FORBIDDEN_PATH = "/forbidden"
CONSOLE_HOME_PATH = "/console"
NOT_FOUND_BUNDLE = f"{settings.page_bundle_package}.not_found:NotFound"


class AccessPolicy(str, Enum):
    """Who may render a route."""

    PUBLIC = "public"
    GUEST = "guest"  # public, but signed-in users are sent to the console
    PRIVATE = "private"
    ADMIN = "admin"


class PricingAccess(str, Enum):
    """Pricing page access derived from the header nav feature flags."""

    PUBLIC = "public"
    REQUIRE_AUTH = "require_auth"


def parse_pricing_access(header_nav_modules: str | None) -> PricingAccess:
    """
    Decide whether the pricing page needs a login.

    Only ``{"pricing": {"requireAuth": true}}`` requires auth. Missing or
    malformed JSON, a non-object blob and the legacy boolean shape
    (``{"pricing": true}``) are all public. Never raises.
    """
    if not header_nav_modules:
        return PricingAccess.PUBLIC

    try:
        modules = json.loads(header_nav_modules)
    except (TypeError, ValueError) as e:
        logger.warning("header_nav_modules_parse_failed", error=str(e))
        return PricingAccess.PUBLIC

    if not isinstance(modules, dict):
        return PricingAccess.PUBLIC

    pricing = modules.get("pricing")
    if isinstance(pricing, dict) and pricing.get("requireAuth") is True:
        return PricingAccess.REQUIRE_AUTH
    return PricingAccess.PUBLIC


def pricing_policy(header_nav_modules: str | None) -> AccessPolicy:
    if parse_pricing_access(header_nav_modules) is PricingAccess.REQUIRE_AUTH:
        return AccessPolicy.PRIVATE
    return AccessPolicy.PUBLIC


PolicyResolver = Callable[[str | None], AccessPolicy]


@dataclass(frozen=True)
class RouteSpec:
    """One entry of the route table."""

    path: str
    bundle: str
    policy: AccessPolicy = AccessPolicy.PUBLIC
    lazy: bool = False
    props: dict[str, str] = field(default_factory=dict)
    policy_resolver: PolicyResolver | None = None

    def effective_policy(self, header_nav_modules: str | None = None) -> AccessPolicy:
        if self.policy_resolver is not None:
            return self.policy_resolver(header_nav_modules)
        return self.policy


def compile_path(path: str) -> re.Pattern[str]:
    """
    Compile a route path into a regex.

    ``:name`` matches one segment, ``:name?`` an optional one.
    """
    if path == "/":
        return re.compile(r"^/$")

    pattern = ""
    for segment in path.strip("/").split("/"):
        if segment.startswith(":") and segment.endswith("?"):
            pattern += rf"(?:/(?P<{segment[1:-1]}>[^/]+))?"
        elif segment.startswith(":"):
            pattern += rf"/(?P<{segment[1:]}>[^/]+)"
        else:
            pattern += "/" + re.escape(segment)
    return re.compile(rf"^{pattern}/?$")


@dataclass(frozen=True)
class RouteMatch:
    route: RouteSpec
    params: dict[str, str]


@dataclass(frozen=True)
class RouteDecision:
    """Outcome of resolving one path for one session."""

    path: str
    kind: RouteDecisionKind
    route: RouteSpec | None = None
    policy: AccessPolicy | None = None
    params: dict[str, str] = field(default_factory=dict)
    redirect_to: str | None = None
    from_path: str | None = None


def build_console_routes(package: str) -> tuple[RouteSpec, ...]:
    """The console route table with bundles resolved under ``package``."""

    def _route(
        path: str, bundle: str, policy: AccessPolicy = AccessPolicy.PUBLIC, **kw: Any
    ) -> RouteSpec:
        return RouteSpec(path=path, bundle=f"{package}.{bundle}", policy=policy, **kw)

    P, G = AccessPolicy.PUBLIC, AccessPolicy.GUEST
    PR, A = AccessPolicy.PRIVATE, AccessPolicy.ADMIN
    oauth = "oauth:OAuth2Callback"

    return (
        _route("/", "home:Home", P, lazy=True),
        _route("/setup", "setup:Setup", P, lazy=True),
        _route("/forbidden", "forbidden:Forbidden", P),
        _route("/login", "login:LoginForm", G, lazy=True),
        _route("/register", "register:RegisterForm", G, lazy=True),
        _route("/reset", "password_reset:PasswordResetForm", P, lazy=True),
        _route("/user/reset", "password_reset:PasswordResetConfirm", P, lazy=True),
        _route("/oauth/github", oauth, P, lazy=True, props={"provider": "github"}),
        _route("/oauth/oidc", oauth, P, lazy=True, props={"provider": "oidc"}),
        _route("/oauth/linuxdo", oauth, P, lazy=True, props={"provider": "linuxdo"}),
        _route("/about", "about:About", P, lazy=True),
        _route("/token-query", "token_usage:TokenUsage", P, lazy=True),
        _route("/pricing", "pricing:Pricing", P, lazy=True, policy_resolver=pricing_policy),
        _route("/console", "dashboard:Dashboard", PR, lazy=True),
        _route("/console/token", "token:Token", PR),
        _route("/console/playground", "playground:Playground", PR),
        _route("/console/personal", "personal:PersonalSetting", PR, lazy=True),
        _route("/console/topup", "topup:TopUp", PR, lazy=True),
        _route("/console/log", "log:Log", PR),
        _route("/console/midjourney", "midjourney:Midjourney", PR, lazy=True),
        _route("/console/task", "task:Task", PR, lazy=True),
        _route("/console/chat/:id?", "chat:Chat", PR, lazy=True),
        _route("/chat2link", "chat2link:Chat2Link", PR, lazy=True),
        _route("/console/models", "models:ModelPage", A),
        _route("/console/channel", "channel:Channel", A),
        _route("/console/redemption", "redemption:Redemption", A),
        _route("/console/user", "user:User", A),
        _route("/console/setting", "setting:Setting", A, lazy=True),
    )


CONSOLE_ROUTES: tuple[RouteSpec, ...] = build_console_routes(settings.page_bundle_package)


class RouteGate:
    """
    Resolves console paths against the route table.

    Usage:
        gate = RouteGate()
        decision = gate.resolve("/console/user", SessionInfo(user_id=1, role=1))
        # decision.kind == RouteDecisionKind.REDIRECT, decision.redirect_to == "/forbidden"
    """

    def __init__(
        self,
        routes: tuple[RouteSpec, ...] = CONSOLE_ROUTES,
        admin_role_threshold: int | None = None,
    ) -> None:
        self.routes = routes
        self.admin_role_threshold = (
            admin_role_threshold
            if admin_role_threshold is not None
            else settings.admin_role_threshold
        )
        self._compiled = [(compile_path(r.path), r) for r in routes]

    def match(self, path: str) -> RouteMatch | None:
        """First route whose pattern matches ``path`` (query string ignored)."""
        path = path.split("?", 1)[0] or "/"
        for pattern, route in self._compiled:
            found = pattern.match(path)
            if found:
                params = {k: v for k, v in found.groupdict().items() if v is not None}
                return RouteMatch(route=route, params=params)
        return None

    def is_admin(self, session: SessionInfo) -> bool:
        return session.authenticated and session.role >= self.admin_role_threshold

    def resolve(
        self,
        path: str,
        session: SessionInfo,
        header_nav_modules: str | None = None,
    ) -> RouteDecision:
        """Decide what to do with ``path`` for ``session``."""
        matched = self.match(path)
        if matched is None:
            metrics.record_route_decision(RouteDecisionKind.NOT_FOUND.value)
            return RouteDecision(path=path, kind=RouteDecisionKind.NOT_FOUND)

        route = matched.route
        policy = route.effective_policy(header_nav_modules)
        redirect_to = self._redirect_for(policy, session)

        if redirect_to is not None:
            logger.info(
                "route_redirect",
                path=path,
                policy=policy.value,
                redirect_to=redirect_to,
                authenticated=session.authenticated,
            )
            metrics.record_route_decision(RouteDecisionKind.REDIRECT.value)
            return RouteDecision(
                path=path,
                kind=RouteDecisionKind.REDIRECT,
                route=route,
                policy=policy,
                params=matched.params,
                redirect_to=redirect_to,
                from_path=path if redirect_to == LOGIN_PATH else None,
            )

        metrics.record_route_decision(RouteDecisionKind.RENDER.value)
        return RouteDecision(
            path=path,
            kind=RouteDecisionKind.RENDER,
            route=route,
            policy=policy,
            params=matched.params,
        )

    def _redirect_for(self, policy: AccessPolicy, session: SessionInfo) -> str | None:
        if policy is AccessPolicy.PRIVATE and not session.authenticated:
            return LOGIN_PATH
        if policy is AccessPolicy.ADMIN and not self.is_admin(session):
            return FORBIDDEN_PATH
        if policy is AccessPolicy.GUEST and session.authenticated:
            return CONSOLE_HOME_PATH
        return None


class PageLoader:
    """
    Imports page bundles (``module:attr``) on demand and memoizes them.

    Eager routes are loaded by ``preload``; lazy ones on their first render.
    """

    def __init__(
        self,
        import_module: Callable[[str], Any] = importlib.import_module,
        not_found_bundle: str = NOT_FOUND_BUNDLE,
    ) -> None:
        self._import_module = import_module
        self.not_found_bundle = not_found_bundle
        self._cache: dict[str, Any] = {}

    def is_loaded(self, bundle: str) -> bool:
        return bundle in self._cache

    def load(self, bundle: str) -> Any:
        if bundle in self._cache:
            return self._cache[bundle]

        module_name, _, attr = bundle.partition(":")
        try:
            module = self._import_module(module_name)
            page = getattr(module, attr) if attr else module
        except (ImportError, AttributeError) as e:
            raise PageLoadError(bundle, str(e)) from e

        self._cache[bundle] = page
        logger.debug("page_bundle_loaded", bundle=bundle)
        return page

    def preload(self, routes: tuple[RouteSpec, ...]) -> None:
        """Load every eager (non-lazy) bundle up front."""
        for route in routes:
            if not route.lazy:
                self.load(route.bundle)

    def load_for(self, decision: RouteDecision) -> Any | None:
        """Bundle for a render decision; the not-found page for unmatched paths."""
        if decision.kind is RouteDecisionKind.RENDER and decision.route is not None:
            return self.load(decision.route.bundle)
        if decision.kind is RouteDecisionKind.NOT_FOUND:
            return self.load(self.not_found_bundle)
        return None
