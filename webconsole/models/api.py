"""
API Models - Pydantic models for upstream envelopes and console responses.

Upstream payloads are validated here; anything that fails validation is a
parse failure for the caller, never a partially filled object.
"""

import math
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogType(IntEnum):
    """Usage log entry type codes."""

    RECHARGE = 1
    CONSUME = 2
    ADMIN = 3
    SYSTEM = 4
    ERROR = 5


def parse_total(value: Any) -> float:
    """
    Coerce a loosely typed total to a number.

    Numbers pass through; numeric strings are parsed; anything else, NaN and
    infinities included, is 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if value is None:
        return 0
    try:
        parsed = float(str(value).strip() or 0)
    except ValueError:
        return 0
    if not math.isfinite(parsed):
        return 0
    return int(parsed) if parsed.is_integer() else parsed


# ============================================================================
# Upstream Models
# ============================================================================


class UsageSummary(BaseModel):
    """Quota summary for a single token."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str | None = None
    unlimited_quota: bool = False
    total_granted: float = 0
    total_used: float = 0
    total_available: float = 0
    expires_at: int = 0

    @field_validator("total_granted", "total_used", "total_available", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float:
        return parse_total(v)

    @field_validator("expires_at", mode="before")
    @classmethod
    def coerce_expiry(cls, v: Any) -> int:
        return int(parse_total(v))


class LogEntry(BaseModel):
    """A single usage log record as returned by the upstream."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | str | None = None
    created_at: int | None = None
    type: int = 0
    model_name: str | None = None
    quota: float = 0
    ip: str | None = None

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_created_at(cls, v: Any) -> int | None:
        return None if v is None else int(parse_total(v))

    @field_validator("quota", mode="before")
    @classmethod
    def coerce_quota(cls, v: Any) -> float:
        return parse_total(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v: Any) -> int:
        return int(parse_total(v))


class UsageEnvelope(BaseModel):
    """GET /api/usage/token response body."""

    model_config = ConfigDict(extra="ignore")

    code: Any = None
    message: str | None = None
    data: UsageSummary | None = None

    @property
    def ok(self) -> bool:
        return bool(self.code)


class Pagination(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total: Any = None


class LogEnvelope(BaseModel):
    """GET /api/log/token response body."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    message: str | None = None
    data: list[LogEntry] = Field(default_factory=list)
    total: Any = None
    pagination: Pagination | None = None

    @field_validator("success", mode="before")
    @classmethod
    def coerce_success(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data(cls, v: Any) -> list:
        """A missing or non-list payload is an empty page."""
        return v if isinstance(v, list) else []

    @field_validator("pagination", mode="before")
    @classmethod
    def coerce_pagination(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None


class StatusData(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    header_nav_modules: str | None = Field(None, alias="HeaderNavModules")

    @field_validator("header_nav_modules", mode="before")
    @classmethod
    def coerce_blob(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class StatusEnvelope(BaseModel):
    """GET /api/status response body (only the fields the console reads)."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    message: str | None = None
    data: StatusData | None = None


# ============================================================================
# Console Request Models
# ============================================================================


class TokenQueryRequest(BaseModel):
    """POST /v1/token-usage/query request body."""

    token: str = Field("", max_length=512)


class LogsPageRequest(BaseModel):
    """POST /v1/token-usage/logs request body."""

    token: str = Field("", max_length=512, description="Token of the last successful query")
    page: int | None = None
    page_size: int | None = None
    current_page: int | None = Field(None, description="Page the client currently displays")
    current_page_size: int | None = Field(
        None, description="Page size the client currently displays"
    )


# ============================================================================
# Console Response Models
# ============================================================================


class StatRowResponse(BaseModel):
    label: str
    value: str


class LogRowResponse(BaseModel):
    key: str
    time: str
    type: str
    model: str
    quota: str
    ip: str


class TokenUsageResponse(BaseModel):
    """Snapshot of the token usage view."""

    queried: bool
    queried_token: str
    usage: UsageSummary | None = None
    stats: list[StatRowResponse] = Field(default_factory=list)
    logs: list[LogRowResponse] = Field(default_factory=list)
    page: int
    page_size: int
    total: int
    page_size_options: list[int]
    log_count_label: str = ""
    usage_error: str = ""
    logs_error: str = ""
    error: str = ""


class RouteDecisionKind(str, Enum):
    """What the console should do with a requested path."""

    RENDER = "render"
    REDIRECT = "redirect"
    NOT_FOUND = "not_found"


class RouteDecisionResponse(BaseModel):
    """GET /v1/routes/resolve response."""

    path: str
    decision: RouteDecisionKind
    policy: str | None = None
    bundle: str | None = None
    lazy: bool = False
    bundle_loaded: bool = False
    params: dict[str, str] = Field(default_factory=dict)
    props: dict[str, str] = Field(default_factory=dict)
    redirect_to: str | None = None
    from_path: str | None = None


class HealthResponse(BaseModel):
    service: str
    version: str
    status: str
