"""
Domain Models - Internal view-state models using dataclasses.

Snapshots are immutable; the view replaces them wholesale on every commit.
"""

from dataclasses import dataclass, field

from webconsole.models.api import LogEntry, UsageSummary

DEFAULT_PAGE_SIZE = 10


@dataclass(frozen=True)
class TokenQuery:
    """What the user typed and which token the data views currently reflect."""

    raw_input: str = ""
    queried: bool = False
    queried_token: str = ""

    def __post_init__(self) -> None:
        """queried_token is non-empty exactly when a query has been made."""
        if self.queried != bool(self.queried_token):
            raise ValueError(
                f"queried={self.queried} inconsistent with queried_token={self.queried_token!r}"
            )

    @property
    def trimmed_token(self) -> str:
        return self.raw_input.strip()


@dataclass(frozen=True)
class LogRow:
    """A log entry paired with its display key for list rendering."""

    key: str
    entry: LogEntry


@dataclass(frozen=True)
class LogPage:
    """One page of usage log rows plus its pagination state."""

    items: tuple[LogRow, ...] = ()
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    total: int = 0

    def __post_init__(self) -> None:
        """Validate pagination constraints."""
        if self.page < 1:
            raise ValueError(f"Page must be at least 1: {self.page}")
        if self.page_size <= 0:
            raise ValueError(f"Page size must be positive: {self.page_size}")
        if self.total < 0:
            raise ValueError(f"Total cannot be negative: {self.total}")


@dataclass(frozen=True)
class QueryOutcome:
    """Per-channel errors of one lookup; '' means that channel succeeded."""

    usage_error: str = ""
    logs_error: str = ""

    @property
    def ok(self) -> bool:
        return not self.usage_error and not self.logs_error

    def combined(self, separator: str = "; ") -> str:
        """Join the non-empty errors for a single banner."""
        return separator.join(e for e in (self.usage_error, self.logs_error) if e)


@dataclass(frozen=True)
class StatRow:
    label: str
    value: str


@dataclass(frozen=True)
class LogRowDisplay:
    """Rendered table cells of one log row."""

    key: str
    time: str
    type: str
    model: str
    quota: str
    ip: str


@dataclass
class TokenUsageView:
    """
    Mutable view state of the token usage screen.

    Single writer: only TokenUsageService mutates it, always from the event
    loop, so no locking is involved.
    """

    query: TokenQuery = field(default_factory=TokenQuery)
    usage: UsageSummary | None = None
    logs: LogPage = field(default_factory=LogPage)
    usage_error: str = ""
    logs_error: str = ""
    usage_loading: bool = False
    logs_loading: bool = False

    @property
    def busy(self) -> bool:
        """True while either channel is in flight."""
        return self.usage_loading or self.logs_loading

    @property
    def outcome(self) -> QueryOutcome:
        return QueryOutcome(usage_error=self.usage_error, logs_error=self.logs_error)

    def combined_error(self, separator: str = "; ") -> str:
        return self.outcome.combined(separator)


@dataclass(frozen=True)
class SessionInfo:
    """The caller's session as seen by the route gate."""

    user_id: int | None = None
    role: int = 0

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None
