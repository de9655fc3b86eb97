"""
Derived statistics and row formatting for the token usage screen.

Pure functions: no I/O, no view state.
"""

import re
from datetime import datetime
from zoneinfo import ZoneInfo

from webconsole.config import settings
from webconsole.models.api import LogEntry, LogType, UsageSummary, parse_total
from webconsole.models.domain import LogRow, LogRowDisplay, StatRow

UNLIMITED_LABEL = "Unlimited"
UNKNOWN_LABEL = "Unknown"
EMPTY_CELL = "-"

LOG_TYPE_LABELS: dict[int, str] = {
    LogType.RECHARGE: "Recharge",
    LogType.CONSUME: "Consume",
    LogType.ADMIN: "Admin",
    LogType.SYSTEM: "System",
    LogType.ERROR: "Error",
}

_ALL_ZERO_FRACTION = re.compile(r"\.0+$")
_TRAILING_ZEROS = re.compile(r"(\.\d*[1-9])0+$")


def format_currency_from_tokens(
    value: object,
    digits: int | None = None,
    tokens_per_dollar: int | None = None,
) -> str:
    """
    Render a token amount as dollars.

    >>> format_currency_from_tokens(250_000)
    '$0.5'
    >>> format_currency_from_tokens(1_000_000)
    '$2'
    """
    if digits is None:
        digits = settings.quota_display_digits
    if tokens_per_dollar is None:
        tokens_per_dollar = settings.tokens_per_dollar

    dollars = parse_total(value) / tokens_per_dollar
    fixed = f"{dollars:.{digits}f}"
    trimmed = _TRAILING_ZEROS.sub(r"\1", _ALL_ZERO_FRACTION.sub("", fixed))
    if trimmed in ("-0", ""):
        trimmed = "0"
    return f"${trimmed}"


def timestamp_to_string(
    timestamp: int, tz_name: str | None = None, fallback: str = EMPTY_CELL
) -> str:
    """
    Unix seconds to 'YYYY-MM-DD HH:MM:SS' in the display timezone.

    Timestamps the platform cannot represent (e.g. milliseconds sent where
    seconds are expected) render as ``fallback``.
    """
    tz = ZoneInfo(tz_name or settings.display_timezone)
    try:
        moment = datetime.fromtimestamp(timestamp, tz=tz)
    except (ValueError, OverflowError, OSError):
        return fallback
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def build_stats(summary: UsageSummary | None) -> list[StatRow]:
    """
    Four display rows: granted, available, used, expiry.

    An unlimited grant hides granted/available but still shows usage, which
    is bounded even then. A missing summary renders as all zeros.
    """
    summary = summary or UsageSummary()
    unlimited = summary.unlimited_quota

    expiry = UNKNOWN_LABEL
    if summary.expires_at > 0:
        expiry = timestamp_to_string(summary.expires_at, fallback=UNKNOWN_LABEL)
    granted = format_currency_from_tokens(summary.total_granted)
    available = format_currency_from_tokens(summary.total_available)

    return [
        StatRow(label="Total quota", value=UNLIMITED_LABEL if unlimited else granted),
        StatRow(label="Remaining quota", value=UNLIMITED_LABEL if unlimited else available),
        StatRow(label="Used quota", value=format_currency_from_tokens(summary.total_used)),
        StatRow(label="Expires at", value=expiry),
    ]


def display_key(entry: LogEntry, index: int, offset: int) -> str:
    """Row key unique within a page: identity fields plus absolute position."""
    entry_id = entry.id if entry.id is not None else "row"
    created = entry.created_at if entry.created_at is not None else index
    return f"{entry_id}-{created}-{offset + index}"


def log_type_label(code: int) -> str:
    return LOG_TYPE_LABELS.get(code, UNKNOWN_LABEL)


def render_log_row(row: LogRow) -> LogRowDisplay:
    """Table cells for one row; blanks become '-'."""
    entry = row.entry
    return LogRowDisplay(
        key=row.key,
        time=timestamp_to_string(entry.created_at) if entry.created_at else EMPTY_CELL,
        type=log_type_label(entry.type),
        model=entry.model_name or EMPTY_CELL,
        quota=format_currency_from_tokens(entry.quota),
        ip=entry.ip or EMPTY_CELL,
    )


def log_count_label(total: int) -> str:
    return f"{total} records" if total > 0 else ""
