"""
Exception Classes - Strongly typed exception hierarchy.

Every failure on the lookup paths is converted to a display string before it
leaves the service layer; these classes carry the typed detail until then.
"""

from typing import Any


class ConsoleError(Exception):
    """Base exception for all console errors."""

    pass


class TokenRequiredError(ConsoleError):
    """Raised when a lookup is submitted without a token."""

    def __init__(self, message: str = "Please enter a token") -> None:
        self.message = message
        super().__init__(message)


class ServerRejectionError(ConsoleError):
    """Raised when the upstream answers with a well-formed failure envelope."""

    def __init__(self, message: str, endpoint: str | None = None) -> None:
        self.message = message
        self.endpoint = endpoint
        super().__init__(message)


class UpstreamError(ConsoleError):
    """Base for failures talking to the upstream API."""

    def __init__(self, message: str, path: str) -> None:
        self.message = message
        self.path = path
        super().__init__(f"Upstream request to {path} failed: {message}")


class UpstreamHTTPError(UpstreamError):
    """Raised when the upstream responds with a non-2xx status."""

    def __init__(self, path: str, status_code: int, body: Any = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}", path)


class UpstreamTransportError(UpstreamError):
    """Raised on connection failures and timeouts."""

    pass


class UpstreamParseError(UpstreamError):
    """Raised when the upstream body is not the JSON object we expect."""

    pass


class PageLoadError(ConsoleError):
    """Raised when a page bundle cannot be imported."""

    def __init__(self, bundle: str, reason: str) -> None:
        self.bundle = bundle
        self.reason = reason
        super().__init__(f"Failed to load page bundle {bundle}: {reason}")


def extract_error_message(error: BaseException | str | None) -> str:
    """
    Pull a human-readable message out of a failure.

    Checks, in order: a plain string, the upstream response body's
    ``message`` then ``error`` field, the exception's own message.
    Returns '' when nothing usable is found; callers apply their fallback.
    """
    if not error:
        return ""
    if isinstance(error, str):
        return error

    body = getattr(error, "body", None)
    if isinstance(body, dict):
        for field in ("message", "error"):
            value = body.get(field)
            if value:
                return str(value)

    message = getattr(error, "message", None)
    if message:
        return str(message)
    return str(error)
