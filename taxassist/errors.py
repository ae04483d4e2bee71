"""
TaxAssist Errors - Typed failures shared by every component.

Each error carries the HTTP status the server boundary answers with and a
message that is safe to show to the end user. Components raise these; the
FastAPI exception handler in ``taxassist.server.app`` converts them.
"""

from typing import Optional


class TaxAssistError(Exception):
    """Base class for all user-facing failures."""

    status_code: int = 500
    kind: str = "internal_error"
    default_message: str = "An unexpected error occurred. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingParameter(TaxAssistError):
    status_code = 400
    kind = "missing_parameter"
    default_message = "Missing required parameter"


class InvalidState(TaxAssistError):
    status_code = 400
    kind = "invalid_state"
    default_message = "Invalid state"


class InvalidInput(TaxAssistError):
    status_code = 400
    kind = "invalid_input"
    default_message = "Invalid input"


class Unauthenticated(TaxAssistError):
    status_code = 401
    kind = "unauthenticated"
    default_message = "User not authenticated"


class NotConfigured(TaxAssistError):
    status_code = 503
    kind = "not_configured"
    default_message = "Service is not configured"


class MalformedResponse(TaxAssistError):
    """The model answered with text that does not parse into the expected shape."""

    status_code = 502
    kind = "malformed_response"
    default_message = "The AI service returned an unexpected response. Please try again."

    def __init__(self, message: Optional[str] = None, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class RateLimited(TaxAssistError):
    status_code = 429
    kind = "rate_limited"
    default_message = "API rate limit exceeded. Please try again later."


class Unauthorized(TaxAssistError):
    status_code = 502
    kind = "unauthorized"
    default_message = "The upstream service rejected our credentials."


class UpstreamUnavailable(TaxAssistError):
    status_code = 503
    kind = "upstream_unavailable"
    default_message = "Error connecting to the upstream service. Please try again later."


class NotFound(TaxAssistError):
    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class InternalError(TaxAssistError):
    status_code = 500
    kind = "internal_error"


def classify_http_status(status_code: Optional[int], message: Optional[str] = None) -> TaxAssistError:
    """Map an upstream HTTP status code to the matching typed error."""
    if status_code == 429:
        return RateLimited(message)
    if status_code in (401, 403):
        return Unauthorized(message)
    if status_code is not None and (status_code >= 500 or status_code == 408):
        return UpstreamUnavailable(message)
    return InternalError(message)
