"""
Domain error taxonomy.

Core services raise these instead of HTTP exceptions so they stay usable from
scripts and background jobs. ``main.py`` maps them to HTTP responses.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for expected, user-facing errors."""

    status_code = 500
    error_type = "domain_error"
    default_action = "Contact support."

    def __init__(self, message: str, action: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.action = action or self.default_action

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "action": self.action,
            "type": self.error_type,
        }


class ValidationError(DomainError, ValueError):
    """Malformed input shape or out-of-range value (400)."""

    status_code = 400
    error_type = "validation_error"
    default_action = "Fix the request data and try again."


class NotFoundError(DomainError):
    """Missing booking, series or session (404)."""

    status_code = 404
    error_type = "not_found"
    default_action = "Check the identifiers sent with the request."


class AccessError(DomainError):
    """Caller lacks the scope for the requested records (403)."""

    status_code = 403
    error_type = "access_denied"
    default_action = "Ask an administrator for access to these records."
