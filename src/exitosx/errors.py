"""Domain exceptions raised by Exit OSx services.

Services raise these instead of ``HTTPException`` so they stay usable from
the CLI and background jobs; ``exitosx.main`` maps them to JSON responses.
"""

from __future__ import annotations


class ExitOSxError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(ExitOSxError):
    status_code = 400
    code = "INVALID_INPUT"


class AuthenticationError(ExitOSxError):
    status_code = 401
    code = "UNAUTHENTICATED"


class PermissionDeniedError(ExitOSxError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ExitOSxError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ExitOSxError):
    status_code = 409
    code = "CONFLICT"


class IntegrationError(ExitOSxError):
    """An upstream provider (QuickBooks, LLM) failed."""

    status_code = 502
    code = "INTEGRATION_ERROR"
