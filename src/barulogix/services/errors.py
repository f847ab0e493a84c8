"""Domain error taxonomy shared by every service.

Each error carries a human-readable Spanish message (shown as-is by the
frontend), an optional ``details`` payload with the underlying cause, the
HTTP status it maps to and a short machine code.
"""

from __future__ import annotations

from typing import Any, ClassVar

# Marker the frontend matches to offer "resend verification email"
EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"


class BaruLogixError(Exception):
    """Base class for errors raised by BaruLogix services."""

    status_code: ClassVar[int] = 500
    code: ClassVar[str] = "error"

    def __init__(self, message: str, details: Any = None) -> None:
        """Initialize the error.

        Args:
            message: Spanish, user-facing description.
            details: Optional cause (string or JSON-compatible structure).
        """
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(BaruLogixError):
    """Missing or malformed input (400)."""

    status_code = 400
    code = "validation_error"


class NotFoundError(BaruLogixError):
    """Referenced entity absent or not owned by the caller (404)."""

    status_code = 404
    code = "not_found"


class ConflictError(BaruLogixError):
    """Uniqueness violation (409)."""

    status_code = 409
    code = "conflict"


class AuthError(BaruLogixError):
    """Missing or invalid identity (401)."""

    status_code = 401
    code = "unauthorized"


class ForbiddenError(BaruLogixError):
    """Authenticated but not allowed (403)."""

    status_code = 403
    code = "forbidden"


class InternalError(BaruLogixError):
    """Store failure or unexpected condition (500)."""

    status_code = 500
    code = "internal_error"


class EmailNotVerifiedError(AuthError):
    """Login refused because the account email is not confirmed (401).

    The machine code is the marker the frontend uses to offer resending the
    verification email.
    """

    code = EMAIL_NOT_VERIFIED
