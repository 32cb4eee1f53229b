"""Exception hierarchy shared by the backend service, the API and the client."""

from __future__ import annotations


class LuckyDrawError(Exception):
    """Base exception for all lucky draw errors."""

    status_code = 500
    default_reason = "error"

    def __init__(self, message: str, reason: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason


class ConfigurationError(LuckyDrawError):
    """Raised at startup when settings are missing or malformed."""

    default_reason = "configuration"


class ValidationError(LuckyDrawError):
    """Raised when a request payload is malformed or names an unknown member."""

    status_code = 400
    default_reason = "invalid_payload"


class AuthorizationError(LuckyDrawError):
    """Raised when a password, admin password or reset PIN does not match."""

    status_code = 403
    default_reason = "wrong_password"


class ConflictError(LuckyDrawError):
    """Raised when a precondition on the current state fails."""

    status_code = 409
    default_reason = "conflict"


class BackingStoreError(LuckyDrawError):
    """Raised when the backing store cannot be read or written."""

    status_code = 503
    default_reason = "store_unavailable"
