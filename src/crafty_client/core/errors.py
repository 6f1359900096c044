"""Error taxonomy for panel access.

Transport and API failures surface as subclasses of :class:`CraftyError` so the
caller decides per call whether to block, degrade or report. Normalization
never raises; see :mod:`crafty_client.core.api.normalize`.
"""

from __future__ import annotations

from enum import Enum


class CraftyError(Exception):
    """Base class for all client errors."""

    def to_dict(self) -> dict[str, object]:
        return {"type": type(self).__name__, "message": str(self)}


class InvalidUrlError(CraftyError, ValueError):
    """Base URL is empty or cannot be parsed."""


class NetworkErrorKind(str, Enum):
    UNRESOLVED_HOST = "unresolved_host"
    TIMEOUT = "timeout"
    OTHER = "other"


class NetworkError(CraftyError):
    """Host unreachable, timeout or TLS failure. Retryable by the user."""

    def __init__(self, kind: NetworkErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "kind": self.kind.value}


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    ACCOUNT_DISABLED = "account_disabled"
    NOT_LOGGED_IN = "not_logged_in"
    UNKNOWN = "unknown"


_AUTH_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: "Invalid username or password.",
    AuthErrorKind.TOO_MANY_ATTEMPTS: "Too many login attempts. Wait a while and try again.",
    AuthErrorKind.ACCOUNT_DISABLED: "This account is disabled.",
    AuthErrorKind.NOT_LOGGED_IN: "Not logged in.",
}

_STATUS_TO_AUTH_KIND = {
    401: AuthErrorKind.INVALID_CREDENTIALS,
    403: AuthErrorKind.ACCOUNT_DISABLED,
    429: AuthErrorKind.TOO_MANY_ATTEMPTS,
}


class AuthError(CraftyError):
    """Rejected credentials or token. Recovery is a fresh login."""

    def __init__(
        self,
        kind: AuthErrorKind,
        message: str | None = None,
        *,
        http_status: int | None = None,
    ) -> None:
        if message is None:
            message = _AUTH_MESSAGES.get(kind) or f"Authentication failed ({http_status})"
        super().__init__(message)
        self.kind = kind
        self.http_status = http_status

    @classmethod
    def from_status(cls, http_status: int, message: str | None = None) -> AuthError:
        kind = _STATUS_TO_AUTH_KIND.get(http_status, AuthErrorKind.UNKNOWN)
        if kind is not AuthErrorKind.UNKNOWN:
            message = None
        return cls(kind, message, http_status=http_status)

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "kind": self.kind.value, "http_status": self.http_status}


def is_auth_status(http_status: int) -> bool:
    return http_status in _STATUS_TO_AUTH_KIND


class ApiError(CraftyError):
    """Panel answered but reported a failure (error envelope or non-2xx)."""

    def __init__(self, http_status: int, message: str | None = None) -> None:
        super().__init__(message or f"Request failed (HTTP {http_status})")
        self.http_status = http_status

    def to_dict(self) -> dict[str, object]:
        return {**super().to_dict(), "http_status": self.http_status}
