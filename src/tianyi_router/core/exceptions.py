"""
Tianyi Router Client - Exception Hierarchy

This module contains all custom exceptions used throughout the Tianyi router client.
"""

from datetime import datetime
from typing import Any


class TianyiError(Exception):
    """Base exception for all Tianyi router errors with enhanced context."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ConfigurationError(TianyiError):
    """Client not configured or invalid configuration."""


class ValidationError(TianyiError):
    """Input parameter validation failed."""


# ========== Transport / decoding ==========


class TransportError(TianyiError):
    """Network communication with the gateway failed."""


class TransportTimeoutError(TransportError):
    """A single gateway request timed out."""


class DecodeError(TianyiError):
    """A gateway response did not have the expected shape."""

    def __init__(self, message: str, expected_kind: str | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.expected_kind = expected_kind


# ========== Session ==========


class AuthError(TianyiError):
    """Authentication or session failure."""


class InvalidCredentialsError(AuthError):
    """The gateway rejected the supplied credentials."""


class SessionExpiredError(AuthError):
    """The session expired and could not be re-established."""


class RouterUnreachableError(AuthError):
    """The gateway could not be reached while authenticating."""


class ProtocolMismatchError(AuthError):
    """The login response did not look like any known login outcome."""


class NotAuthenticatedError(AuthError):
    """An authenticated call was attempted before login."""


# ========== Rule repository ==========


class RepoError(TianyiError):
    """Forwarding rule operation failed."""


class UnauthorizedError(RepoError):
    """No usable session could be established for a rule operation."""


class RuleRejectedError(RepoError):
    """The gateway refused a rule mutation (e.g. port conflict)."""

    def __init__(self, message: str, ret_val: int | None = None, context: dict[str, Any] | None = None):
        super().__init__(message, context=context)
        self.ret_val = ret_val


class RuleNotFoundError(RepoError):
    """The rule id is not present in the gateway's table."""


class DecodeFailedError(RepoError):
    """The gateway's rule data could not be decoded."""


class VerificationPendingError(TianyiError):
    """The rule table does not reflect an expected change yet."""
