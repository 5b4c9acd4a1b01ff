"""
Tianyi Router Client - Error Handling Helpers

This module maps exceptions to user-friendly messages and validates user input.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from ipaddress import IPv4Address
from typing import Dict, Any

from ..core.exceptions import (
    TianyiError,
    ConfigurationError,
    ValidationError,
    TransportError,
    TransportTimeoutError,
    InvalidCredentialsError,
    SessionExpiredError,
    RouterUnreachableError,
    ProtocolMismatchError,
    NotAuthenticatedError,
    UnauthorizedError,
    RuleRejectedError,
    RuleNotFoundError,
    DecodeFailedError,
    DecodeError,
)
from ..core.models import PortRange

logger = logging.getLogger("tianyi-router")


class ErrorSeverity(str, Enum):
    """Enumeration for error severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorResponse:
    """Structured error response with user-friendly messaging."""

    def __init__(self, error: Exception, operation: str, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        """Initialize error response.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            severity: Severity level of the error
        """
        self.error = error
        self.operation = operation
        self.severity = severity
        self.timestamp = datetime.utcnow()
        self.error_id = f"{operation}_{int(self.timestamp.timestamp())}"

    def get_user_message(self) -> str:
        """Get a human-readable message that never includes credentials."""
        if isinstance(self.error, InvalidCredentialsError):
            return "Login rejected. Please check the gateway username and password."
        elif isinstance(self.error, RouterUnreachableError):
            return "Cannot reach the gateway. Please check the host and your network connection."
        elif isinstance(self.error, ProtocolMismatchError):
            return "The gateway's login page was not recognized. This firmware may not be supported."
        elif isinstance(self.error, NotAuthenticatedError):
            return "Not logged in to the gateway."
        elif isinstance(self.error, SessionExpiredError):
            return "The gateway session expired and could not be renewed. Please try again."
        elif isinstance(self.error, UnauthorizedError):
            return "The gateway refused the request because no valid session could be established."
        elif isinstance(self.error, RuleRejectedError):
            return f"The gateway rejected the rule change: {self.error.message}"
        elif isinstance(self.error, RuleNotFoundError):
            return f"Rule not found: {self.error.message}"
        elif isinstance(self.error, (DecodeFailedError, DecodeError)):
            return "The gateway returned data in an unexpected format."
        elif isinstance(self.error, TransportTimeoutError):
            return "Request timed out. The gateway may be busy."
        elif isinstance(self.error, TransportError):
            return "Network error while talking to the gateway."
        elif isinstance(self.error, ConfigurationError):
            return f"Configuration error: {self.error.message}"
        elif isinstance(self.error, ValidationError):
            return f"Invalid input: {self.error.message}"
        else:
            return f"An unexpected error occurred during {self.operation}."

    def get_technical_details(self) -> Dict[str, Any]:
        """Get technical error details for logging."""
        details = {
            "error_id": self.error_id,
            "operation": self.operation,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "error_type": type(self.error).__name__,
            "message": str(self.error)
        }

        if isinstance(self.error, TianyiError):
            details.update(self.error.to_dict())

        if isinstance(self.error, RuleRejectedError):
            details["ret_val"] = self.error.ret_val

        return details


def report_error(operation: str, error: Exception, severity: ErrorSeverity = ErrorSeverity.MEDIUM) -> str:
    """Log technical details of ``error`` and return the user-facing message."""
    error_response = ErrorResponse(error, operation, severity)
    technical_details = error_response.get_technical_details()
    logger.error(f"Error in {operation}: {json.dumps(technical_details, default=str)}")
    return error_response.get_user_message()


def validate_ipv4(value: str, operation: str) -> IPv4Address:
    """Parse a LAN IPv4 address.

    Raises:
        ValidationError: If the value is not a dotted-quad IPv4 address
    """
    try:
        return IPv4Address(value.strip())
    except ValueError:
        raise ValidationError(
            f"Invalid IPv4 address: {value}",
            context={"value": value, "operation": operation, "expected_format": "a.b.c.d"}
        )


def validate_port_spec(value: str, operation: str) -> PortRange:
    """Parse a port (``80``) or port range (``8000-8010``).

    Raises:
        ValidationError: If the value is not a valid port or range
    """
    try:
        return PortRange.parse(value)
    except ValueError:
        raise ValidationError(
            f"Invalid port or port range: {value}",
            context={"value": value, "operation": operation, "expected_format": "80 or 8000-8010"}
        )
