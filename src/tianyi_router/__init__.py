"""
Tianyi Router Client

An unofficial client for the China Telecom Tianyi home gateway's web
administration interface: public IP lookup, gateway information, and
port forwarding rule management, including moving rules from one LAN host
to another without ever leaving a forwarded port unserved.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .core.client import TianyiClient
from .core.config_loader import ConfigLoader
from .core.exceptions import (
    AuthError,
    ConfigurationError,
    DecodeError,
    DecodeFailedError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProtocolMismatchError,
    RepoError,
    RouterUnreachableError,
    RuleNotFoundError,
    RuleRejectedError,
    SessionExpiredError,
    TianyiError,
    TransportError,
    TransportTimeoutError,
    UnauthorizedError,
    ValidationError,
)
from .core.models import (
    ForwardingRule,
    ForwardingRuleDraft,
    GatewayInfo,
    OutcomeKind,
    PortRange,
    Protocol,
    PublicIPRecord,
    ReplacementStatus,
    RouterConfig,
    TransactionOutcome,
)
from .core.session import SessionState

__all__ = [
    # Exceptions
    "TianyiError",
    "ConfigurationError",
    "ValidationError",
    "TransportError",
    "TransportTimeoutError",
    "DecodeError",
    "AuthError",
    "InvalidCredentialsError",
    "SessionExpiredError",
    "RouterUnreachableError",
    "ProtocolMismatchError",
    "NotAuthenticatedError",
    "RepoError",
    "UnauthorizedError",
    "RuleRejectedError",
    "RuleNotFoundError",
    "DecodeFailedError",
    # Core classes
    "RouterConfig",
    "TianyiClient",
    "ConfigLoader",
    "SessionState",
    # Records
    "Protocol",
    "PortRange",
    "ForwardingRuleDraft",
    "ForwardingRule",
    "GatewayInfo",
    "PublicIPRecord",
    "OutcomeKind",
    "ReplacementStatus",
    "TransactionOutcome",
]
