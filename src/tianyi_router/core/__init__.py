"""
Tianyi Router Client - Core

This package contains the transport, decoder, session manager, rule repository
and rule transaction engine.
"""

from .client import TianyiClient
from .config_loader import ConfigLoader
from .connection import ConnectionLimiter
from .decoder import RecordKind, decode, is_session_expired
from .exceptions import (
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
    VerificationPendingError,
)
from .models import (
    ForwardingRule,
    ForwardingRuleDraft,
    GatewayInfo,
    LoginResult,
    OperationAck,
    OutcomeKind,
    PortRange,
    Protocol,
    PublicIPRecord,
    ReplacementStatus,
    RouterConfig,
    RuleReplacement,
    RuleTable,
    TransactionOutcome,
)
from .repository import RuleRepository
from .retry import RetryConfig, retry_with_backoff
from .session import Session, SessionManager, SessionState
from .transaction import RuleTransactionEngine
from .transport import RequestResponseLogger, RouterRequest, Transport

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
    "VerificationPendingError",
    # Models
    "RouterConfig",
    "Protocol",
    "PortRange",
    "ForwardingRuleDraft",
    "ForwardingRule",
    "RuleTable",
    "LoginResult",
    "OperationAck",
    "GatewayInfo",
    "PublicIPRecord",
    "ReplacementStatus",
    "OutcomeKind",
    "RuleReplacement",
    "TransactionOutcome",
    # Transport / decoding
    "Transport",
    "RouterRequest",
    "RequestResponseLogger",
    "ConnectionLimiter",
    "RecordKind",
    "decode",
    "is_session_expired",
    # Session, rules, transactions
    "Session",
    "SessionState",
    "SessionManager",
    "RuleRepository",
    "RuleTransactionEngine",
    "RetryConfig",
    "retry_with_backoff",
    # Facade
    "TianyiClient",
    "ConfigLoader",
]
