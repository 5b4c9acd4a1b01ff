"""
Tianyi Router Client - Client Facade

This module assembles the transport, session manager, rule repository and
transaction engine into the public ``TianyiClient``.
"""

import logging
from typing import List, Optional, Union
from ipaddress import IPv4Address

import httpx

from ..shared.constants import LUCI_GATEWAY_INFO
from .decoder import RecordKind, decode
from .exceptions import AuthError, DecodeError, DecodeFailedError, UnauthorizedError
from .models import (
    ForwardingRule,
    ForwardingRuleDraft,
    GatewayInfo,
    PublicIPRecord,
    RouterConfig,
    TransactionOutcome,
)
from .repository import RuleRepository
from .session import ExpiryPredicate, SessionManager, SessionState
from .retry import RetryConfig
from .transaction import RuleTransactionEngine
from .transport import RouterRequest, Transport

logger = logging.getLogger("tianyi-router")


class TianyiClient:
    """Client for the Tianyi gateway's web administration interface.

    Example:
        >>> config = RouterConfig(password="secret")
        >>> async with await TianyiClient.connect(config) as client:
        ...     outcome = await client.replace_rule_target_ip("192.168.1.11", "192.168.1.12")
    """

    def __init__(
        self,
        config: RouterConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        expiry_predicate: Optional[ExpiryPredicate] = None,
    ):
        """Initialize the client without logging in.

        Args:
            config: Gateway connection configuration
            http_transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
            expiry_predicate: Optional override of the session-expiry detection
        """
        self.config = config
        self.transport = Transport(config, http_transport=http_transport)
        self.session = SessionManager(self.transport, expiry_predicate=expiry_predicate)
        self.rules = RuleRepository(self.session)
        self.engine = RuleTransactionEngine(
            self.rules,
            retry_config=RetryConfig.for_verification(config.verify_attempts, config.verify_delay),
            max_concurrency=config.max_concurrency,
        )
        logger.debug(f"Initialized Tianyi client for {config.base_url}")

    @classmethod
    async def connect(
        cls,
        config: RouterConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "TianyiClient":
        """Build a client and log in with the configured credentials."""
        client = cls(config, http_transport=http_transport)
        try:
            await client.login()
        except BaseException:
            await client.close()
            raise
        return client

    async def __aenter__(self) -> "TianyiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        try:
            if self.session.is_active:
                try:
                    await self.logout()
                except AuthError as e:
                    logger.warning(f"Logout on exit failed: {e.message}")
        finally:
            await self.close()

    @property
    def session_state(self) -> SessionState:
        return self.session.state

    async def close(self):
        """Close the HTTP client."""
        await self.transport.close()

    async def login(self, username: Optional[str] = None, password: Optional[str] = None) -> None:
        """Log in, defaulting to the configured credentials."""
        await self.session.login(
            username if username is not None else self.config.username,
            password if password is not None else self.config.password,
        )

    async def logout(self) -> None:
        """Log out; the local session is discarded even if the gateway is unreachable."""
        await self.session.logout()

    async def _fetch_gateway_info(self, kind: RecordKind):
        request = RouterRequest(
            "GET",
            LUCI_GATEWAY_INFO,
            params={"get": "part"},
            operation="gateway_info",
        )
        try:
            response = await self.session.authenticated_call(request)
        except AuthError as e:
            raise UnauthorizedError(
                f"No usable session for gateway info: {e.message}",
                context={"cause": e.error_code},
            ) from e
        try:
            return decode(response, kind)
        except DecodeError as e:
            raise DecodeFailedError(e.message, context={"expected_kind": kind.value}) from e

    async def get_gateway_info(self) -> GatewayInfo:
        """Fetch descriptive gateway information."""
        return await self._fetch_gateway_info(RecordKind.GATEWAY_INFO)

    async def get_public_ip(self) -> PublicIPRecord:
        """Fetch the gateway's current WAN address."""
        return await self._fetch_gateway_info(RecordKind.PUBLIC_IP)

    async def list_rules(self) -> List[ForwardingRule]:
        """Fetch all forwarding rules in gateway table order."""
        return await self.rules.list()

    async def add_rule(self, draft: ForwardingRuleDraft) -> ForwardingRule:
        """Create a forwarding rule."""
        return await self.rules.add(draft)

    async def remove_rule(self, rule_id: str) -> None:
        """Delete a forwarding rule by id."""
        await self.rules.remove(rule_id)

    async def set_rule_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a forwarding rule by id."""
        await self.rules.set_enabled(rule_id, enabled)

    async def replace_rule_target_ip(
        self,
        old_ip: Union[str, IPv4Address],
        new_ip: Union[str, IPv4Address],
    ) -> TransactionOutcome:
        """Move every enabled rule targeting ``old_ip`` to ``new_ip``."""
        return await self.engine.replace(old_ip, new_ip)
