"""
Tianyi Router Client - Session Management

This module owns the authenticated session lifecycle: login, token caching,
transparent re-login on expiry, and logout.

State machine::

    UNAUTHENTICATED --login--> ACTIVE --logout / expiry after retry--> EXPIRED
                                  ^                                       |
                                  +---------------- login ----------------+
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Tuple

import httpx

from ..shared.constants import (
    FIELD_CACHE_BUSTER,
    FIELD_PASSWORD,
    FIELD_TOKEN,
    FIELD_USERNAME,
    LUCI_LOGIN,
    LUCI_LOGOUT,
)
from .decoder import RecordKind, decode, is_session_expired
from .exceptions import (
    AuthError,
    DecodeError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProtocolMismatchError,
    RouterUnreachableError,
    SessionExpiredError,
    TransportError,
)
from .transport import RouterRequest, Transport

logger = logging.getLogger("tianyi-router")

ExpiryPredicate = Callable[[httpx.Response], bool]


class SessionState(str, Enum):
    """Lifecycle states of a session."""
    UNAUTHENTICATED = "unauthenticated"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class Session:
    """An authenticated session with the gateway."""

    token: str = field(repr=False)
    established_at: datetime = field(default_factory=datetime.now)
    state: SessionState = SessionState.ACTIVE
    generation: int = 0


def _cache_buster() -> str:
    return str(random.random())


class SessionManager:
    """Owns the single session of a client instance.

    Login, re-login and logout are serialized by a lock; authenticated calls
    run concurrently once the session is active.
    """

    def __init__(
        self,
        transport: Transport,
        expiry_predicate: Optional[ExpiryPredicate] = None,
    ):
        """Initialize the session manager.

        Args:
            transport: Transport used for every gateway exchange
            expiry_predicate: Decides whether a response signals an expired
                session; defaults to ``decoder.is_session_expired``
        """
        self.transport = transport
        self.expiry_predicate = expiry_predicate or is_session_expired
        self.lock = asyncio.Lock()
        self._session: Optional[Session] = None
        self._credentials: Optional[Tuple[str, str]] = None
        self._generation = 0

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.UNAUTHENTICATED
        return self._session.state

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def established_at(self) -> Optional[datetime]:
        return self._session.established_at if self._session else None

    async def login(self, username: str, password: str) -> Session:
        """Authenticate and make the new session active.

        Raises:
            InvalidCredentialsError: The gateway rejected the credentials
            RouterUnreachableError: The gateway could not be reached
            ProtocolMismatchError: The response was not a recognizable login outcome
        """
        async with self.lock:
            session = await self._login_locked(username, password)
            self._credentials = (username, password)
            return session

    async def _login_locked(self, username: str, password: str) -> Session:
        # A failed attempt must not cost the session that is already active
        saved_cookies = self.transport.snapshot_cookies()
        self.transport.clear_cookies()
        try:
            return await self._submit_login(username, password)
        except AuthError:
            self.transport.restore_cookies(saved_cookies)
            raise

    async def _submit_login(self, username: str, password: str) -> Session:
        request = RouterRequest(
            "POST",
            LUCI_LOGIN,
            form={FIELD_USERNAME: username, FIELD_PASSWORD: password},
            operation="login",
        )

        try:
            response = await self.transport.send(request)
        except TransportError as e:
            raise RouterUnreachableError(
                f"Cannot reach gateway to log in: {e.message}",
                context={"base_url": self.transport.base_url},
            ) from e

        try:
            result = decode(response, RecordKind.LOGIN_RESULT)
        except DecodeError as e:
            raise ProtocolMismatchError(
                "Unexpected login response from gateway",
                context={"status_code": response.status_code},
            ) from e

        if result.rejected:
            logger.warning(f"Login rejected for user '{username}'")
            raise InvalidCredentialsError(
                "Gateway rejected the supplied credentials",
                context={"username": username},
            )

        self._generation += 1
        self._session = Session(token=result.token, generation=self._generation)
        logger.info(f"Logged in to {self.transport.base_url} as '{username}'")
        return self._session

    def _require_active(self) -> Session:
        session = self._session
        if session is None:
            raise NotAuthenticatedError("Not logged in to the gateway")
        if session.state != SessionState.ACTIVE:
            raise SessionExpiredError("Session has expired; log in again")
        return session

    def _attach_token(self, request: RouterRequest, session: Session) -> RouterRequest:
        params = dict(request.params)
        form = dict(request.form)
        if request.method.upper() == "GET":
            params[FIELD_CACHE_BUSTER] = _cache_buster()
        else:
            form[FIELD_CACHE_BUSTER] = _cache_buster()
        if request.mutating:
            form[FIELD_TOKEN] = session.token
        return replace(request, params=params, form=form)

    async def authenticated_call(self, request: RouterRequest) -> httpx.Response:
        """Send a request within the active session.

        On a detected expiry, logs in again once with the cached credentials
        and retries the request once.

        Raises:
            NotAuthenticatedError: No login has happened yet
            SessionExpiredError: The session expired and the single retry also
                saw an expired session
            TransportError: The exchange itself failed
        """
        session = self._require_active()
        response = await self.transport.send(self._attach_token(request, session))
        if not self.expiry_predicate(response):
            return response

        logger.info(f"Session expired during '{request.operation}', re-authenticating")
        session = await self._reauthenticate(session.generation)

        response = await self.transport.send(self._attach_token(request, session))
        if self.expiry_predicate(response):
            async with self.lock:
                if self._session is session:
                    session.state = SessionState.EXPIRED
            logger.warning(f"Session still expired after re-login during '{request.operation}'")
            raise SessionExpiredError(
                "Session expired again after re-login",
                context={"operation": request.operation},
            )
        return response

    async def _reauthenticate(self, seen_generation: int) -> Session:
        async with self.lock:
            current = self._session
            if (current is not None and current.state == SessionState.ACTIVE
                    and current.generation != seen_generation):
                # Another caller already logged in again
                return current

            if current is not None:
                current.state = SessionState.EXPIRED
            if self._credentials is None:
                raise SessionExpiredError("Session expired and no credentials are cached")

            try:
                return await self._login_locked(*self._credentials)
            except (InvalidCredentialsError, ProtocolMismatchError) as e:
                raise SessionExpiredError(
                    f"Session expired and re-login failed: {e.message}",
                    context={"cause": e.error_code},
                ) from e

    async def logout(self) -> None:
        """End the session.

        The session is marked expired before the gateway is contacted, so a
        failed logout never leaves it usable.

        Raises:
            RouterUnreachableError: The logout request could not be delivered
            AuthError: The gateway answered the logout with an error status
        """
        async with self.lock:
            session = self._session
            if session is None or session.state != SessionState.ACTIVE:
                return

            session.state = SessionState.EXPIRED
            self._credentials = None
            request = RouterRequest(
                "POST",
                LUCI_LOGOUT,
                form={FIELD_TOKEN: session.token, FIELD_CACHE_BUSTER: _cache_buster()},
                operation="logout",
            )

            try:
                response = await self.transport.send(request)
            except TransportError as e:
                raise RouterUnreachableError(
                    f"Logout could not reach gateway: {e.message}",
                    context={"base_url": self.transport.base_url},
                ) from e
            finally:
                self.transport.clear_cookies()

            if not response.is_success:
                raise AuthError(
                    f"Logout failed with status {response.status_code}",
                    context={"status_code": response.status_code},
                )
            logger.info("Logged out from gateway")
