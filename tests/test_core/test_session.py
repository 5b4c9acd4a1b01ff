"""
Tests for Tianyi router client session management.

This module tests the session state machine, transparent re-login on expiry,
credential failures and logout, against the fake gateway.
"""

import asyncio

import httpx
import pytest
import pytest_asyncio

from tianyi_router.core.exceptions import (
    AuthError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    ProtocolMismatchError,
    RouterUnreachableError,
    SessionExpiredError,
)
from tianyi_router.core.session import SessionManager, SessionState
from tianyi_router.core.transport import RouterRequest, Transport

from fixtures.fake_router import DISPLAY_PATH, SET_PATH, FakeRouter
from fixtures.mock_responses import login_success_page

LIST_REQUEST = RouterRequest("GET", DISPLAY_PATH, operation="list_rules")


@pytest_asyncio.fixture
async def manager(router_config, fake_router):
    transport = Transport(router_config, http_transport=fake_router)
    yield SessionManager(transport)
    await transport.close()


def display_requests(router: FakeRouter):
    return [r for r in router.requests if r.path == DISPLAY_PATH]


@pytest.mark.asyncio
class TestLogin:
    """Test login and the resulting state."""

    async def test_initial_state(self, manager):
        assert manager.state == SessionState.UNAUTHENTICATED
        assert not manager.is_active
        assert manager.established_at is None

    async def test_login_success(self, manager, fake_router):
        session = await manager.login("useradmin", "secret")

        assert manager.state == SessionState.ACTIVE
        assert session.token == fake_router.token
        assert manager.established_at is not None
        assert fake_router.requests[0].form == {"username": "useradmin", "psd": "secret"}

    async def test_token_not_in_repr(self, manager, fake_router):
        session = await manager.login("useradmin", "secret")
        assert fake_router.token not in repr(session)

    async def test_invalid_credentials(self, manager):
        with pytest.raises(InvalidCredentialsError):
            await manager.login("useradmin", "wrong")
        assert manager.state == SessionState.UNAUTHENTICATED

    async def test_failed_login_keeps_existing_session(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        with pytest.raises(InvalidCredentialsError):
            await manager.login("useradmin", "wrong")
        assert manager.state == SessionState.ACTIVE

        response = await manager.authenticated_call(LIST_REQUEST)
        assert response.status_code == 200
        assert fake_router.login_count == 1

    async def test_unreachable_login_keeps_existing_session(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.fail_network("login")
        with pytest.raises(RouterUnreachableError):
            await manager.login("useradmin", "secret")

        await manager.authenticated_call(LIST_REQUEST)
        assert fake_router.login_count == 1

    async def test_unreachable(self, manager, fake_router):
        fake_router.fail_network("login")
        with pytest.raises(RouterUnreachableError):
            await manager.login("useradmin", "secret")
        assert manager.state == SessionState.UNAUTHENTICATED

    async def test_protocol_mismatch(self, router_config):
        transport = Transport(router_config, http_transport=httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>maintenance</html>",
                                           headers={"Content-Type": "text/html"})
        ))
        manager = SessionManager(transport)
        try:
            with pytest.raises(ProtocolMismatchError):
                await manager.login("useradmin", "secret")
        finally:
            await transport.close()


@pytest.mark.asyncio
class TestAuthenticatedCall:
    """Test calls made within a session."""

    async def test_requires_login(self, manager):
        with pytest.raises(NotAuthenticatedError):
            await manager.authenticated_call(LIST_REQUEST)

    async def test_cache_buster_added_to_get(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        response = await manager.authenticated_call(LIST_REQUEST)

        assert response.status_code == 200
        request = display_requests(fake_router)[-1]
        assert "_" in request.params
        assert "token" not in request.params

    async def test_token_attached_to_mutations(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        request = RouterRequest(
            "POST", SET_PATH, mutating=True, operation="set_rule_enabled",
            form={"srvname": "web", "op": "disable", "client": "192.168.1.11",
                  "protocol": "TCP", "exPort": "80", "inPort": "80"},
        )
        response = await manager.authenticated_call(request)

        assert response.json() == {"retVal": 0}
        sent = fake_router.requests[-1]
        assert sent.form["token"] == fake_router.token
        assert "_" in sent.form

    async def test_transparent_relogin_once(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.expire_sessions()

        response = await manager.authenticated_call(LIST_REQUEST)

        assert response.headers["content-type"] == "application/json"
        assert fake_router.login_count == 2
        assert manager.state == SessionState.ACTIVE

    async def test_relogin_on_forbidden_status(self, manager, fake_router):
        fake_router.expired_status = 403
        await manager.login("useradmin", "secret")
        fake_router.expire_sessions()

        await manager.authenticated_call(LIST_REQUEST)
        assert fake_router.login_count == 2

    async def test_second_expiry_raises(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.always_expired = True

        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)

        assert fake_router.login_count == 2
        assert len(display_requests(fake_router)) == 2
        assert manager.state == SessionState.EXPIRED

    async def test_expired_session_rejects_calls(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.always_expired = True
        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)

        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)
        assert fake_router.login_count == 2

    async def test_relogin_with_changed_password(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.password = "changed"
        fake_router.expire_sessions()

        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)
        assert manager.state == SessionState.EXPIRED

    async def test_login_again_after_expiry(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.always_expired = True
        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)

        fake_router.always_expired = False
        await manager.login("useradmin", "secret")
        assert manager.state == SessionState.ACTIVE
        await manager.authenticated_call(LIST_REQUEST)

    async def test_concurrent_expiry_shares_one_relogin(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.expire_sessions()

        responses = await asyncio.gather(*(manager.authenticated_call(LIST_REQUEST) for _ in range(3)))

        assert all(r.status_code == 200 for r in responses)
        assert fake_router.login_count == 2

    async def test_custom_expiry_predicate(self, router_config, fake_router):
        transport = Transport(router_config, http_transport=fake_router)
        manager = SessionManager(transport, expiry_predicate=lambda response: False)
        try:
            await manager.login("useradmin", "secret")
            fake_router.expire_sessions()
            await manager.authenticated_call(LIST_REQUEST)
        finally:
            await transport.close()
        assert fake_router.login_count == 1


@pytest.mark.asyncio
class TestLogout:
    """Test ending the session."""

    async def test_logout(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        await manager.logout()

        assert manager.state == SessionState.EXPIRED
        assert fake_router.sessions == set()
        assert len(manager.transport.cookies) == 0
        with pytest.raises(SessionExpiredError):
            await manager.authenticated_call(LIST_REQUEST)

    async def test_logout_without_session_is_noop(self, manager, fake_router):
        await manager.logout()
        assert fake_router.requests == []

    async def test_logout_unreachable_still_expires(self, manager, fake_router):
        await manager.login("useradmin", "secret")
        fake_router.fail_network("logout")

        with pytest.raises(RouterUnreachableError):
            await manager.logout()
        assert manager.state == SessionState.EXPIRED

    async def test_logout_error_status(self, router_config):
        def handler(request):
            if request.url.path.endswith("/logout"):
                return httpx.Response(500)
            return httpx.Response(200, text=login_success_page(), headers={"Content-Type": "text/html"})

        transport = Transport(router_config, http_transport=httpx.MockTransport(handler))
        manager = SessionManager(transport)
        try:
            await manager.login("useradmin", "secret")
            with pytest.raises(AuthError):
                await manager.logout()
        finally:
            await transport.close()
        assert manager.state == SessionState.EXPIRED
