"""
Tests for Tianyi router client HTTP transport.

This module tests request dispatch, error mapping, cookie handling and the
redacting request/response logger.
"""

import json
import logging
from unittest.mock import Mock

import httpx
import pytest

from tianyi_router.core.exceptions import TransportError, TransportTimeoutError, ValidationError
from tianyi_router.core.transport import (
    RequestResponseLogger,
    RouterRequest,
    Transport,
    redact,
)


def make_transport(router_config, handler):
    return Transport(router_config, http_transport=httpx.MockTransport(handler))


class TestRedaction:
    """Test masking of credentials and tokens."""

    def test_sensitive_fields_masked(self):
        values = {"username": "useradmin", "psd": "secret", "token": "abc", "op": "add"}
        assert redact(values) == {
            "username": "useradmin",
            "psd": "[REDACTED]",
            "token": "[REDACTED]",
            "op": "add",
        }

    def test_empty(self):
        assert redact(None) == {}

    def test_request_log_never_contains_password(self):
        mock_logger = Mock(spec=logging.Logger)
        RequestResponseLogger(mock_logger).log_request(
            "POST", "http://192.168.1.1/cgi-bin/luci", form={"username": "u", "psd": "hunter2"},
            operation="login",
        )

        message = mock_logger.debug.call_args[0][0]
        assert "hunter2" not in message
        assert "[REDACTED]" in message

    def test_error_response_logged_as_warning(self):
        mock_logger = Mock(spec=logging.Logger)
        RequestResponseLogger(mock_logger).log_response(500, operation="list_rules")

        level, message = mock_logger.log.call_args[0]
        assert level == logging.WARNING
        payload = json.loads(message.split("API Response: ", 1)[1])
        assert payload["response"]["success"] is False


@pytest.mark.asyncio
class TestTransportSend:
    """Test sending requests through the transport."""

    async def test_get_with_params(self, router_config):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            return httpx.Response(200, json={"ok": True})

        transport = make_transport(router_config, handler)
        try:
            response = await transport.send(
                RouterRequest("GET", "/cgi-bin/luci/admin/settings/gwinfo", params={"get": "part"})
            )
        finally:
            await transport.close()

        assert response.status_code == 200
        assert seen["url"].path == "/cgi-bin/luci/admin/settings/gwinfo"
        assert seen["url"].params["get"] == "part"
        assert seen["url"].host == "192.168.1.1"

    async def test_post_form_encoded(self, router_config):
        seen = {}

        def handler(request):
            seen["body"] = request.content.decode()
            seen["content_type"] = request.headers["content-type"]
            return httpx.Response(200, json={"retVal": 0})

        transport = make_transport(router_config, handler)
        try:
            await transport.send(RouterRequest("POST", "/cgi-bin/luci", form={"username": "u", "psd": "p"}))
        finally:
            await transport.close()

        assert seen["body"] == "username=u&psd=p"
        assert seen["content_type"] == "application/x-www-form-urlencoded"

    async def test_error_status_returned_not_raised(self, router_config):
        transport = make_transport(router_config, lambda request: httpx.Response(500))
        try:
            response = await transport.send(RouterRequest("GET", "/cgi-bin/luci"))
        finally:
            await transport.close()
        assert response.status_code == 500

    async def test_unsupported_method(self, router_config):
        transport = make_transport(router_config, lambda request: httpx.Response(200))
        try:
            with pytest.raises(ValidationError):
                await transport.send(RouterRequest("DELETE", "/cgi-bin/luci"))
        finally:
            await transport.close()

    async def test_timeout_mapped(self, router_config):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        transport = make_transport(router_config, handler)
        try:
            with pytest.raises(TransportTimeoutError):
                await transport.send(RouterRequest("GET", "/cgi-bin/luci"))
        finally:
            await transport.close()

    async def test_connect_error_mapped(self, router_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = make_transport(router_config, handler)
        try:
            with pytest.raises(TransportError) as exc_info:
                await transport.send(RouterRequest("GET", "/cgi-bin/luci"))
        finally:
            await transport.close()
        assert not isinstance(exc_info.value, TransportTimeoutError)
        assert exc_info.value.context["base_url"] == "http://192.168.1.1"

    async def test_cookies_persist_and_clear(self, router_config):
        def handler(request):
            if request.url.path == "/cgi-bin/luci":
                return httpx.Response(200, headers={"Set-Cookie": "sysauth=abc; path=/"})
            return httpx.Response(200, json={"cookie": request.headers.get("cookie", "")})

        transport = make_transport(router_config, handler)
        try:
            await transport.send(RouterRequest("POST", "/cgi-bin/luci"))
            response = await transport.send(RouterRequest("GET", "/cgi-bin/luci/admin"))
            assert response.json()["cookie"] == "sysauth=abc"

            transport.clear_cookies()
            response = await transport.send(RouterRequest("GET", "/cgi-bin/luci/admin"))
            assert response.json()["cookie"] == ""
        finally:
            await transport.close()
