"""
Tests for Tianyi router client endpoint constants.

This module tests that the LuCI endpoint constants and defaults are defined
and follow the expected format.
"""

import pytest

from tianyi_router.shared import constants


class TestEndpointConstants:
    """Test LuCI endpoint constants."""

    @pytest.mark.parametrize("name", [
        "LUCI_LOGIN",
        "LUCI_LOGOUT",
        "LUCI_GATEWAY_INFO",
        "LUCI_PORT_MAPPING_DISPLAY",
        "LUCI_PORT_MAPPING_SET",
    ])
    def test_paths_are_luci_paths(self, name):
        path = getattr(constants, name)
        assert path.startswith("/cgi-bin/luci")
        assert not path.endswith("/")

    def test_port_mapping_ops(self):
        assert {constants.OP_ADD, constants.OP_ENABLE, constants.OP_DISABLE, constants.OP_DELETE} == {
            "add", "enable", "disable", "del"
        }


class TestSensitiveFields:
    """Test that credential fields are marked sensitive."""

    def test_password_and_token_are_sensitive(self):
        assert constants.FIELD_PASSWORD in constants.SENSITIVE_FIELDS
        assert constants.FIELD_TOKEN in constants.SENSITIVE_FIELDS

    def test_defaults(self):
        assert constants.DEFAULT_HOST == "192.168.1.1"
        assert constants.DEFAULT_USERNAME == "useradmin"
        assert constants.DEFAULT_MAX_CONCURRENCY >= 1
