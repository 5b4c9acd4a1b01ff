"""
Tests for Tianyi router client - List Profiles CLI Command
"""

from unittest.mock import patch

from typer.testing import CliRunner

from tianyi_router.cli import app
from tianyi_router.core.config_loader import ConfigLoader

runner = CliRunner()


class TestListCommand:
    """Test list-profiles command."""

    def test_list_empty(self):
        with patch.object(ConfigLoader, "list_profiles", return_value=[]):
            result = runner.invoke(app, ["list-profiles"])

        assert result.exit_code == 0
        assert "No profiles configured" in result.output

    def test_list_profiles(self):
        with patch.object(ConfigLoader, "list_profiles", return_value=["default", "attic"]):
            result = runner.invoke(app, ["list-profiles"])

        assert result.exit_code == 0
        assert "default" in result.output
        assert "attic" in result.output
        assert "Found 2 profile(s)" in result.output

    def test_list_verbose(self):
        with (
            patch.object(ConfigLoader, "list_profiles", return_value=["default"]),
            patch.object(
                ConfigLoader,
                "get_profile_info",
                return_value={
                    "host": "192.168.1.1",
                    "username": "useradmin",
                    "use_https": False,
                    "password_in_keyring": True,
                },
            ),
        ):
            result = runner.invoke(app, ["list-profiles", "--verbose"])

        assert result.exit_code == 0
        assert "Host: 192.168.1.1" in result.output
        assert "Username: useradmin" in result.output
