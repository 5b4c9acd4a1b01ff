"""
Tianyi Router Client - Setup Command

Interactive setup for gateway connection profiles.
"""

import asyncio
import getpass

import pydantic
import typer

from ..core.client import TianyiClient
from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError, TianyiError
from ..core.models import RouterConfig
from ..shared.constants import DEFAULT_HOST, DEFAULT_USERNAME


def setup_command(
    profile: str = typer.Option("default", "--profile", "-p", help="Profile name"),
    host: str | None = typer.Option(None, "--host", help=f"Gateway address (default {DEFAULT_HOST})"),
    username: str | None = typer.Option(None, "--username", "-u", help="Administrator username"),
    password: str | None = typer.Option(None, "--password", help="Administrator password"),
    use_https: bool = typer.Option(False, "--https/--http", help="Talk to the gateway over HTTPS"),
    use_keyring: bool = typer.Option(
        False, "--keyring/--no-keyring", help="Store the password in the system keyring"
    ),
    interactive: bool = typer.Option(
        True, "--interactive/--non-interactive", help="Interactive mode with prompts"
    ),
):
    """
    Configure a gateway connection profile.

    Examples:
        # Interactive setup
        tianyi-router setup

        # Non-interactive setup
        tianyi-router setup --host 192.168.1.1 --password SECRET --non-interactive
    """
    typer.echo("\n🔧 Tianyi Router - Profile Setup\n")
    typer.echo(f"Profile: {typer.style(profile, fg=typer.colors.CYAN, bold=True)}\n")

    if interactive:
        if not host:
            host = typer.prompt("Gateway address", default=DEFAULT_HOST)
        if not username:
            username = typer.prompt("Username", default=DEFAULT_USERNAME)
        if not password:
            password = getpass.getpass("Password (hidden): ")
    elif not password:
        typer.echo("❌ Error: --password is required in non-interactive mode", err=True)
        raise typer.Exit(1)

    try:
        config = RouterConfig(
            host=host or DEFAULT_HOST,
            username=username or DEFAULT_USERNAME,
            password=password,
            use_https=use_https,
        )
    except pydantic.ValidationError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("\n🔍 Testing login...")
    if not _test_login(config):
        if not interactive or not typer.confirm("Login test failed. Save anyway?", default=False):
            typer.echo("Setup cancelled")
            raise typer.Exit(1)

    try:
        ConfigLoader.save_profile(profile, config, use_keyring=use_keyring)
    except ConfigurationError as e:
        typer.echo(f"\n❌ Error saving profile: {e.message}", err=True)
        raise typer.Exit(1)

    typer.echo(f"\n✅ Profile '{profile}' saved successfully!")
    typer.echo(f"\n📍 Config location: {ConfigLoader.DEFAULT_CONFIG_FILE}")
    typer.echo("🔒 File permissions: 0600 (owner read/write only)")
    if use_keyring:
        typer.echo("🔑 Password stored in the system keyring")


def _test_login(config: RouterConfig) -> bool:
    """Log in and out once; returns True on success."""
    async def attempt():
        async with await TianyiClient.connect(config):
            pass

    try:
        asyncio.run(attempt())
    except TianyiError as e:
        typer.echo(f"⚠️  Login failed: {e.message}")
        return False

    typer.echo("✅ Login successful!")
    return True
