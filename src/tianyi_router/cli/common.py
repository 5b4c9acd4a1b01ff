"""
Tianyi Router Client - CLI Helpers

Shared plumbing for commands that talk to the gateway.
"""

import asyncio
from typing import Any, Awaitable, Callable

import typer

from ..core.client import TianyiClient
from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError, TianyiError
from ..core.models import RouterConfig
from ..shared.error_handlers import report_error

ProfileOption = typer.Option("default", "--profile", "-p", help="Profile name to use")


def load_config(profile: str) -> RouterConfig:
    """Load a profile or exit with a helpful message."""
    try:
        return ConfigLoader.load(profile)
    except ConfigurationError as e:
        typer.echo(f"❌ Configuration error: {e.message}", err=True)
        typer.echo("\n💡 Run 'tianyi-router setup' to configure credentials")
        raise typer.Exit(1)


def run_client_action(
    config: RouterConfig,
    action: Callable[[TianyiClient], Awaitable[Any]],
    operation: str,
) -> Any:
    """Log in, run ``action`` with the client, log out.

    Gateway errors are reported without credentials and end the command with
    exit code 1.
    """
    async def _run():
        async with await TianyiClient.connect(config) as client:
            return await action(client)

    try:
        return asyncio.run(_run())
    except TianyiError as e:
        typer.echo(f"❌ {report_error(operation, e)}", err=True)
        raise typer.Exit(1)
