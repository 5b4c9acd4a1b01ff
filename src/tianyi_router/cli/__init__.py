"""
Tianyi Router Client - CLI Interface

Command-line access to the gateway: profiles, public IP, gateway information
and port forwarding rules.
"""

import logging
import sys

import typer

from .setup import setup_command
from .list import list_command
from .delete import delete_command
from .gateway import gateway_info_command, public_ip_command
from .rules import (
    add_rule_command,
    disable_rule_command,
    enable_rule_command,
    list_rules_command,
    remove_rule_command,
    replace_ip_command,
)

app = typer.Typer(
    name="tianyi-router",
    help="Tianyi gateway administration from the command line",
    add_completion=False
)


@app.callback()
def configure_logging(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log gateway requests (DEBUG)"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Profiles
app.command(name="setup", help="Configure gateway connection credentials")(setup_command)
app.command(name="list-profiles", help="List all configured profiles")(list_command)
app.command(name="delete-profile", help="Delete a credential profile")(delete_command)

# Gateway
app.command(name="public-ip", help="Print the gateway's public IP")(public_ip_command)
app.command(name="gateway-info", help="Show gateway model, firmware and addresses")(gateway_info_command)

# Port forwarding
app.command(name="list-rules", help="List port forwarding rules")(list_rules_command)
app.command(name="add-rule", help="Add a port forwarding rule")(add_rule_command)
app.command(name="remove-rule", help="Remove a port forwarding rule")(remove_rule_command)
app.command(name="enable-rule", help="Enable a port forwarding rule")(enable_rule_command)
app.command(name="disable-rule", help="Disable a port forwarding rule")(disable_rule_command)
app.command(name="replace-ip", help="Move rules from one LAN address to another")(replace_ip_command)


def main():
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\n\nOperation cancelled by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
