"""
Tianyi Router Client - List Profiles Command
"""

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError


def list_command(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show details for each profile"
    )
):
    """
    List all configured gateway profiles.

    Examples:
        tianyi-router list-profiles
        tianyi-router list-profiles --verbose
    """
    typer.echo("\n📋 Configured Gateway Profiles\n")

    try:
        profiles = ConfigLoader.list_profiles()
    except ConfigurationError as e:
        typer.echo(f"❌ Error listing profiles: {e.message}", err=True)
        raise typer.Exit(1)

    if not profiles:
        typer.echo("❌ No profiles configured yet")
        typer.echo("\n💡 Tip: Run 'tianyi-router setup' to configure your first profile")
        return

    typer.echo(f"Found {len(profiles)} profile(s):\n")

    for profile in profiles:
        if not verbose:
            typer.echo(f"  • {profile}")
            continue

        info = ConfigLoader.get_profile_info(profile)
        typer.echo(f"📦 {typer.style(profile, fg=typer.colors.CYAN, bold=True)}")
        typer.echo(f"   Host: {info['host']}")
        typer.echo(f"   Username: {info['username']}")
        typer.echo(f"   HTTPS: {'✓' if info['use_https'] else '✗'}")
        typer.echo(f"   Password in keyring: {'✓' if info['password_in_keyring'] else '✗'}")
        typer.echo()

    typer.echo(f"\n📍 Config file: {ConfigLoader.DEFAULT_CONFIG_FILE}")
