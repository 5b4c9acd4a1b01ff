"""
Tianyi Router Client - Delete Profile Command
"""

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError


def delete_command(
    profile: str = typer.Argument(..., help="Profile name to delete"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
):
    """
    Delete a gateway profile and any password stored for it in the keyring.

    Examples:
        tianyi-router delete-profile office
        tianyi-router delete-profile office --force
    """
    typer.echo("\n🗑️  Delete Gateway Profile\n")

    try:
        profiles = ConfigLoader.list_profiles()
        if profile not in profiles:
            typer.echo(f"❌ Profile '{profile}' not found", err=True)
            typer.echo(f"\n📋 Available profiles: {', '.join(profiles) if profiles else 'None'}")
            raise typer.Exit(1)

        if not force:
            if not typer.confirm(
                f"⚠️  Are you sure you want to delete profile '{profile}'?", default=False
            ):
                typer.echo("Operation cancelled")
                raise typer.Exit(0)

        ConfigLoader.delete_profile(profile)
        typer.echo(f"\n✅ Profile '{profile}' deleted successfully")

    except ConfigurationError as e:
        typer.echo(f"❌ Error: {e.message}", err=True)
        raise typer.Exit(1)
