"""
Tianyi Router Client - Gateway Information Commands
"""

import json

import typer

from .common import ProfileOption, load_config, run_client_action


def public_ip_command(
    profile: str = ProfileOption,
    ipv6: bool = typer.Option(False, "--ipv6", help="Also print the WAN IPv6 address"),
):
    """
    Print the gateway's current public (WAN) address.

    Examples:
        tianyi-router public-ip
        tianyi-router public-ip --ipv6
    """
    config = load_config(profile)
    record = run_client_action(config, lambda client: client.get_public_ip(), "public_ip")

    typer.echo(str(record.address))
    if ipv6 and record.address_v6 is not None and record.address_v6 != record.address:
        typer.echo(str(record.address_v6))


def gateway_info_command(
    profile: str = ProfileOption,
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    Print descriptive gateway information (model, firmware, addresses).
    """
    config = load_config(profile)
    info = run_client_action(config, lambda client: client.get_gateway_info(), "gateway_info")

    if as_json:
        typer.echo(json.dumps(info.model_dump(), indent=2))
        return

    typer.echo(f"\n📡 {typer.style(info.model or 'Tianyi gateway', fg=typer.colors.CYAN, bold=True)}")
    typer.echo(f"   Firmware: {info.firmware_version}")
    typer.echo(f"   Serial:   {info.product_sn}")
    typer.echo(f"   MAC:      {info.mac}")
    typer.echo(f"   LAN:      {info.lan_ip} {info.lan_ipv6}".rstrip())
    typer.echo(f"   WAN:      {info.wan_ip} {info.wan_ipv6}".rstrip())
