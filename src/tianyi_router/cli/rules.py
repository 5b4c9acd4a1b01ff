"""
Tianyi Router Client - Port Forwarding Commands

List, add, remove, toggle and retarget forwarding rules.
"""

import json

import typer

from ..core.exceptions import ValidationError
from ..core.models import ForwardingRuleDraft, OutcomeKind, Protocol
from ..shared.error_handlers import validate_ipv4, validate_port_spec
from .common import ProfileOption, load_config, run_client_action


def _validated(func, value: str, operation: str):
    try:
        return func(value, operation)
    except ValidationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(2)


def list_rules_command(
    profile: str = ProfileOption,
    target: str = typer.Option(None, "--target", "-t", help="Only rules forwarding to this LAN address"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """
    List port forwarding rules in gateway table order.

    Examples:
        tianyi-router list-rules
        tianyi-router list-rules --target 192.168.1.11 --json
    """
    target_ip = _validated(validate_ipv4, target, "list_rules") if target else None
    config = load_config(profile)
    rules = run_client_action(config, lambda client: client.list_rules(), "list_rules")
    if target_ip is not None:
        rules = [rule for rule in rules if rule.internal_ip == target_ip]

    if as_json:
        typer.echo(json.dumps([rule.to_dict() for rule in rules], indent=2))
        return

    if not rules:
        typer.echo("No port forwarding rules found")
        return

    typer.echo(f"{'ID':<10} {'Name':<20} {'Proto':<6} {'Ext Port':<12} {'Internal IP':<16} {'Int Port':<12} {'State':<8}")
    typer.echo("-" * 88)
    for rule in rules:
        typer.echo(
            f"{rule.id:<10} {rule.name:<20} {rule.protocol.value:<6} {str(rule.external_port):<12} "
            f"{str(rule.internal_ip):<16} {str(rule.internal_port):<12} "
            f"{'enabled' if rule.enabled else 'disabled':<8}"
        )


def add_rule_command(
    name: str = typer.Argument(..., help="Service name for the rule"),
    external_port: str = typer.Argument(..., help="External port or range (80, 8000-8010)"),
    internal_ip: str = typer.Argument(..., help="LAN address to forward to"),
    internal_port: str = typer.Option(None, "--internal-port", help="Internal port or range (default: external)"),
    protocol: Protocol = typer.Option(Protocol.TCP, "--protocol", case_sensitive=False, help="TCP, UDP or BOTH"),
    profile: str = ProfileOption,
):
    """
    Add a port forwarding rule.

    Examples:
        tianyi-router add-rule web 80 192.168.1.11
        tianyi-router add-rule game 27015 192.168.1.20 --protocol BOTH
    """
    ext = _validated(validate_port_spec, external_port, "add_rule")
    ip = _validated(validate_ipv4, internal_ip, "add_rule")
    internal = _validated(validate_port_spec, internal_port, "add_rule") if internal_port else ext

    draft = ForwardingRuleDraft(
        name=name,
        protocol=protocol,
        external_port=ext,
        internal_ip=ip,
        internal_port=internal,
    )
    config = load_config(profile)
    rule = run_client_action(config, lambda client: client.add_rule(draft), "add_rule")

    rule_id = rule.id if rule.id is not None else "(pending)"
    typer.echo(f"✅ Added rule '{rule.name}' {rule.external_port} -> {rule.internal_ip}:{rule.internal_port} (id {rule_id})")


def remove_rule_command(
    rule_id: str = typer.Argument(..., help="Rule id as shown by list-rules"),
    profile: str = ProfileOption,
):
    """
    Remove a port forwarding rule by id.
    """
    config = load_config(profile)
    run_client_action(config, lambda client: client.remove_rule(rule_id), "remove_rule")
    typer.echo(f"✅ Removed rule {rule_id}")


def enable_rule_command(
    rule_id: str = typer.Argument(..., help="Rule id as shown by list-rules"),
    profile: str = ProfileOption,
):
    """
    Enable a port forwarding rule.
    """
    config = load_config(profile)
    run_client_action(config, lambda client: client.set_rule_enabled(rule_id, True), "enable_rule")
    typer.echo(f"✅ Enabled rule {rule_id}")


def disable_rule_command(
    rule_id: str = typer.Argument(..., help="Rule id as shown by list-rules"),
    profile: str = ProfileOption,
):
    """
    Disable a port forwarding rule.
    """
    config = load_config(profile)
    run_client_action(config, lambda client: client.set_rule_enabled(rule_id, False), "disable_rule")
    typer.echo(f"✅ Disabled rule {rule_id}")


def replace_ip_command(
    old_ip: str = typer.Argument(..., help="LAN address the rules currently forward to"),
    new_ip: str = typer.Argument(..., help="LAN address the rules should forward to"),
    profile: str = ProfileOption,
    as_json: bool = typer.Option(False, "--json", help="Print the outcome as JSON"),
):
    """
    Move every enabled rule from OLD_IP to NEW_IP.

    Replacements are added and verified before originals are removed. Exit
    code is 0 for a full success or nothing to do, 3 when manual review is
    needed.

    Examples:
        tianyi-router replace-ip 192.168.1.11 192.168.1.12
    """
    old = _validated(validate_ipv4, old_ip, "replace_ip")
    new = _validated(validate_ipv4, new_ip, "replace_ip")
    if old == new:
        typer.echo("❌ Old and new address are the same", err=True)
        raise typer.Exit(2)

    config = load_config(profile)
    outcome = run_client_action(
        config, lambda client: client.replace_rule_target_ip(old, new), "replace_ip"
    )

    if as_json:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
    elif outcome.kind == OutcomeKind.NO_OP_EMPTY_BINDING:
        typer.echo(f"Nothing to do: no enabled rules forward to {old}")
    elif outcome.kind == OutcomeKind.FULL_SUCCESS:
        typer.echo(f"✅ Moved {len(outcome.results)} rule(s) from {old} to {new}")
    else:
        typer.echo(f"⚠️  {typer.style(outcome.kind.value, fg=typer.colors.YELLOW, bold=True)}: manual review needed")
        if outcome.reason:
            typer.echo(f"   {outcome.reason}")
        for result in outcome.results:
            line = f"   • rule {result.original.id} ({result.original.name}): {result.status.value}"
            if result.error:
                line += f" - {result.error}"
            typer.echo(line)

    if outcome.needs_review:
        raise typer.Exit(3)
