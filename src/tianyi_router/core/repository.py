"""
Tianyi Router Client - Forwarding Rule Repository

Read model over the gateway's port mapping table plus the single-rule mutations
the gateway offers (add, enable, disable, delete).
"""

import logging
from ipaddress import IPv4Address
from typing import List, Optional, Union

import httpx

from ..shared.constants import (
    LUCI_PORT_MAPPING_DISPLAY,
    LUCI_PORT_MAPPING_SET,
    OP_ADD,
    OP_DELETE,
    OP_DISABLE,
    OP_ENABLE,
)
from .decoder import RecordKind, decode
from .exceptions import (
    AuthError,
    DecodeError,
    DecodeFailedError,
    RuleNotFoundError,
    RuleRejectedError,
    UnauthorizedError,
)
from .models import ForwardingRule, ForwardingRuleDraft, OperationAck, RuleTable
from .session import SessionManager
from .transport import RouterRequest

logger = logging.getLogger("tianyi-router")


def _rule_form(rule: ForwardingRuleDraft) -> dict:
    return {
        "client": str(rule.internal_ip),
        "protocol": rule.protocol.value,
        "exPort": str(rule.external_port),
        "inPort": str(rule.internal_port),
    }


class RuleRepository:
    """Forwarding rules as the gateway currently reports them.

    ``list()`` always fetches; ``find_by_target_ip()`` only filters the most
    recent listing. Table order follows the gateway and ids may not survive a
    mutation, so callers re-list before relying on positions.
    """

    def __init__(self, session: SessionManager):
        self.session = session
        self.last_table: Optional[RuleTable] = None
        self._rules: List[ForwardingRule] = []

    async def _call(self, request: RouterRequest) -> httpx.Response:
        try:
            return await self.session.authenticated_call(request)
        except AuthError as e:
            raise UnauthorizedError(
                f"No usable session for '{request.operation}': {e.message}",
                context={"operation": request.operation, "cause": e.error_code},
            ) from e

    def _decode(self, response: httpx.Response, kind: RecordKind):
        try:
            return decode(response, kind)
        except DecodeError as e:
            raise DecodeFailedError(
                e.message,
                context={"expected_kind": kind.value, "status_code": response.status_code},
            ) from e

    async def list(self) -> List[ForwardingRule]:
        """Fetch the gateway's current rule table, in table order."""
        response = await self._call(
            RouterRequest("GET", LUCI_PORT_MAPPING_DISPLAY, operation="list_rules")
        )
        table = self._decode(response, RecordKind.RULE_LIST)
        self.last_table = table
        self._rules = list(table.rules)
        logger.debug(f"Gateway reports {len(self._rules)} forwarding rule(s)")
        return list(self._rules)

    def find_by_target_ip(self, ip: Union[str, IPv4Address]) -> List[ForwardingRule]:
        """Rules from the most recent listing that forward to ``ip``."""
        target = IPv4Address(str(ip))
        return [rule for rule in self._rules if rule.internal_ip == target]

    def get(self, rule_id: str) -> Optional[ForwardingRule]:
        """Look up a rule by id in the most recent listing."""
        rule_id = str(rule_id)
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    async def _resolve(self, rule_id: str) -> ForwardingRule:
        rule = self.get(rule_id)
        if rule is None:
            await self.list()
            rule = self.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(f"Rule {rule_id} not found", context={"rule_id": str(rule_id)})
        return rule

    async def _mutate(self, op: str, rule: ForwardingRuleDraft, operation: str) -> OperationAck:
        form = {"srvname": rule.name, "op": op}
        form.update(_rule_form(rule))
        response = await self._call(
            RouterRequest("POST", LUCI_PORT_MAPPING_SET, form=form, mutating=True, operation=operation)
        )
        ack = self._decode(response, RecordKind.OPERATION_ACK)
        if not ack.ok:
            raise RuleRejectedError(
                f"Gateway refused '{op}' for rule '{rule.name}' (retVal={ack.ret_val})",
                ret_val=ack.ret_val,
                context={"op": op, "name": rule.name},
            )
        return ack

    async def add(self, draft: ForwardingRuleDraft) -> ForwardingRule:
        """Create a rule and return it with its gateway-assigned id.

        If the gateway's table does not show the new rule yet, the returned
        rule has ``id=None``.

        Raises:
            RuleRejectedError: The gateway refused the rule
        """
        known_ids = {rule.id for rule in self._rules}
        await self._mutate(OP_ADD, draft, "add_rule")

        rules = await self.list()
        matches = [
            rule for rule in rules
            if rule.internal_ip == draft.internal_ip and rule.binding_key() == draft.binding_key()
        ]
        fresh = [rule for rule in matches if rule.id not in known_ids]
        found = (fresh or matches or [None])[0]
        if found is None:
            logger.info(f"Rule '{draft.name}' accepted but not yet listed by the gateway")
            return ForwardingRule.model_validate({**draft.model_dump(), "id": None})

        # The gateway creates every rule enabled
        if not draft.enabled and found.enabled:
            await self.set_enabled(found.id, False)
            found = self.get(found.id) or found
        logger.info(f"Added rule '{found.name}' -> {found.internal_ip} as id {found.id}")
        return found

    async def remove(self, rule_id: str) -> None:
        """Delete a rule by id.

        Raises:
            RuleNotFoundError: The id is not in the gateway's table
        """
        rule = await self._resolve(rule_id)
        await self._mutate(OP_DELETE, rule, "remove_rule")
        self._rules = [r for r in self._rules if r.id != rule.id]
        logger.info(f"Removed rule '{rule.name}' (id {rule.id}) -> {rule.internal_ip}")

    async def set_enabled(self, rule_id: str, enabled: bool) -> None:
        """Enable or disable a rule by id.

        Raises:
            RuleNotFoundError: The id is not in the gateway's table
        """
        rule = await self._resolve(rule_id)
        await self._mutate(OP_ENABLE if enabled else OP_DISABLE, rule, "set_rule_enabled")
        self._rules = [
            r.model_copy(update={"enabled": enabled}) if r.id == rule.id else r
            for r in self._rules
        ]
        logger.info(f"{'Enabled' if enabled else 'Disabled'} rule '{rule.name}' (id {rule.id})")
