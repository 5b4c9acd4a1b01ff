"""
Tianyi Router Client - Rule Transaction Engine

Moves every enabled forwarding rule from one LAN address to another. The gateway
has no multi-step transactions, so each rule is moved with a compensating-action
sequence:

1. add the replacement bound to the new address,
2. verify the gateway lists it, enabled,
3. remove the original,
4. verify the original is gone.

A replacement is never rolled back. If step 3 or 4 fails both rules stay active
and the rule is reported as duplicated for a human to clean up.

Cancelling ``replace`` does not interrupt a rule whose sequence has started:
those run to a reportable result, rules still waiting are left in place, the
outcome is logged, and the cancellation is then re-raised.
"""

import asyncio
import logging
from ipaddress import IPv4Address
from typing import List, Optional, Union

from .exceptions import (
    RuleNotFoundError,
    RuleRejectedError,
    TianyiError,
    ValidationError,
    VerificationPendingError,
)
from .models import (
    ForwardingRule,
    ForwardingRuleDraft,
    OutcomeKind,
    ReplacementStatus,
    RuleReplacement,
    TransactionOutcome,
)
from .repository import RuleRepository
from .retry import RetryConfig, retry_with_backoff

logger = logging.getLogger("tianyi-router")

CANCELLED_BEFORE_START = "replace cancelled before this rule was started"


class RuleTransactionEngine:
    """Replaces rule bindings without ever leaving a binding unserved."""

    def __init__(
        self,
        repository: RuleRepository,
        retry_config: Optional[RetryConfig] = None,
        max_concurrency: int = 1,
    ):
        """Initialize the engine.

        Args:
            repository: Rule repository bound to an active session
            retry_config: Bounded retry policy for verification steps
            max_concurrency: Affected rules processed at the same time
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.repository = repository
        self.retry_config = retry_config or RetryConfig.for_verification()
        self.max_concurrency = max_concurrency

    async def replace(
        self,
        old_ip: Union[str, IPv4Address],
        new_ip: Union[str, IPv4Address],
    ) -> TransactionOutcome:
        """Rebind every enabled rule that targets ``old_ip`` to ``new_ip``.

        Returns:
            The structured outcome. Failures are reported in the outcome, not
            raised.

        Raises:
            ValidationError: If either address is invalid or both are equal
            asyncio.CancelledError: After rules already in progress finished
        """
        try:
            old_ip = IPv4Address(str(old_ip))
            new_ip = IPv4Address(str(new_ip))
        except ValueError as e:
            raise ValidationError(f"Invalid IPv4 address: {e}") from e
        if old_ip == new_ip:
            raise ValidationError("Old and new address are the same",
                                  context={"ip": str(old_ip)})

        try:
            await self.repository.list()
        except TianyiError as e:
            logger.error(f"Could not read rule table before replacing {old_ip}: {e.message}")
            return TransactionOutcome.failed(old_ip, new_ip, f"could not read rule table: {e.message}")

        affected = [rule for rule in self.repository.find_by_target_ip(old_ip) if rule.enabled]
        if not affected:
            logger.info(f"No enabled rules target {old_ip}; nothing to replace")
            return TransactionOutcome.from_results(old_ip, new_ip, [])

        logger.info(f"Replacing {len(affected)} rule(s) from {old_ip} to {new_ip}")
        semaphore = asyncio.Semaphore(self.max_concurrency)
        cancelled = asyncio.Event()

        async def run(rule: ForwardingRule) -> RuleReplacement:
            async with semaphore:
                if cancelled.is_set():
                    return RuleReplacement(
                        original=rule,
                        status=ReplacementStatus.LEFT_IN_PLACE,
                        error=CANCELLED_BEFORE_START,
                    )
                return await self._replace_one(rule, old_ip, new_ip)

        batch = asyncio.gather(*(run(rule) for rule in affected))
        try:
            results = await asyncio.shield(batch)
        except asyncio.CancelledError:
            cancelled.set()
            logger.warning(f"Replace {old_ip} -> {new_ip} cancelled; finishing rules already started")
            results = await self._drain(batch)
            outcome = TransactionOutcome.from_results(old_ip, new_ip, list(results))
            logger.warning(
                f"Replace {old_ip} -> {new_ip} interrupted as {outcome.kind.value}: "
                f"duplicated={sorted(outcome.duplicated)} unreplaced={sorted(outcome.unreplaced)}"
            )
            raise

        outcome = TransactionOutcome.from_results(old_ip, new_ip, list(results))

        if outcome.kind == OutcomeKind.FULL_SUCCESS:
            logger.info(f"Replaced all {len(results)} rule(s) from {old_ip} to {new_ip}")
        else:
            logger.warning(
                f"Replace {old_ip} -> {new_ip} finished as {outcome.kind.value}: "
                f"duplicated={sorted(outcome.duplicated)} unreplaced={sorted(outcome.unreplaced)}"
            )
        return outcome

    @staticmethod
    async def _drain(batch: "asyncio.Future[List[RuleReplacement]]") -> List[RuleReplacement]:
        # Further cancellations only repeat the request already being honored
        while True:
            try:
                return await asyncio.shield(batch)
            except asyncio.CancelledError:
                if batch.done():
                    return batch.result()

    async def _replace_one(
        self,
        rule: ForwardingRule,
        old_ip: IPv4Address,
        new_ip: IPv4Address,
    ) -> RuleReplacement:
        draft = rule.retarget(new_ip)

        added: Optional[ForwardingRule] = None
        try:
            added = await self.repository.add(draft)
        except RuleRejectedError as e:
            logger.warning(f"Gateway rejected replacement for rule {rule.id}: {e.message}")
            return RuleReplacement(original=rule, status=ReplacementStatus.LEFT_IN_PLACE, error=e.message)
        except TianyiError as e:
            # The add may still have been applied; let verification decide
            logger.warning(f"Add for rule {rule.id} ended with {e.error_code}; verifying table")

        try:
            replacement = await retry_with_backoff(
                self._check_present, draft, added,
                retry_config=self.retry_config,
                operation=f"verify replacement of rule {rule.id}",
            )
        except TianyiError as e:
            logger.warning(f"Replacement for rule {rule.id} not verified: {e.message}")
            return RuleReplacement(
                original=rule,
                status=ReplacementStatus.LEFT_IN_PLACE,
                error=f"replacement not verified: {e.message}",
            )

        try:
            await self._remove_original(rule, old_ip)
            await retry_with_backoff(
                self._check_absent, rule, old_ip,
                retry_config=self.retry_config,
                operation=f"verify removal of rule {rule.id}",
            )
        except TianyiError as e:
            logger.warning(
                f"Rule {rule.id} and its replacement {replacement.id} are both active: {e.message}"
            )
            return RuleReplacement(
                original=rule,
                status=ReplacementStatus.DUPLICATED,
                replacement=replacement,
                error=e.message,
            )

        logger.info(f"Rule '{rule.name}' moved to {new_ip} (id {rule.id} -> {replacement.id})")
        return RuleReplacement(original=rule, status=ReplacementStatus.REPLACED, replacement=replacement)

    async def _check_present(
        self,
        draft: ForwardingRuleDraft,
        added: Optional[ForwardingRule],
    ) -> ForwardingRule:
        rules = await self.repository.list()
        candidates = [
            rule for rule in rules
            if rule.enabled
            and rule.internal_ip == draft.internal_ip
            and rule.binding_key() == draft.binding_key()
        ]
        if added is not None and added.id is not None:
            candidates.sort(key=lambda rule: rule.id != added.id)
        if not candidates:
            raise VerificationPendingError(
                f"Replacement for '{draft.name}' not listed yet",
                context={"name": draft.name, "internal_ip": str(draft.internal_ip)},
            )
        return candidates[0]

    def _current_original(self, rule: ForwardingRule, old_ip: IPv4Address) -> Optional[ForwardingRule]:
        candidates = self.repository.find_by_target_ip(old_ip)
        for candidate in candidates:
            if candidate.id == rule.id and candidate.is_equivalent(rule):
                return candidate
        # The gateway may renumber after a mutation; fall back to content
        for candidate in candidates:
            if candidate.is_equivalent(rule):
                return candidate
        return None

    async def _remove_original(self, rule: ForwardingRule, old_ip: IPv4Address) -> None:
        current = self._current_original(rule, old_ip)
        if current is None:
            logger.info(f"Rule {rule.id} already gone from the table")
            return
        try:
            await self.repository.remove(current.id)
        except RuleNotFoundError:
            logger.info(f"Rule {current.id} already removed")

    async def _check_absent(self, rule: ForwardingRule, old_ip: IPv4Address) -> None:
        await self.repository.list()
        if self._current_original(rule, old_ip) is not None:
            raise VerificationPendingError(
                f"Rule '{rule.name}' still bound to {old_ip}",
                context={"rule_id": rule.id},
            )
