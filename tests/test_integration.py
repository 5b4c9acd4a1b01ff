"""
Integration tests for the Tianyi router client.

These tests drive the public client against the fake gateway through complete
workflows: login, rule replacement, expiry recovery and logout.
"""

from ipaddress import IPv4Address

import pytest

from tianyi_router import OutcomeKind, SessionExpiredError, TianyiClient, UnauthorizedError

from fixtures.fake_router import NEW_IP, OLD_IP, FakeRouter, make_rule


def enabled_bindings(rules, *clients):
    return {
        (r["desp"], r["protocol"], str(r["exPort"]), str(r["inPort"]))
        for r in rules
        if r["client"] in clients and int(r["enable"])
    }


@pytest.mark.asyncio
@pytest.mark.integration
class TestReplaceWorkflows:
    """Test complete replace workflows."""

    async def test_single_rule_moved(self, router_config):
        router = FakeRouter(rules=[make_rule("web", OLD_IP, 80)])

        async with await TianyiClient.connect(router_config, http_transport=router) as client:
            outcome = await client.replace_rule_target_ip(OLD_IP, NEW_IP)
            rules = await client.list_rules()

        assert outcome.kind == OutcomeKind.FULL_SUCCESS
        adds = [r.form for r in router.requests if r.form.get("op") == "add"]
        assert len(adds) == 1
        assert adds[0]["client"] == NEW_IP

        assert len(rules) == 1
        rule = rules[0]
        assert rule.id == "2"
        assert rule.name == "web"
        assert rule.internal_ip == IPv4Address(NEW_IP)
        assert str(rule.external_port) == "80"
        assert rule.enabled

    async def test_replace_twice(self, client, fake_router):
        first = await client.replace_rule_target_ip(OLD_IP, NEW_IP)
        second = await client.replace_rule_target_ip(OLD_IP, NEW_IP)

        assert first.kind == OutcomeKind.FULL_SUCCESS
        assert second.kind == OutcomeKind.NO_OP_EMPTY_BINDING
        assert client.rules.find_by_target_ip(OLD_IP) == []

    async def test_bindings_always_served(self, client, fake_router):
        before = enabled_bindings(fake_router.rules.values(), OLD_IP)
        fake_router.hide_new_rules_for = 1
        fake_router.reject("del:ssh")

        await client.replace_rule_target_ip(OLD_IP, NEW_IP)

        assert fake_router.snapshots
        for table in fake_router.snapshots:
            assert before <= enabled_bindings(table, OLD_IP, NEW_IP)

    async def test_failed_remove_leaves_both_rules(self, router_config):
        router = FakeRouter(rules=[make_rule("web", OLD_IP, 80)])
        router.reject("del")

        async with await TianyiClient.connect(router_config, http_transport=router) as client:
            outcome = await client.replace_rule_target_ip(OLD_IP, NEW_IP)
            rules = await client.list_rules()

        assert outcome.kind == OutcomeKind.PARTIAL_SUCCESS
        assert outcome.duplicated == {"1"}
        assert {(str(r.internal_ip), r.enabled) for r in rules} == {(OLD_IP, True), (NEW_IP, True)}


@pytest.mark.asyncio
@pytest.mark.integration
class TestSessionWorkflows:
    """Test session recovery across operations."""

    async def test_expiry_between_operations(self, client, fake_router):
        await client.list_rules()
        fake_router.expire_sessions()

        outcome = await client.replace_rule_target_ip(OLD_IP, NEW_IP)

        assert outcome.kind == OutcomeKind.FULL_SUCCESS
        assert fake_router.login_count == 2

    async def test_persistent_expiry_fails_after_one_relogin(self, client, fake_router):
        fake_router.always_expired = True

        with pytest.raises(UnauthorizedError) as exc_info:
            await client.list_rules()

        assert isinstance(exc_info.value.__cause__, SessionExpiredError)
        assert fake_router.login_count == 2

    async def test_relogin_after_logout(self, client, fake_router):
        await client.logout()
        await client.login()

        rules = await client.list_rules()
        assert len(rules) == 3
        assert fake_router.login_count == 2
