"""
Tianyi Router Client - Response Decoder

Turns raw gateway responses into typed records, and decides whether a response
means the session has expired.
"""

import json
import logging
import re
from enum import Enum
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Any, Union

import httpx
import pydantic

from ..shared.constants import LUCI_LOGIN, RULE_TABLE_META_KEYS
from .exceptions import DecodeError
from .models import (
    ForwardingRule,
    GatewayInfo,
    LoginResult,
    OperationAck,
    PublicIPRecord,
    RuleTable,
)

logger = logging.getLogger("tianyi-router")

# The admin page embeds the anti-automation token in inline script
_TOKEN_PATTERN = re.compile(r"token\s*:\s*'([a-z0-9]{32})'")

# A login form has both credential inputs present at the same time
_LOGIN_FORM_MARKERS = ('name="username"', 'name="psd"')


class RecordKind(str, Enum):
    """Record types the decoder can produce."""
    LOGIN_RESULT = "login_result"
    RULE_LIST = "rule_list"
    OPERATION_ACK = "operation_ack"
    PUBLIC_IP = "public_ip"
    GATEWAY_INFO = "gateway_info"


Record = Union[LoginResult, RuleTable, OperationAck, PublicIPRecord, GatewayInfo]


def _is_html(response: httpx.Response) -> bool:
    content_type = response.headers.get("Content-Type", "").split(";")[0].strip().lower()
    if content_type in ("text/html", "application/xhtml+xml"):
        return True
    return response.text.lstrip().startswith("<")


def looks_like_login_form(response: httpx.Response) -> bool:
    """Return True if the response body is the gateway's login page."""
    if not _is_html(response):
        return False
    text = response.text
    return all(marker in text for marker in _LOGIN_FORM_MARKERS)


def is_session_expired(response: httpx.Response) -> bool:
    """Default session-expiry predicate.

    The gateway signals an expired session by refusing the request outright,
    by redirecting back to the login page, or by serving the login form in
    place of the expected JSON payload.
    """
    if response.status_code in (401, 403):
        return True
    if response.history and response.url.path.rstrip("/") == LUCI_LOGIN:
        return True
    return looks_like_login_form(response)


def _load_json(response: httpx.Response, kind: RecordKind) -> Any:
    def reject_duplicates(pairs):
        seen = {}
        for key, value in pairs:
            if key in seen:
                raise DecodeError(f"Duplicate key in {kind.value} payload: {key}",
                                  expected_kind=kind.value, context={"key": key})
            seen[key] = value
        return seen

    try:
        return json.loads(response.text, object_pairs_hook=reject_duplicates)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Invalid JSON in {kind.value} response: {e}",
                          expected_kind=kind.value,
                          context={"status_code": response.status_code}) from e


def _decode_login(response: httpx.Response) -> LoginResult:
    match = _TOKEN_PATTERN.search(response.text)
    if match:
        return LoginResult(token=match.group(1))
    if response.status_code in (401, 403) or looks_like_login_form(response):
        return LoginResult(rejected=True)
    raise DecodeError("Login response matched neither success nor rejection",
                      expected_kind=RecordKind.LOGIN_RESULT.value,
                      context={"status_code": response.status_code})


def _decode_rule_table(response: httpx.Response) -> RuleTable:
    payload = _load_json(response, RecordKind.RULE_LIST)
    if not isinstance(payload, dict):
        raise DecodeError("Rule table payload is not an object",
                          expected_kind=RecordKind.RULE_LIST.value)

    rules = []
    for key, entry in payload.items():
        if key in RULE_TABLE_META_KEYS or not isinstance(entry, dict):
            continue
        try:
            rules.append(ForwardingRule(
                id=key,
                name=entry["desp"],
                protocol=entry["protocol"],
                external_port=entry["exPort"],
                internal_ip=entry["client"],
                internal_port=entry["inPort"],
                enabled=bool(int(entry.get("enable", 1))),
            ))
        except (KeyError, TypeError, ValueError) as e:
            # pydantic.ValidationError is a ValueError
            raise DecodeError(f"Malformed rule entry {key!r}: {e}",
                              expected_kind=RecordKind.RULE_LIST.value,
                              context={"rule_key": key}) from e

    count = payload.get("count", len(rules))
    try:
        count = int(count)
    except (TypeError, ValueError):
        count = len(rules)
    if count != len(rules):
        logger.debug(f"Rule table reports count={count} but carries {len(rules)} entries")

    return RuleTable(
        lan_ip=payload.get("lanIp"),
        mask=payload.get("mask"),
        count=count,
        rules=rules,
    )


def _decode_ack(response: httpx.Response) -> OperationAck:
    payload = _load_json(response, RecordKind.OPERATION_ACK)
    try:
        return OperationAck.model_validate(payload)
    except pydantic.ValidationError as e:
        raise DecodeError(f"Malformed operation acknowledgment: {e}",
                          expected_kind=RecordKind.OPERATION_ACK.value) from e


def _decode_gateway_info(response: httpx.Response) -> GatewayInfo:
    payload = _load_json(response, RecordKind.GATEWAY_INFO)
    if not isinstance(payload, dict):
        raise DecodeError("Gateway info payload is not an object",
                          expected_kind=RecordKind.GATEWAY_INFO.value)
    try:
        return GatewayInfo.model_validate(payload)
    except pydantic.ValidationError as e:
        raise DecodeError(f"Malformed gateway info: {e}",
                          expected_kind=RecordKind.GATEWAY_INFO.value) from e


def _parse_address(value: str) -> Union[IPv4Address, IPv6Address, None]:
    value = (value or "").strip()
    if not value:
        return None
    # WANIPv6 may carry a prefix length
    value = value.split("/")[0]
    try:
        return ip_address(value)
    except ValueError:
        return None


def _decode_public_ip(response: httpx.Response) -> PublicIPRecord:
    info = _decode_gateway_info(response)
    v4 = _parse_address(info.wan_ip)
    v6 = _parse_address(info.wan_ipv6)
    if v6 is not None and not isinstance(v6, IPv6Address):
        v6 = None

    address = v4 or v6
    if address is None:
        raise DecodeError("Gateway reported no WAN address",
                          expected_kind=RecordKind.PUBLIC_IP.value,
                          context={"wan_ip": info.wan_ip, "wan_ipv6": info.wan_ipv6})
    return PublicIPRecord(address=address, address_v6=v6)


_DECODERS = {
    RecordKind.LOGIN_RESULT: _decode_login,
    RecordKind.RULE_LIST: _decode_rule_table,
    RecordKind.OPERATION_ACK: _decode_ack,
    RecordKind.PUBLIC_IP: _decode_public_ip,
    RecordKind.GATEWAY_INFO: _decode_gateway_info,
}


def decode(response: httpx.Response, expected_kind: RecordKind) -> Record:
    """Decode a raw gateway response into the expected record type.

    Args:
        response: Raw response from the transport
        expected_kind: Record type the caller expects

    Returns:
        The decoded record

    Raises:
        DecodeError: If the response does not have the expected shape
    """
    return _DECODERS[RecordKind(expected_kind)](response)
