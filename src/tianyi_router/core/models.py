"""
Tianyi Router Client - Data Models

This module contains Pydantic models for configuration, gateway records and
transaction outcomes.
"""

import re
from datetime import datetime
from enum import Enum
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..shared.constants import (
    DEFAULT_HOST,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_REQUESTS_PER_SECOND,
    DEFAULT_TIMEOUT,
    DEFAULT_USERNAME,
    DEFAULT_VERIFY_ATTEMPTS,
    DEFAULT_VERIFY_DELAY,
)

_PORT_RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*(?:[-:]\s*(\d+))?\s*$")


class RouterConfig(BaseModel):
    """Configuration for a Tianyi gateway connection."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = Field(default=DEFAULT_HOST, description="Gateway address or hostname")
    username: str = Field(default=DEFAULT_USERNAME, description="Administrator username")
    password: str = Field(default="", description="Administrator password", repr=False)
    use_https: bool = Field(default=False, description="Talk to the gateway over HTTPS")
    verify_ssl: bool = Field(default=True, description="Whether to verify SSL certificates")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Per-request timeout in seconds")
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1, description="Concurrent requests allowed")
    requests_per_second: float = Field(default=DEFAULT_REQUESTS_PER_SECOND, gt=0)
    verify_attempts: int = Field(default=DEFAULT_VERIFY_ATTEMPTS, ge=1)
    verify_delay: float = Field(default=DEFAULT_VERIFY_DELAY, ge=0)

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        """Strip any scheme and trailing slash from the host."""
        v = v.strip()
        for prefix in ("http://", "https://"):
            if v.startswith(prefix):
                v = v[len(prefix):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("host must not be empty")
        return v

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}"


class Protocol(str, Enum):
    """Transport protocol of a forwarding rule."""
    TCP = "TCP"
    UDP = "UDP"
    BOTH = "BOTH"

    @classmethod
    def parse(cls, value: Union[str, "Protocol"]) -> "Protocol":
        if isinstance(value, Protocol):
            return value
        normalized = str(value).strip().upper()
        if normalized in ("TCP/UDP", "TCPUDP", "ALL", "TCP&UDP"):
            return cls.BOTH
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown protocol: {value!r}")


class PortRange(BaseModel):
    """A single port or an inclusive port range."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=1, le=65535)
    end: int = Field(..., ge=1, le=65535)

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError(f"port range end {self.end} is below start {self.start}")
        return self

    @classmethod
    def parse(cls, value: Union[int, str, "PortRange", dict]) -> "PortRange":
        """Build a range from ``80``, ``"80"``, ``"8000-8010"`` or ``"8000:8010"``."""
        if isinstance(value, PortRange):
            return value
        if isinstance(value, dict):
            return cls(**value)
        if isinstance(value, int):
            return cls(start=value, end=value)
        match = _PORT_RANGE_PATTERN.match(str(value))
        if not match:
            raise ValueError(f"Invalid port or port range: {value!r}")
        start = int(match.group(1))
        end = int(match.group(2)) if match.group(2) else start
        return cls(start=start, end=end)

    @property
    def is_single(self) -> bool:
        return self.start == self.end

    def __str__(self) -> str:
        if self.is_single:
            return str(self.start)
        return f"{self.start}-{self.end}"


class ForwardingRuleDraft(BaseModel):
    """A forwarding rule that has not been assigned an id by the gateway."""

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(..., min_length=1, description="Service name (srvname / desp)")
    protocol: Protocol = Protocol.TCP
    external_port: PortRange
    internal_ip: IPv4Address
    internal_port: PortRange
    enabled: bool = True

    @field_validator("protocol", mode="before")
    @classmethod
    def parse_protocol(cls, v):
        return Protocol.parse(v)

    @field_validator("external_port", "internal_port", mode="before")
    @classmethod
    def parse_port(cls, v):
        return PortRange.parse(v)

    def binding_key(self) -> tuple:
        """Fields that identify the logical binding, independent of target and state."""
        return (self.name, self.protocol, self.external_port, self.internal_port)

    def is_equivalent(self, other: "ForwardingRuleDraft") -> bool:
        """True if both rules match on every field except ``internal_ip`` and ``id``."""
        return self.binding_key() == other.binding_key() and self.enabled == other.enabled

    def retarget(self, internal_ip: Union[str, IPv4Address]) -> "ForwardingRuleDraft":
        """Return a draft identical to this rule but bound to ``internal_ip``."""
        return ForwardingRuleDraft(
            name=self.name,
            protocol=self.protocol,
            external_port=self.external_port,
            internal_ip=IPv4Address(str(internal_ip)),
            internal_port=self.internal_port,
            enabled=self.enabled,
        )


class ForwardingRule(ForwardingRuleDraft):
    """A forwarding rule as listed in the gateway's table."""

    id: Optional[str] = Field(default=None, description="Gateway-assigned table key")

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v):
        return None if v is None else str(v)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "protocol": self.protocol.value,
            "external_port": str(self.external_port),
            "internal_ip": str(self.internal_ip),
            "internal_port": str(self.internal_port),
            "enabled": self.enabled,
        }


class RuleTable(BaseModel):
    """Decoded port mapping table as displayed by the gateway."""

    lan_ip: Optional[str] = None
    mask: Optional[str] = None
    count: int = 0
    rules: list[ForwardingRule] = Field(default_factory=list)


class LoginResult(BaseModel):
    """Outcome of a credential submission."""

    token: Optional[str] = Field(default=None, repr=False)
    rejected: bool = False


class OperationAck(BaseModel):
    """Acknowledgment returned by a rule mutation."""

    model_config = ConfigDict(populate_by_name=True)

    ret_val: int = Field(..., alias="retVal")

    @property
    def ok(self) -> bool:
        return self.ret_val == 0


class GatewayInfo(BaseModel):
    """Descriptive gateway information (read-only)."""

    model_config = ConfigDict(populate_by_name=True)

    lan_ip: str = Field(default="", alias="LANIP")
    lan_ipv6: str = Field(default="", alias="LANIPv6")
    mac: str = Field(default="", alias="MAC")
    wan_ip: str = Field(default="", alias="WANIP")
    wan_ipv6: str = Field(default="", alias="WANIPv6")
    product_sn: str = Field(default="", alias="ProductSN")
    dev_type: str = Field(default="", alias="DevType")
    sw_ver: str = Field(default="", alias="SWVer")
    product_cls: str = Field(default="", alias="ProductCls")

    @property
    def model(self) -> str:
        return self.dev_type

    @property
    def firmware_version(self) -> str:
        return self.sw_ver


class PublicIPRecord(BaseModel):
    """The gateway's current WAN address."""

    address: Union[IPv4Address, IPv6Address]
    address_v6: Optional[IPv6Address] = None
    observed_at: datetime = Field(default_factory=datetime.now)


# ========== Transaction outcomes ==========


class ReplacementStatus(str, Enum):
    """What happened to one affected rule during a replace."""
    REPLACED = "replaced"
    LEFT_IN_PLACE = "left_in_place"
    DUPLICATED = "duplicated"


class OutcomeKind(str, Enum):
    """Aggregate result of a replace transaction."""
    FULL_SUCCESS = "full_success"
    NO_OP_EMPTY_BINDING = "no_op_empty_binding"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class RuleReplacement(BaseModel):
    """Per-rule record of a replace transaction."""

    original: ForwardingRule
    status: ReplacementStatus
    replacement: Optional[ForwardingRule] = None
    error: Optional[str] = None


class TransactionOutcome(BaseModel):
    """Structured result of ``replace_rule_target_ip``."""

    kind: OutcomeKind
    old_ip: IPv4Address
    new_ip: IPv4Address
    results: list[RuleReplacement] = Field(default_factory=list)
    duplicated: set[str] = Field(default_factory=set)
    unreplaced: set[str] = Field(default_factory=set)
    reason: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        """True when a human should look at the rule table."""
        return self.kind in (OutcomeKind.PARTIAL_SUCCESS, OutcomeKind.FAILED)

    @classmethod
    def from_results(cls, old_ip, new_ip, results: list[RuleReplacement]) -> "TransactionOutcome":
        """Aggregate per-rule results into an outcome."""
        if not results:
            return cls(kind=OutcomeKind.NO_OP_EMPTY_BINDING, old_ip=old_ip, new_ip=new_ip)

        duplicated = {r.original.id for r in results if r.status == ReplacementStatus.DUPLICATED}
        unreplaced = {r.original.id for r in results if r.status == ReplacementStatus.LEFT_IN_PLACE}

        if not duplicated and not unreplaced:
            kind = OutcomeKind.FULL_SUCCESS
            reason = None
        elif len(unreplaced) == len(results):
            kind = OutcomeKind.FAILED
            reason = "; ".join(r.error for r in results if r.error) or "no rule could be replaced"
        else:
            kind = OutcomeKind.PARTIAL_SUCCESS
            reason = "manual review needed"

        return cls(
            kind=kind,
            old_ip=old_ip,
            new_ip=new_ip,
            results=results,
            duplicated=duplicated,
            unreplaced=unreplaced,
            reason=reason,
        )

    @classmethod
    def failed(cls, old_ip, new_ip, reason: str) -> "TransactionOutcome":
        return cls(kind=OutcomeKind.FAILED, old_ip=old_ip, new_ip=new_ip, reason=reason)

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "kind": self.kind.value,
            "old_ip": str(self.old_ip),
            "new_ip": str(self.new_ip),
            "duplicated": sorted(self.duplicated),
            "unreplaced": sorted(self.unreplaced),
            "reason": self.reason,
            "results": [
                {
                    "id": r.original.id,
                    "name": r.original.name,
                    "status": r.status.value,
                    "replacement_id": r.replacement.id if r.replacement else None,
                    "error": r.error,
                }
                for r in self.results
            ],
        }
