"""
Security Policy DTOs

Architectural Intent:
- Data Transfer Objects for the calc/apply action boundaries
- Input validation at the application boundary, before any provider call
- Decouples the JSON representation from the domain model
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from palisade.domain.entities.security_policy import ApplyResult, SecurityPolicy
from palisade.domain.exceptions import ValidationError
from palisade.domain.value_objects.direction import Direction
from palisade.domain.value_objects.port_spec import parse_port_spec
from palisade.domain.value_objects.traffic import (
    validate_action,
    validate_ip,
    validate_protocol,
)

APPLY_FAILED_MESSAGE = "have some failed policies, please check policy applied detail"


def _string_list(data: dict[str, Any], key: str) -> list[str]:
    value = data.get(key) or []
    if isinstance(value, str):
        raise ValidationError(f"{key} must be a list, got a string")
    return [str(v) for v in value]


def format_elapsed(seconds: float) -> str:
    return f"{seconds:.3f}s"


@dataclass(frozen=True)
class CalcSecurityPoliciesRequest:
    protocol: str
    source_ips: list[str]
    dest_ips: list[str]
    dest_port: str
    policy_action: str
    policy_directions: list[str]
    description: str = ""

    def __post_init__(self) -> None:
        validate_protocol(self.protocol)
        validate_action(self.policy_action)
        for ip in self.source_ips:
            validate_ip(ip)
        for ip in self.dest_ips:
            validate_ip(ip)
        parse_port_spec(self.dest_port)
        for direction in self.policy_directions:
            Direction.parse(direction)

    @property
    def ports(self) -> list[str]:
        return parse_port_spec(self.dest_port)

    @property
    def directions(self) -> list[Direction]:
        """Requested directions without duplicates, egress computed first."""
        requested = {Direction.parse(d) for d in self.policy_directions}
        return [d for d in (Direction.EGRESS, Direction.INGRESS) if d in requested]

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "CalcSecurityPoliciesRequest":
        return CalcSecurityPoliciesRequest(
            protocol=str(data.get("protocol", "")),
            source_ips=_string_list(data, "source_ips"),
            dest_ips=_string_list(data, "dest_ips"),
            dest_port=str(data.get("dest_port", "")),
            policy_action=str(data.get("policy_action", "")),
            policy_directions=_string_list(data, "policy_directions"),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class CalcSecurityPoliciesResponse:
    time_taken: str
    ingress_policies: list[SecurityPolicy] = field(default_factory=list)
    egress_policies: list[SecurityPolicy] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ingress_policies_total(self) -> int:
        return len(self.ingress_policies)

    @property
    def egress_policies_total(self) -> int:
        return len(self.egress_policies)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "time_taken": self.time_taken,
            "ingress_policies_total": self.ingress_policies_total,
            "egress_policies_total": self.egress_policies_total,
            "ingress_policies": [p.to_dict() for p in self.ingress_policies],
            "egress_policies": [p.to_dict() for p in self.egress_policies],
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class ApplySecurityPoliciesRequest:
    ingress_policies: list[SecurityPolicy] = field(default_factory=list)
    egress_policies: list[SecurityPolicy] = field(default_factory=list)

    def __post_init__(self) -> None:
        for direction, policies in (
            (Direction.INGRESS, self.ingress_policies),
            (Direction.EGRESS, self.egress_policies),
        ):
            for policy in policies:
                if not policy.ip or not policy.id:
                    raise ValidationError(
                        f"{direction} policy has empty ip or id: {policy.to_dict()}"
                    )

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ApplySecurityPoliciesRequest":
        return ApplySecurityPoliciesRequest(
            ingress_policies=[
                SecurityPolicy.from_dict(p) for p in data.get("ingress_policies") or []
            ],
            egress_policies=[
                SecurityPolicy.from_dict(p) for p in data.get("egress_policies") or []
            ],
        )


@dataclass(frozen=True)
class ApplySecurityPoliciesResponse:
    time_taken: str
    ingress: ApplyResult = field(default_factory=ApplyResult)
    egress: ApplyResult = field(default_factory=ApplyResult)

    @property
    def error(self) -> Optional[str]:
        if self.ingress.failed_total > 0 or self.egress.failed_total > 0:
            return APPLY_FAILED_MESSAGE
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "time_taken": self.time_taken,
            "ingress": self.ingress.to_dict(),
            "egress": self.egress.to_dict(),
        }
        if self.error:
            data["error"] = self.error
        return data
