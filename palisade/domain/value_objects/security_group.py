"""
Security Group Value Objects

Architectural Intent:
- Immutable views of provider-side security group records
- SecurityGroupRule is the unit submitted to and deleted from a group
- SecurityGroupPolicySet mirrors the provider's per-direction rule listing
"""

from __future__ import annotations
from dataclasses import dataclass, field

from palisade.domain.value_objects.direction import Direction


@dataclass(frozen=True)
class SecurityGroup:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class SecurityGroupRule:
    protocol: str
    port: str
    cidr_block: str
    action: str
    description: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "Protocol": self.protocol,
            "Port": self.port,
            "CidrBlock": self.cidr_block,
            "Action": self.action,
            "PolicyDescription": self.description,
        }

    @staticmethod
    def from_dict(data: dict) -> SecurityGroupRule:
        return SecurityGroupRule(
            protocol=data.get("Protocol", ""),
            port=data.get("Port", ""),
            cidr_block=data.get("CidrBlock", ""),
            action=data.get("Action", ""),
            description=data.get("PolicyDescription", ""),
        )


@dataclass(frozen=True)
class SecurityGroupPolicySet:
    ingress: tuple[SecurityGroupRule, ...] = field(default_factory=tuple)
    egress: tuple[SecurityGroupRule, ...] = field(default_factory=tuple)

    def rules(self, direction: Direction) -> tuple[SecurityGroupRule, ...]:
        if direction == Direction.INGRESS:
            return self.ingress
        return self.egress
