"""
Security Policy Entity

Architectural Intent:
- SecurityPolicy is the unit of work flowing from calculation to allocation
- Each entry ends an apply pass in exactly one terminal outcome:
  SUCCESS (bound to a group), UNDO (never submitted) or FAILED
- ApplyResult partitions a direction's entries by outcome

Design Decisions:
- Policies are frozen; outcome transitions (bound_to, failed, undone) return
  new values so the allocator builds results instead of mutating shared lists
- Field names follow the JSON shape of the calc/apply actions
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Optional

from palisade.domain.exceptions import ValidationError


def _text(data: dict[str, Any], key: str) -> str:
    """JSON null and a missing key both read as the empty string."""
    value = data.get(key)
    return "" if value is None else str(value)


def _optional_text(data: dict[str, Any], key: str) -> Optional[str]:
    return _text(data, key) or None


def _flag(data: dict[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a JSON boolean, got {value!r}")
    return value


class PolicyOutcome(Enum):
    PENDING = auto()
    SUCCESS = auto()
    UNDO = auto()
    FAILED = auto()


@dataclass(frozen=True)
class SecurityPolicy:
    ip: str
    type: str
    id: str
    region: str
    support_security_group_api: bool
    peer_ip: str
    protocol: str
    ports: str
    action: str
    description: str = ""
    err_msg: Optional[str] = None
    undo_reason: Optional[str] = None
    security_group_id: Optional[str] = None

    @property
    def outcome(self) -> PolicyOutcome:
        if self.undo_reason:
            return PolicyOutcome.UNDO
        if self.err_msg:
            return PolicyOutcome.FAILED
        if self.security_group_id:
            return PolicyOutcome.SUCCESS
        return PolicyOutcome.PENDING

    def bound_to(self, security_group_id: str) -> SecurityPolicy:
        return replace(self, security_group_id=security_group_id, err_msg=None)

    def failed(self, err_msg: str) -> SecurityPolicy:
        return replace(self, err_msg=err_msg)

    def undone(self, reason: str) -> SecurityPolicy:
        return replace(self, undo_reason=reason)

    def with_type(self, kind: str) -> SecurityPolicy:
        return replace(self, type=kind)

    def reset(self) -> SecurityPolicy:
        """Drop any outcome carried over from a previous apply pass."""
        return replace(
            self, err_msg=None, undo_reason=None, security_group_id=None
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ip": self.ip,
            "type": self.type,
            "id": self.id,
            "region": self.region,
            "support_security_group_api": self.support_security_group_api,
            "peer_ip": self.peer_ip,
            "protocol": self.protocol,
            "ports": self.ports,
            "action": self.action,
            "description": self.description,
        }
        # Optional fields are omitted when empty
        if self.err_msg:
            data["err_msg"] = self.err_msg
        if self.undo_reason:
            data["undo_reason"] = self.undo_reason
        if self.security_group_id:
            data["security_group_id"] = self.security_group_id
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> SecurityPolicy:
        return SecurityPolicy(
            ip=_text(data, "ip"),
            type=_text(data, "type"),
            id=_text(data, "id"),
            region=_text(data, "region"),
            support_security_group_api=_flag(data, "support_security_group_api"),
            peer_ip=_text(data, "peer_ip"),
            protocol=_text(data, "protocol"),
            ports=_text(data, "ports"),
            action=_text(data, "action"),
            description=_text(data, "description"),
            err_msg=_optional_text(data, "err_msg"),
            undo_reason=_optional_text(data, "undo_reason"),
            security_group_id=_optional_text(data, "security_group_id"),
        )


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying one direction's policies."""

    policies_total: int = 0
    success_policies: list[SecurityPolicy] = field(default_factory=list)
    undo_policies: list[SecurityPolicy] = field(default_factory=list)
    failed_policies: list[SecurityPolicy] = field(default_factory=list)

    @property
    def success_total(self) -> int:
        return len(self.success_policies)

    @property
    def undo_total(self) -> int:
        return len(self.undo_policies)

    @property
    def failed_total(self) -> int:
        return len(self.failed_policies)

    @staticmethod
    def from_policies(
        policies_total: int, policies: list[SecurityPolicy]
    ) -> ApplyResult:
        return ApplyResult(
            policies_total=policies_total,
            success_policies=[
                p for p in policies if p.outcome == PolicyOutcome.SUCCESS
            ],
            undo_policies=[p for p in policies if p.outcome == PolicyOutcome.UNDO],
            failed_policies=[
                p for p in policies if p.outcome == PolicyOutcome.FAILED
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "policies_total": self.policies_total,
            "success_policies_total": self.success_total,
            "undo_policies_total": self.undo_total,
            "failed_policies_total": self.failed_total,
            "success_policies": [p.to_dict() for p in self.success_policies],
            "undo_policies": [p.to_dict() for p in self.undo_policies],
            "failed_policies": [p.to_dict() for p in self.failed_policies],
        }
