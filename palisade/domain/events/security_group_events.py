"""
Security Group Events

Architectural Intent:
- Record the allocator's provider-side side effects
- SecurityGroupAutoCreated is emitted for each overflow group created
- SecurityPoliciesRolledBack is emitted when a resource's batch is undone;
  auto-created groups are not deleted by rollback, so both events together
  describe any group left empty
"""

from dataclasses import dataclass

from palisade.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class SecurityGroupAutoCreated(DomainEvent):
    group_id: str = ""
    group_name: str = ""
    owner_ip: str = ""
    region: str = ""


@dataclass(frozen=True)
class SecurityPoliciesRolledBack(DomainEvent):
    owner_ip: str = ""
    region: str = ""
    reason: str = ""
    policy_count: int = 0
