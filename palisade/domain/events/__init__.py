"""
Domain Events Package

Architectural Intent:
- Contains domain events raised while allocating security policies
- Events are the primary mechanism for cross-boundary communication
"""

from palisade.domain.events.event_base import DomainEvent
from palisade.domain.events.security_group_events import (
    SecurityGroupAutoCreated,
    SecurityPoliciesRolledBack,
)

__all__ = [
    "DomainEvent",
    "SecurityGroupAutoCreated",
    "SecurityPoliciesRolledBack",
]
