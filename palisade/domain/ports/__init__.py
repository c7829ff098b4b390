"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from palisade.domain.ports.cloud_resource_port import CloudResourcePort
from palisade.domain.ports.security_group_port import SecurityGroupPort
from palisade.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "CloudResourcePort",
    "SecurityGroupPort",
    "EventBusPort",
]
