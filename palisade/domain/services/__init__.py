"""
Domain Services Package

Architectural Intent:
- Contains domain services implementing resource resolution and
  security group allocation logic
"""

from palisade.domain.services.resource_type_registry import (
    ResourceTypeRegistry,
    create_default_registry,
)
from palisade.domain.services.instance_resolver import InstanceResolver
from palisade.domain.services.security_group_allocation import (
    DEFAULT_SECURITY_GROUP_QUOTA,
    AllocationSlice,
    GroupCapacity,
    auto_created_security_groups,
    auto_group_name,
    free_capacity,
    new_group_count,
    pack,
)

__all__ = [
    "ResourceTypeRegistry",
    "create_default_registry",
    "InstanceResolver",
    "DEFAULT_SECURITY_GROUP_QUOTA",
    "AllocationSlice",
    "GroupCapacity",
    "auto_created_security_groups",
    "auto_group_name",
    "free_capacity",
    "new_group_count",
    "pack",
]
