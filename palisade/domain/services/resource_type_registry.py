"""
Resource Type Registry

Architectural Intent:
- Maps a resource kind name to its ResourceType implementation
- Constructed explicitly at start-up and passed to the components that need
  it, instead of living in module-level global state
- freeze() marks the end of initialization; lookups stay valid afterwards

Design Decisions:
- A single lock guards both registration and lookup; registration happens
  once and steady-state traffic is low-volume reads
- Registering a kind twice logs a warning and the last registration wins
"""

from __future__ import annotations
from typing import Iterable, Optional
import logging
import threading

from palisade.domain.exceptions import ResourceTypeNotFoundError
from palisade.domain.ports.cloud_resource_port import CloudResourcePort
from palisade.domain.resources import ResourceType, default_resource_types

logger = logging.getLogger(__name__)


class ResourceTypeRegistry:
    """Registry of resource kinds."""

    def __init__(self, resource_types: Optional[Iterable[ResourceType]] = None) -> None:
        self._lock = threading.Lock()
        self._types: dict[str, ResourceType] = {}
        self._frozen = False
        for resource_type in resource_types or ():
            self.register(resource_type.kind, resource_type)

    def register(self, kind: str, resource_type: ResourceType) -> None:
        with self._lock:
            if self._frozen:
                raise RuntimeError(
                    f"resource type registry is frozen, can't register {kind}"
                )
            if kind in self._types:
                logger.warning("resource type(%s) was registered twice", kind)
            self._types[kind] = resource_type

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, kind: str) -> ResourceType:
        with self._lock:
            resource_type = self._types.get(kind)
        if resource_type is None:
            raise ResourceTypeNotFoundError(kind)
        return resource_type

    def kinds(self) -> list[str]:
        with self._lock:
            return list(self._types)

    def all(self) -> list[ResourceType]:
        """Registered types in registration order."""
        with self._lock:
            return list(self._types.values())

    def __contains__(self, kind: object) -> bool:
        with self._lock:
            return kind in self._types

    def __len__(self) -> int:
        with self._lock:
            return len(self._types)


def create_default_registry(cloud: CloudResourcePort) -> ResourceTypeRegistry:
    """Build and freeze a registry holding every supported kind."""
    registry = ResourceTypeRegistry(default_resource_types(cloud))
    registry.freeze()
    return registry
