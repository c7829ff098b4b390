"""
Resource Abstraction

Architectural Intent:
- ResourceType is the capability interface for one resource kind: it resolves
  provider records to instances and declares what the kind supports
- ResourceInstance is the polymorphic handle the calculator and allocator
  work with, regardless of kind
- New kinds are added as new ResourceType subclasses registered at start-up;
  call sites never branch on the kind name

Design Decisions:
- Instances are frozen values built per lookup and never cached
- Instances keep a reference to the cloud port (excluded from equality) so
  security group queries and binding go back to the provider live
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional
import logging

from palisade.domain.ports.cloud_resource_port import CloudResourcePort

logger = logging.getLogger(__name__)


def first(values: Optional[list[Any]], default: str = "") -> str:
    """Return the first element of a provider list field, or default."""
    if values:
        return str(values[0])
    return default


@dataclass(frozen=True)
class ResourceInstance:
    id: str
    name: str
    ip: str
    region: str
    kind: str
    supports_security_group_api: bool
    cloud: Optional[CloudResourcePort] = field(
        default=None, compare=False, repr=False
    )

    async def query_security_groups(self) -> list[str]:
        if self.cloud is None:
            raise RuntimeError(f"instance {self.id} is not attached to a provider")
        return await self.cloud.describe_instance_security_groups(
            self.kind, self.region, self.id
        )

    async def bind_security_groups(self, group_ids: list[str]) -> None:
        if self.cloud is None:
            raise RuntimeError(f"instance {self.id} is not attached to a provider")
        await self.cloud.bind_security_groups(
            self.kind, self.region, self.id, group_ids
        )

    async def backend_targets(
        self, protocol: str, port: str
    ) -> list[tuple[ResourceInstance, str]]:
        """Only load balancers have backends."""
        return []


class ResourceType(ABC):
    """Capability interface for one resource kind."""

    kind: str = ""
    is_load_balancer: bool = False
    supports_egress_policy: bool = False
    supports_security_group_api: bool = True

    def __init__(self, cloud: CloudResourcePort) -> None:
        self.cloud = cloud

    @abstractmethod
    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        """Translate a provider record of this kind into an instance."""

    async def query_instances_by_id(
        self, region: str, instance_ids: list[str]
    ) -> dict[str, ResourceInstance]:
        if not instance_ids:
            return {}
        records = await self.cloud.describe_instances(
            self.kind, region, ids=list(instance_ids)
        )
        instances = [self.to_instance(r, region) for r in records]
        return {i.id: i for i in instances if i.id in instance_ids}

    async def query_instances_by_ip(
        self, region: str, ips: list[str]
    ) -> dict[str, ResourceInstance]:
        if not ips:
            return {}
        records = await self.cloud.describe_instances(self.kind, region, ips=list(ips))
        instances = [self.to_instance(r, region) for r in records]
        logger.debug(
            "%s lookup in %s for %s matched %d instance(s)",
            self.kind,
            region,
            ips,
            len(instances),
        )
        return {i.ip: i for i in instances if i.ip in ips}

    def _instance(
        self, instance_id: str, name: str, ip: str, region: str
    ) -> ResourceInstance:
        return ResourceInstance(
            id=instance_id,
            name=name,
            ip=ip,
            region=region,
            kind=self.kind,
            supports_security_group_api=self.supports_security_group_api,
            cloud=self.cloud,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind!r})"
