"""
Load Balancer Resource Type

Architectural Intent:
- A load balancer never carries security policies itself: traffic addressed
  to it is expanded into its real backends, each with the backend's own port
- Backend targets are queried live per (protocol, port) listener
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any
import logging

from palisade.domain.resources.base import ResourceType, ResourceInstance, first
from palisade.domain.resources.cvm import LB_BACKEND_KIND

logger = logging.getLogger(__name__)

CLB_KIND = "clb"


@dataclass(frozen=True)
class LoadBalancerInstance(ResourceInstance):

    async def backend_targets(
        self, protocol: str, port: str
    ) -> list[tuple[ResourceInstance, str]]:
        """
        Return (backend instance, backend port) pairs behind the listener
        serving protocol/port. Backends are tagged with the LB backend kind.
        """
        if self.cloud is None:
            raise RuntimeError(f"instance {self.id} is not attached to a provider")

        targets = await self.cloud.describe_backend_targets(
            self.region, self.id, protocol, int(port)
        )

        backends: list[tuple[ResourceInstance, str]] = []
        for target in targets:
            ip = first(target.get("PrivateIpAddresses"))
            if not ip:
                logger.warning(
                    "Backend %s of load balancer %s has no private ip, skipping",
                    target.get("InstanceId"),
                    self.id,
                )
                continue
            backend = ResourceInstance(
                id=target["InstanceId"],
                name=target.get("InstanceName", ""),
                ip=ip,
                region=self.region,
                kind=LB_BACKEND_KIND,
                supports_security_group_api=True,
                cloud=self.cloud,
            )
            backends.append((backend, str(target["Port"])))

        logger.debug(
            "Load balancer %s %s:%s has %d backend(s)",
            self.ip,
            protocol,
            port,
            len(backends),
        )
        return backends


class ClbResourceType(ResourceType):
    kind = CLB_KIND
    is_load_balancer = True
    supports_security_group_api = False

    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        return LoadBalancerInstance(
            id=record["LoadBalancerId"],
            name=record.get("LoadBalancerName", ""),
            ip=first(record.get("LoadBalancerVips")),
            region=region,
            kind=self.kind,
            supports_security_group_api=self.supports_security_group_api,
            cloud=self.cloud,
        )
