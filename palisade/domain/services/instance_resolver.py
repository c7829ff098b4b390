"""
Instance Resolver

Architectural Intent:
- Single source of truth for "which managed resource owns this IP"
- Scans every region and, within each, every registered resource type,
  stopping at the first match
"""

import logging

from palisade.domain.exceptions import InstanceNotFoundError
from palisade.domain.ports.cloud_resource_port import CloudResourcePort
from palisade.domain.resources import ResourceInstance
from palisade.domain.services.resource_type_registry import ResourceTypeRegistry

logger = logging.getLogger(__name__)


class InstanceResolver:
    def __init__(self, cloud: CloudResourcePort, registry: ResourceTypeRegistry):
        self._cloud = cloud
        self._registry = registry

    async def resolve_by_ip(self, ip: str) -> ResourceInstance:
        """Raises InstanceNotFoundError when no kind in no region owns ip."""
        regions = await self._cloud.list_regions()
        for region in regions:
            for resource_type in self._registry.all():
                instances = await resource_type.query_instances_by_ip(region, [ip])
                instance = instances.get(ip)
                if instance is not None:
                    logger.debug(
                        "ip %s resolved to %s instance %s in %s",
                        ip,
                        instance.kind,
                        instance.id,
                        region,
                    )
                    return instance

        logger.info("ip(%s) can't be found in regions %s", ip, regions)
        raise InstanceNotFoundError(ip)
