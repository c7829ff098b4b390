"""Redis cache instances. The provider offers no security group API for them."""

from typing import Any

from palisade.domain.resources.base import ResourceType, ResourceInstance

REDIS_KIND = "redis"


class RedisResourceType(ResourceType):
    kind = REDIS_KIND
    supports_security_group_api = False

    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        return self._instance(
            instance_id=record["InstanceId"],
            name=record.get("InstanceName", ""),
            ip=record.get("WanIp", ""),
            region=region,
        )
