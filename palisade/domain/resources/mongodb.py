"""MongoDB document store instances, addressed by their virtual IP."""

from typing import Any

from palisade.domain.resources.base import ResourceType, ResourceInstance

MONGODB_KIND = "mongodb"


class MongodbResourceType(ResourceType):
    kind = MONGODB_KIND
    supports_security_group_api = True

    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        return self._instance(
            instance_id=record["InstanceId"],
            name=record.get("InstanceName", ""),
            ip=record.get("Vip", ""),
            region=region,
        )
