"""MySQL database instances, addressed by their virtual IP."""

from typing import Any

from palisade.domain.resources.base import ResourceType, ResourceInstance

MYSQL_KIND = "mysql"


class MysqlResourceType(ResourceType):
    kind = MYSQL_KIND
    supports_security_group_api = True

    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        return self._instance(
            instance_id=record["InstanceId"],
            name=record.get("InstanceName", ""),
            ip=record.get("Vip", ""),
            region=region,
        )
