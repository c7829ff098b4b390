"""
Resource Kinds Package

Architectural Intent:
- One ResourceType variant per managed kind behind a single interface
- default_resource_types() lists the variants registered at start-up
"""

from palisade.domain.ports.cloud_resource_port import CloudResourcePort
from palisade.domain.resources.base import ResourceType, ResourceInstance
from palisade.domain.resources.mysql import MysqlResourceType, MYSQL_KIND
from palisade.domain.resources.cvm import (
    CvmResourceType,
    CVM_KIND,
    LB_BACKEND_KIND,
    normalize_kind,
)
from palisade.domain.resources.clb import (
    ClbResourceType,
    LoadBalancerInstance,
    CLB_KIND,
)
from palisade.domain.resources.redis import RedisResourceType, REDIS_KIND
from palisade.domain.resources.mongodb import MongodbResourceType, MONGODB_KIND


def default_resource_types(cloud: CloudResourcePort) -> list[ResourceType]:
    return [
        MysqlResourceType(cloud),
        CvmResourceType(cloud),
        ClbResourceType(cloud),
        RedisResourceType(cloud),
        MongodbResourceType(cloud),
    ]


__all__ = [
    "ResourceType",
    "ResourceInstance",
    "LoadBalancerInstance",
    "MysqlResourceType",
    "CvmResourceType",
    "ClbResourceType",
    "RedisResourceType",
    "MongodbResourceType",
    "MYSQL_KIND",
    "CVM_KIND",
    "CLB_KIND",
    "REDIS_KIND",
    "MONGODB_KIND",
    "LB_BACKEND_KIND",
    "normalize_kind",
    "default_resource_types",
]
