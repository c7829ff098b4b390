"""Compute (virtual machine) instances, addressed by their primary private IP."""

from typing import Any

from palisade.domain.resources.base import ResourceType, ResourceInstance, first

CVM_KIND = "cvm"

# Compute instances found behind a load balancer are tagged with this kind
# (or a longer name sharing the prefix) by the calculator.
LB_BACKEND_KIND = "clb-cvm"


def normalize_kind(kind: str) -> str:
    """Map load balancer backend kinds back to the plain compute kind."""
    if kind.startswith(LB_BACKEND_KIND):
        return CVM_KIND
    return kind


class CvmResourceType(ResourceType):
    kind = CVM_KIND
    supports_egress_policy = True
    supports_security_group_api = True

    def to_instance(self, record: dict[str, Any], region: str) -> ResourceInstance:
        return self._instance(
            instance_id=record["InstanceId"],
            name=record.get("InstanceName", ""),
            ip=first(record.get("PrivateIpAddresses")),
            region=region,
        )
