"""
Simulated Cloud Adapter

Architectural Intent:
- Implements CloudResourcePort and SecurityGroupPort against an in-memory
  provider, enabling integration testing and local development with zero
  cloud credentials
- The _stub_* helpers return payloads shaped like the provider's API
  responses ({"Response": {...}}); a real SDK adapter replaces them with
  client calls while the public method signatures remain stable

Design Decisions:
- State is keyed by region; instances remember their kind, address and bound
  security groups next to the raw provider record
- Every simulated API call is logged at DEBUG level and appended to
  self.calls, so tests can assert which provider operations ran
- The provider's per-direction rule quota is enforced on submission, and a
  batch that would exceed it is rejected as a whole
- inject_failure() makes an operation (optionally for one target id) raise
  ProviderError, for exercising rollback paths
"""

from __future__ import annotations
from typing import Any, Optional
import copy
import logging
import uuid

from palisade.domain.exceptions import ProviderError
from palisade.domain.resources import (
    CLB_KIND,
    CVM_KIND,
    MONGODB_KIND,
    MYSQL_KIND,
    REDIS_KIND,
)
from palisade.domain.services.security_group_allocation import (
    DEFAULT_SECURITY_GROUP_QUOTA,
)
from palisade.domain.value_objects.direction import Direction
from palisade.domain.value_objects.security_group import (
    SecurityGroup,
    SecurityGroupPolicySet,
    SecurityGroupRule,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers that mimic the shape of real provider response payloads.
# ---------------------------------------------------------------------------

# Name of the list field holding the records in each kind's describe response.
_INSTANCE_SET_FIELD = {
    MYSQL_KIND: "Items",
    CVM_KIND: "InstanceSet",
    CLB_KIND: "LoadBalancerSet",
    REDIS_KIND: "InstanceSet",
    MONGODB_KIND: "InstanceDetails",
}


def _make_security_group_id() -> str:
    return "sg-" + uuid.uuid4().hex[:8]


def _request_id() -> str:
    return str(uuid.uuid4())


def _stub_instance_record(kind: str, instance_id: str, ip: str, name: str) -> dict:
    """Build a provider record for one instance of the given kind."""
    if kind == MYSQL_KIND:
        return {"InstanceId": instance_id, "InstanceName": name, "Vip": ip, "Vport": 3306}
    if kind == CVM_KIND:
        return {
            "InstanceId": instance_id,
            "InstanceName": name,
            "PrivateIpAddresses": [ip],
            "InstanceState": "RUNNING",
        }
    if kind == CLB_KIND:
        return {
            "LoadBalancerId": instance_id,
            "LoadBalancerName": name,
            "LoadBalancerVips": [ip],
            "LoadBalancerType": "INTERNAL",
        }
    if kind == REDIS_KIND:
        return {"InstanceId": instance_id, "InstanceName": name, "WanIp": ip, "Port": 6379}
    if kind == MONGODB_KIND:
        return {"InstanceId": instance_id, "InstanceName": name, "Vip": ip, "Vport": 27017}
    raise ValueError(f"unsupported instance kind: {kind}")


def _stub_describe_instances(kind: str, records: list[dict]) -> dict:
    """
    Simulate the per-kind DescribeInstances/DescribeDBInstances/
    DescribeLoadBalancers response:
    {"Response": {"TotalCount": n, "<set field>": [...], "RequestId": "..."}}
    """
    return {
        "Response": {
            "TotalCount": len(records),
            _INSTANCE_SET_FIELD[kind]: [copy.deepcopy(r) for r in records],
            "RequestId": _request_id(),
        }
    }


def _stub_describe_targets(load_balancer_id: str, listeners: list[dict]) -> dict:
    """Simulate DescribeTargets: listeners with their backend targets."""
    return {
        "Response": {
            "Listeners": [copy.deepcopy(listener) for listener in listeners],
            "RequestId": _request_id(),
        }
    }


def _stub_describe_security_group_policies(group: dict) -> dict:
    """Simulate DescribeSecurityGroupPolicies."""
    return {
        "Response": {
            "SecurityGroupPolicySet": {
                "Ingress": copy.deepcopy(group["Ingress"]),
                "Egress": copy.deepcopy(group["Egress"]),
            },
            "RequestId": _request_id(),
        }
    }


# ---------------------------------------------------------------------------
# Public adapter
# ---------------------------------------------------------------------------

class SimulatedCloudAdapter:
    """
    In-memory provider for every managed kind and for security groups.

    Configuration parameters
    ------------------------
    regions : tuple[str, ...]
        Regions returned by list_regions(); other regions are rejected.
    policy_quota : int
        Maximum number of rules per direction in one security group.
    """

    def __init__(
        self,
        regions: tuple[str, ...] = ("ap-guangzhou",),
        policy_quota: int = DEFAULT_SECURITY_GROUP_QUOTA,
    ) -> None:
        self.regions = tuple(regions)
        self.policy_quota = policy_quota

        # region -> instance id -> {"kind", "ip", "record", "security_groups"}
        self._instances: dict[str, dict[str, dict[str, Any]]] = {}
        # region -> group id -> provider security group record
        self._security_groups: dict[str, dict[str, dict[str, Any]]] = {}
        # (region, load balancer id) -> listeners
        self._listeners: dict[tuple[str, str], list[dict[str, Any]]] = {}
        # (operation, target id or None) -> error message
        self._failures: dict[tuple[str, Optional[str]], str] = {}

        self.calls: list[str] = []

        logger.debug("SimulatedCloudAdapter initialised (regions=%s)", self.regions)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_instance(
        self,
        kind: str,
        region: str,
        instance_id: str,
        ip: str,
        name: str = "",
        security_groups: Optional[list[str]] = None,
    ) -> None:
        self._instances.setdefault(region, {})[instance_id] = {
            "kind": kind,
            "ip": ip,
            "record": _stub_instance_record(kind, instance_id, ip, name or instance_id),
            "security_groups": list(security_groups or []),
        }

    def add_security_group(
        self,
        region: str,
        name: str,
        description: str = "",
        group_id: Optional[str] = None,
        ingress: Optional[list[SecurityGroupRule]] = None,
        egress: Optional[list[SecurityGroupRule]] = None,
    ) -> str:
        group_id = group_id or _make_security_group_id()
        self._security_groups.setdefault(region, {})[group_id] = {
            "SecurityGroupId": group_id,
            "SecurityGroupName": name,
            "SecurityGroupDesc": description,
            "Ingress": [r.to_dict() for r in ingress or []],
            "Egress": [r.to_dict() for r in egress or []],
        }
        return group_id

    def add_listener(
        self,
        region: str,
        load_balancer_id: str,
        protocol: str,
        port: int,
        targets: list[tuple[str, int]],
    ) -> None:
        """Attach a listener whose targets are (cvm instance id, backend port)."""
        self._listeners.setdefault((region, load_balancer_id), []).append(
            {
                "Protocol": protocol.upper(),
                "Port": int(port),
                "Targets": [
                    {"InstanceId": instance_id, "Port": int(target_port), "Type": "CVM"}
                    for instance_id, target_port in targets
                ],
            }
        )

    def inject_failure(
        self,
        operation: str,
        message: str = "simulated provider failure",
        target: Optional[str] = None,
    ) -> None:
        """Make operation raise ProviderError, for every target or just one."""
        self._failures[(operation, target)] = message

    def clear_failures(self) -> None:
        self._failures.clear()

    @classmethod
    def from_inventory(
        cls,
        inventory: dict[str, Any],
        policy_quota: int = DEFAULT_SECURITY_GROUP_QUOTA,
    ) -> SimulatedCloudAdapter:
        """
        Build an adapter from an inventory document:

        {"regions": [...],
         "instances": [{"kind", "region", "id", "ip", "name", "security_groups"}],
         "security_groups": [{"region", "id", "name", "description",
                              "ingress": [rule], "egress": [rule]}],
         "listeners": [{"region", "load_balancer_id", "protocol", "port",
                        "targets": [{"instance_id", "port"}]}]}

        Rules use the provider field names (Protocol, Port, CidrBlock, ...).
        """
        regions = tuple(inventory.get("regions") or ("ap-guangzhou",))
        adapter = cls(regions=regions, policy_quota=policy_quota)
        default_region = regions[0]

        for group in inventory.get("security_groups", []):
            adapter.add_security_group(
                region=group.get("region", default_region),
                name=group["name"],
                description=group.get("description", ""),
                group_id=group.get("id"),
                ingress=[SecurityGroupRule.from_dict(r) for r in group.get("ingress", [])],
                egress=[SecurityGroupRule.from_dict(r) for r in group.get("egress", [])],
            )
        for instance in inventory.get("instances", []):
            adapter.add_instance(
                kind=instance["kind"],
                region=instance.get("region", default_region),
                instance_id=instance["id"],
                ip=instance["ip"],
                name=instance.get("name", ""),
                security_groups=instance.get("security_groups"),
            )
        for listener in inventory.get("listeners", []):
            adapter.add_listener(
                region=listener.get("region", default_region),
                load_balancer_id=listener["load_balancer_id"],
                protocol=listener["protocol"],
                port=listener["port"],
                targets=[(t["instance_id"], t["port"]) for t in listener.get("targets", [])],
            )

        logger.info(
            "Loaded inventory: %d region(s), %d instance(s), %d security group(s)",
            len(regions),
            sum(len(v) for v in adapter._instances.values()),
            sum(len(v) for v in adapter._security_groups.values()),
        )
        return adapter

    # ------------------------------------------------------------------
    # CloudResourcePort implementation
    # ------------------------------------------------------------------

    async def list_regions(self) -> list[str]:
        self._call("list_regions")
        return list(self.regions)

    async def describe_instances(
        self,
        kind: str,
        region: str,
        ids: Optional[list[str]] = None,
        ips: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        self._call("describe_instances", region, kind, ids=ids, ips=ips)
        if kind not in _INSTANCE_SET_FIELD:
            raise ProviderError("describe instances", f"unsupported product {kind}")

        records = [
            entry["record"]
            for instance_id, entry in self._instances.get(region, {}).items()
            if entry["kind"] == kind
            and (ids is None or instance_id in ids)
            and (ips is None or entry["ip"] in ips)
        ]
        response = _stub_describe_instances(kind, records)
        return response["Response"][_INSTANCE_SET_FIELD[kind]]

    async def describe_instance_security_groups(
        self, kind: str, region: str, instance_id: str
    ) -> list[str]:
        self._call("describe_instance_security_groups", region, instance_id)
        entry = self._instance_entry(kind, region, instance_id, "describe security groups")
        return list(entry["security_groups"])

    async def bind_security_groups(
        self, kind: str, region: str, instance_id: str, group_ids: list[str]
    ) -> None:
        self._call("bind_security_groups", region, instance_id, group_ids=group_ids)
        entry = self._instance_entry(kind, region, instance_id, "bind security groups")
        groups = self._security_groups.get(region, {})
        for group_id in group_ids:
            if group_id not in groups:
                raise ProviderError(
                    "bind security groups", f"security group {group_id} not found"
                )
        entry["security_groups"] = list(group_ids)
        logger.info("Bound %s %s to security groups %s", kind, instance_id, group_ids)

    async def describe_backend_targets(
        self, region: str, load_balancer_id: str, protocol: str, port: int
    ) -> list[dict[str, Any]]:
        self._call("describe_backend_targets", region, load_balancer_id, protocol, port)
        self._instance_entry(CLB_KIND, region, load_balancer_id, "describe targets")

        response = _stub_describe_targets(
            load_balancer_id, self._listeners.get((region, load_balancer_id), [])
        )
        instances = self._instances.get(region, {})
        targets: list[dict[str, Any]] = []
        for listener in response["Response"]["Listeners"]:
            if listener["Protocol"] != protocol.upper() or listener["Port"] != port:
                continue
            for target in listener["Targets"]:
                backend = instances.get(target["InstanceId"])
                if backend is None:
                    logger.warning(
                        "Target %s of %s is not a known instance",
                        target["InstanceId"],
                        load_balancer_id,
                    )
                    continue
                targets.append(
                    {
                        "InstanceId": target["InstanceId"],
                        "InstanceName": backend["record"].get("InstanceName", ""),
                        "PrivateIpAddresses": [backend["ip"]],
                        "Port": target["Port"],
                        "Type": target["Type"],
                    }
                )
        return targets

    # ------------------------------------------------------------------
    # SecurityGroupPort implementation
    # ------------------------------------------------------------------

    async def describe_security_groups(
        self, region: str, group_ids: list[str]
    ) -> list[SecurityGroup]:
        self._call("describe_security_groups", region, group_ids=group_ids)
        groups = self._security_groups.get(region, {})
        return [
            SecurityGroup(
                id=groups[g]["SecurityGroupId"],
                name=groups[g]["SecurityGroupName"],
                description=groups[g]["SecurityGroupDesc"],
            )
            for g in group_ids
            if g in groups
        ]

    async def describe_security_group_policies(
        self, region: str, group_id: str
    ) -> SecurityGroupPolicySet:
        self._call("describe_security_group_policies", region, group_id)
        group = self._group(region, group_id, "describe security group policies")
        policy_set = _stub_describe_security_group_policies(group)["Response"][
            "SecurityGroupPolicySet"
        ]
        return SecurityGroupPolicySet(
            ingress=tuple(SecurityGroupRule.from_dict(r) for r in policy_set["Ingress"]),
            egress=tuple(SecurityGroupRule.from_dict(r) for r in policy_set["Egress"]),
        )

    async def create_security_group(
        self, region: str, name: str, description: str
    ) -> str:
        self._call("create_security_group", region, name)
        if region not in self.regions:
            raise ProviderError("create security group", f"invalid region {region}")
        group_id = self.add_security_group(region, name, description)
        logger.info("Created security group %s (%s) in %s", group_id, name, region)
        return group_id

    async def create_security_group_policies(
        self,
        region: str,
        group_id: str,
        direction: Direction,
        rules: list[SecurityGroupRule],
    ) -> None:
        self._call(
            "create_security_group_policies", region, group_id, direction, count=len(rules)
        )
        group = self._group(region, group_id, "create security group policies")
        current = group[self._direction_field(direction)]
        if len(current) + len(rules) > self.policy_quota:
            raise ProviderError(
                "create security group policies",
                f"LimitExceeded: security group {group_id} {direction} policies "
                f"would exceed {self.policy_quota}",
            )
        current.extend(r.to_dict() for r in rules)

    async def delete_security_group_policies(
        self,
        region: str,
        group_id: str,
        direction: Direction,
        rules: list[SecurityGroupRule],
    ) -> None:
        self._call(
            "delete_security_group_policies", region, group_id, direction, count=len(rules)
        )
        group = self._group(region, group_id, "delete security group policies")
        current = group[self._direction_field(direction)]
        remaining = list(current)
        for rule in rules:
            payload = rule.to_dict()
            if payload not in remaining:
                raise ProviderError(
                    "delete security group policies",
                    f"policy {payload} not found in {group_id}",
                )
            remaining.remove(payload)
        group[self._direction_field(direction)] = remaining

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _call(self, operation: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append(operation)
        logger.debug("simulated %s args=%s kwargs=%s", operation, args, kwargs)
        for target in (None, *(str(a) for a in args)):
            message = self._failures.get((operation, target))
            if message is not None:
                raise ProviderError(operation.replace("_", " "), message)

    def _instance_entry(
        self, kind: str, region: str, instance_id: str, operation: str
    ) -> dict[str, Any]:
        entry = self._instances.get(region, {}).get(instance_id)
        if entry is None or entry["kind"] != kind:
            raise ProviderError(
                operation, f"{kind} instance {instance_id} not found in {region}"
            )
        return entry

    def _group(self, region: str, group_id: str, operation: str) -> dict[str, Any]:
        group = self._security_groups.get(region, {}).get(group_id)
        if group is None:
            raise ProviderError(operation, f"security group {group_id} not found")
        return group

    @staticmethod
    def _direction_field(direction: Direction) -> str:
        return "Ingress" if direction == Direction.INGRESS else "Egress"
