"""
Apply Security Policies Use Case

Architectural Intent:
- Backs the apply-security-policies action
- Places calculated policies into provider security groups, creating
  "{ip}-auto-{n}" overflow groups when the existing ones are full, and binds
  new groups to the resource
- Every policy ends in exactly one outcome: success, undo or failed

Domain Logic:
- Kinds without security group API support are reported as undo and never
  sent to the provider
- Policies are grouped by owning IP; each resource's batch is all or
  nothing, and one resource's failure never blocks another
- On a failed submission or bind, the rule slices already accepted in this
  batch are deleted again; auto-created groups are kept
"""

from typing import Any, Optional
import logging
import time

from palisade.application.dtos.security_policy_dtos import (
    ApplySecurityPoliciesRequest,
    ApplySecurityPoliciesResponse,
    format_elapsed,
)
from palisade.domain.entities.security_policy import ApplyResult, SecurityPolicy
from palisade.domain.events.event_base import DomainEvent
from palisade.domain.events.security_group_events import (
    SecurityGroupAutoCreated,
    SecurityPoliciesRolledBack,
)
from palisade.domain.exceptions import NotFoundError, PalisadeError, ProviderError
from palisade.domain.ports.event_bus_port import EventBusPort
from palisade.domain.ports.security_group_port import SecurityGroupPort
from palisade.domain.resources import ResourceInstance, normalize_kind
from palisade.domain.services.resource_type_registry import ResourceTypeRegistry
from palisade.domain.services.security_group_allocation import (
    DEFAULT_SECURITY_GROUP_QUOTA,
    AllocationSlice,
    GroupCapacity,
    auto_created_security_groups,
    auto_group_name,
    free_capacity,
    new_group_count,
    pack,
)
from palisade.domain.value_objects.direction import Direction
from palisade.domain.value_objects.security_group import SecurityGroupRule

logger = logging.getLogger(__name__)

DEFAULT_AUTO_GROUP_DESCRIPTION = "automation created"


class ApplySecurityPolicies:
    def __init__(
        self,
        registry: ResourceTypeRegistry,
        security_groups: SecurityGroupPort,
        quota: int = DEFAULT_SECURITY_GROUP_QUOTA,
        auto_group_description: str = DEFAULT_AUTO_GROUP_DESCRIPTION,
        event_bus: Optional[EventBusPort] = None,
        telemetry: Optional[Any] = None,
    ):
        self.registry = registry
        self.security_groups = security_groups
        self.quota = quota
        self.auto_group_description = auto_group_description
        self.event_bus = event_bus
        self.telemetry = telemetry

    async def execute(
        self, request: ApplySecurityPoliciesRequest
    ) -> ApplySecurityPoliciesResponse:
        start = time.monotonic()

        ingress = await self.apply_direction(request.ingress_policies, Direction.INGRESS)
        egress = await self.apply_direction(request.egress_policies, Direction.EGRESS)

        elapsed = time.monotonic() - start
        response = ApplySecurityPoliciesResponse(
            time_taken=format_elapsed(elapsed),
            ingress=ingress,
            egress=egress,
        )
        if response.error:
            logger.error(
                "%s (ingress failed=%d, egress failed=%d)",
                response.error,
                ingress.failed_total,
                egress.failed_total,
            )
        if self.telemetry is not None:
            for direction, result in (
                (Direction.INGRESS, ingress),
                (Direction.EGRESS, egress),
            ):
                self.telemetry.record_apply(
                    direction=direction.value,
                    success=result.success_total,
                    undo=result.undo_total,
                    failed=result.failed_total,
                    duration_ms=elapsed * 1000,
                )
        return response

    async def apply_direction(
        self, policies: list[SecurityPolicy], direction: Direction
    ) -> ApplyResult:
        undo: list[SecurityPolicy] = []
        by_ip: dict[str, list[SecurityPolicy]] = {}

        for policy in policies:
            policy = policy.reset().with_type(normalize_kind(policy.type))
            if not policy.support_security_group_api:
                undo.append(
                    policy.undone(
                        f"instance type({policy.type}) does not support security group api"
                    )
                )
                continue
            by_ip.setdefault(policy.ip, []).append(policy)

        applied: list[SecurityPolicy] = []
        for ip, batch in by_ip.items():
            applied.extend(await self._apply_resource(ip, batch, direction))

        logger.info(
            "%s: %d policies, %d resource(s), %d undo",
            direction,
            len(policies),
            len(by_ip),
            len(undo),
        )
        return ApplyResult.from_policies(len(policies), undo + applied)

    async def _apply_resource(
        self, ip: str, batch: list[SecurityPolicy], direction: Direction
    ) -> list[SecurityPolicy]:
        first = batch[0]
        span = None
        if self.telemetry is not None:
            span = self.telemetry.start_span(
                "palisade.apply.resource",
                {"ip": ip, "direction": direction.value, "policies": str(len(batch))},
            )
        try:
            try:
                instance = await self._find_instance(first)
                existing = await instance.query_security_groups()
            except PalisadeError as e:
                logger.error(
                    "apply %s policies for %s failed: %s",
                    direction,
                    ip,
                    e,
                    extra={"ip": ip, "direction": direction.value},
                )
                return [p.failed(str(e)) for p in batch]

            logger.debug("%s %s has security groups %s", first.type, ip, existing)
            return await self._allocate(instance, existing, batch, direction)
        finally:
            if self.telemetry is not None:
                self.telemetry.end_span(span)

    async def _find_instance(self, policy: SecurityPolicy) -> ResourceInstance:
        resource_type = self.registry.get(policy.type)
        instances = await resource_type.query_instances_by_id(policy.region, [policy.id])
        instance = instances.get(policy.id)
        if instance is None:
            raise NotFoundError(f"can't find instance id({policy.id})")
        return instance

    async def _allocate(
        self,
        instance: ResourceInstance,
        existing: list[str],
        batch: list[SecurityPolicy],
        direction: Direction,
    ) -> list[SecurityPolicy]:
        region = batch[0].region
        accepted: list[tuple[str, list[SecurityGroupRule]]] = []
        bound = list(batch)

        try:
            new_groups, slices = await self._plan(
                instance.ip, region, existing, len(batch), direction
            )

            for s in slices:
                rules = [self._rule(p) for p in batch[s.start:s.stop]]
                await self._submit(region, s, direction, rules)
                accepted.append((s.group_id, rules))
                for i in range(s.start, s.stop):
                    bound[i] = bound[i].bound_to(s.group_id)

            if new_groups:
                groups = new_groups + existing
                try:
                    await instance.bind_security_groups(groups)
                except PalisadeError as e:
                    raise ProviderError(
                        "bind security groups",
                        f"resource type({instance.kind}) instance({instance.ip}) "
                        f"groups {groups}: {e}",
                    ) from e
        except (PalisadeError, ValueError) as e:
            message = str(e)
            logger.error(
                "apply %s policies for %s failed, rolling back %d slice(s): %s",
                direction,
                instance.ip,
                len(accepted),
                message,
                extra={"ip": instance.ip, "region": region, "direction": direction.value},
            )
            rollback_error = await self._rollback(region, direction, accepted)
            if rollback_error:
                message = f"{message}; rollback failed: {rollback_error}"
            await self._publish(
                SecurityPoliciesRolledBack(
                    owner_ip=instance.ip,
                    region=region,
                    reason=message,
                    policy_count=sum(len(rules) for _, rules in accepted),
                    aggregate_id=instance.id,
                )
            )
            return [p.failed(message) for p in batch]

        logger.info(
            "Bound %d %s policies of %s into %d group(s)",
            len(bound),
            direction,
            instance.ip,
            len(slices),
        )
        return bound

    async def _plan(
        self,
        ip: str,
        region: str,
        existing: list[str],
        needed: int,
        direction: Direction,
    ) -> tuple[list[str], list[AllocationSlice]]:
        names = await self._group_names(region, existing)
        auto_groups, next_index = auto_created_security_groups(ip, names, existing)
        logger.debug(
            "auto-created groups of %s: %s, next index %d", ip, auto_groups, next_index
        )

        capacities: list[GroupCapacity] = []
        for group_id in auto_groups:
            policy_set = await self.security_groups.describe_security_group_policies(
                region, group_id
            )
            used = len(policy_set.rules(direction))
            capacities.append(GroupCapacity(group_id, free_capacity(used, self.quota)))

        free_total = sum(c.free for c in capacities)
        new_groups: list[str] = []
        for offset in range(new_group_count(needed, free_total, self.quota)):
            name = auto_group_name(ip, next_index + offset)
            group_id = await self.security_groups.create_security_group(
                region, name, self.auto_group_description
            )
            logger.info(
                "Created security group %s (%s) in %s",
                name,
                group_id,
                region,
                extra={"ip": ip, "region": region, "group_id": group_id},
            )
            new_groups.append(group_id)
            capacities.append(GroupCapacity(group_id, self.quota))
            await self._publish(
                SecurityGroupAutoCreated(
                    group_id=group_id,
                    group_name=name,
                    owner_ip=ip,
                    region=region,
                    aggregate_id=group_id,
                )
            )
            if self.telemetry is not None:
                self.telemetry.record_security_group_created(ip, region)

        return new_groups, pack(capacities, needed)

    async def _group_names(self, region: str, group_ids: list[str]) -> list[str]:
        if not group_ids:
            return []
        groups = await self.security_groups.describe_security_groups(region, group_ids)
        names_by_id = {g.id: g.name for g in groups}
        names: list[str] = []
        for group_id in group_ids:
            if group_id not in names_by_id:
                raise NotFoundError(f"can't find security group id({group_id}) detail")
            names.append(names_by_id[group_id])
        return names

    async def _submit(
        self,
        region: str,
        allocation: AllocationSlice,
        direction: Direction,
        rules: list[SecurityGroupRule],
    ) -> None:
        try:
            await self.security_groups.create_security_group_policies(
                region, allocation.group_id, direction, rules
            )
        except PalisadeError as e:
            raise ProviderError(
                "create security group policies",
                f"add policy to security group({allocation.group_id}) meet err={e}",
            ) from e
        logger.debug(
            "Added %d %s rule(s) to %s", allocation.size, direction, allocation.group_id
        )

    async def _rollback(
        self,
        region: str,
        direction: Direction,
        accepted: list[tuple[str, list[SecurityGroupRule]]],
    ) -> Optional[str]:
        errors: list[str] = []
        for group_id, rules in accepted:
            try:
                await self.security_groups.delete_security_group_policies(
                    region, group_id, direction, rules
                )
            except PalisadeError as e:
                logger.error(
                    "Rollback of %d rule(s) in %s failed: %s",
                    len(rules),
                    group_id,
                    e,
                    extra={"group_id": group_id, "direction": direction.value},
                )
                errors.append(f"{group_id}: {e}")
        return "; ".join(errors) if errors else None

    async def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish([event])

    @staticmethod
    def _rule(policy: SecurityPolicy) -> SecurityGroupRule:
        return SecurityGroupRule(
            protocol=policy.protocol,
            port=policy.ports,
            cidr_block=policy.peer_ip,
            action=policy.action.upper(),
            description=policy.description,
        )
