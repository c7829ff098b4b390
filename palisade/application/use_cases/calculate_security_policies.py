"""
Calculate Security Policies Use Case

Architectural Intent:
- Backs the calc-security-policies action
- Resolves every endpoint IP to a managed resource, expands load balancers
  into their backends and emits one SecurityPolicy per resource, peer and port
- Nothing is written to the provider; callers may inspect or edit the result
  before handing it to ApplySecurityPolicies

Domain Logic:
- egress: "my" endpoints are the source IPs, peers are the destination IPs
- ingress: "my" endpoints are the destination IPs, peers are the source IPs
- kinds without egress support are skipped silently for egress
- an ingress peer that is a load balancer fails the whole ingress direction
- errors of one "my" IP are collected and the others are still computed
"""

from typing import Any, AsyncIterator, Optional, Union
import logging
import time

from palisade.application.dtos.security_policy_dtos import (
    CalcSecurityPoliciesRequest,
    CalcSecurityPoliciesResponse,
    format_elapsed,
)
from palisade.domain.entities.security_policy import SecurityPolicy
from palisade.domain.exceptions import (
    InstanceNotFoundError,
    LoadBalancerPeerError,
    LoadBalancerPortError,
    NoBackendsError,
    NotFoundError,
    PalisadeError,
    ProviderError,
)
from palisade.domain.resources import ResourceInstance
from palisade.domain.services.instance_resolver import InstanceResolver
from palisade.domain.services.resource_type_registry import ResourceTypeRegistry
from palisade.domain.value_objects.direction import Direction
from palisade.domain.value_objects.port_spec import is_single_port

logger = logging.getLogger(__name__)

ERROR_SEPARATOR = "; "


class CalculateSecurityPolicies:
    def __init__(
        self,
        registry: ResourceTypeRegistry,
        resolver: InstanceResolver,
        telemetry: Optional[Any] = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.telemetry = telemetry

    async def execute(
        self, request: CalcSecurityPoliciesRequest
    ) -> CalcSecurityPoliciesResponse:
        start = time.monotonic()
        ports = request.ports
        # ip -> instance, or the NotFoundError raised for it
        lookups: dict[str, Union[ResourceInstance, NotFoundError]] = {}

        results: dict[Direction, list[SecurityPolicy]] = {
            Direction.INGRESS: [],
            Direction.EGRESS: [],
        }
        errors: list[str] = []

        for direction in request.directions:
            if direction == Direction.EGRESS:
                my_ips, peer_ips = request.source_ips, request.dest_ips
            else:
                my_ips, peer_ips = request.dest_ips, request.source_ips

            policies, direction_errors = await self._calculate_direction(
                direction, my_ips, peer_ips, request, ports, lookups
            )
            results[direction].extend(policies)
            errors.extend(direction_errors)

        elapsed = time.monotonic() - start
        response = CalcSecurityPoliciesResponse(
            time_taken=format_elapsed(elapsed),
            ingress_policies=results[Direction.INGRESS],
            egress_policies=results[Direction.EGRESS],
            error=ERROR_SEPARATOR.join(errors) if errors else None,
        )

        logger.info(
            "Calculated %d ingress and %d egress policies in %s",
            response.ingress_policies_total,
            response.egress_policies_total,
            response.time_taken,
        )
        if self.telemetry is not None:
            self.telemetry.record_calculation(
                ingress_total=response.ingress_policies_total,
                egress_total=response.egress_policies_total,
                duration_ms=elapsed * 1000,
                failed=response.error is not None,
            )
        return response

    async def _calculate_direction(
        self,
        direction: Direction,
        my_ips: list[str],
        peer_ips: list[str],
        request: CalcSecurityPoliciesRequest,
        ports: list[str],
        lookups: dict[str, Union[ResourceInstance, NotFoundError]],
    ) -> tuple[list[SecurityPolicy], list[str]]:
        policies: list[SecurityPolicy] = []
        errors: list[str] = []

        if direction == Direction.INGRESS:
            for peer_ip in peer_ips:
                peer = await self._resolve_peer(peer_ip, lookups)
                if peer is not None and self.registry.get(peer.kind).is_load_balancer:
                    error = LoadBalancerPeerError(peer_ip)
                    logger.error("%s", error)
                    return [], [str(error)]

        for my_ip in my_ips:
            try:
                async for policy in self._policies_for(
                    direction, my_ip, peer_ips, request, ports, lookups
                ):
                    policies.append(policy)
            except PalisadeError as e:
                logger.warning("%s policies for %s failed: %s", direction, my_ip, e)
                errors.append(str(e))

        return policies, errors

    async def _policies_for(
        self,
        direction: Direction,
        my_ip: str,
        peer_ips: list[str],
        request: CalcSecurityPoliciesRequest,
        ports: list[str],
        lookups: dict[str, Union[ResourceInstance, NotFoundError]],
    ) -> AsyncIterator[SecurityPolicy]:
        instance = await self._resolve(my_ip, lookups)
        resource_type = self.registry.get(instance.kind)

        if direction == Direction.EGRESS and not resource_type.supports_egress_policy:
            logger.info(
                "%s is a %s device, egress policies are not supported, skipping",
                my_ip,
                instance.kind,
            )
            return

        for peer_ip in peer_ips:
            for port in ports:
                if not resource_type.is_load_balancer:
                    yield self._new_policy(instance, peer_ip, port, request)
                    continue

                for token in port.split(","):
                    if not is_single_port(token):
                        raise LoadBalancerPortError(port)
                    backends = await instance.backend_targets(request.protocol, token)
                    if not backends:
                        raise NoBackendsError(instance.ip, token)
                    for backend, backend_port in backends:
                        yield self._new_policy(backend, peer_ip, backend_port, request)

    async def _resolve(
        self, ip: str, lookups: dict[str, Union[ResourceInstance, NotFoundError]]
    ) -> ResourceInstance:
        cached = lookups.get(ip)
        if isinstance(cached, NotFoundError):
            raise cached
        if cached is not None:
            return cached
        try:
            instance = await self.resolver.resolve_by_ip(ip)
        except InstanceNotFoundError as e:
            lookups[ip] = e
            raise
        lookups[ip] = instance
        return instance

    async def _resolve_peer(
        self, ip: str, lookups: dict[str, Union[ResourceInstance, NotFoundError]]
    ) -> Optional[ResourceInstance]:
        try:
            return await self._resolve(ip, lookups)
        except NotFoundError:
            return None
        except ProviderError as e:
            logger.warning("lookup of peer ip %s failed, treating as external: %s", ip, e)
            return None

    @staticmethod
    def _new_policy(
        instance: ResourceInstance,
        peer_ip: str,
        ports: str,
        request: CalcSecurityPoliciesRequest,
    ) -> SecurityPolicy:
        return SecurityPolicy(
            ip=instance.ip,
            type=instance.kind,
            id=instance.id,
            region=instance.region,
            support_security_group_api=instance.supports_security_group_api,
            peer_ip=peer_ip,
            protocol=request.protocol,
            ports=ports,
            action=request.policy_action,
            description=request.description,
        )
