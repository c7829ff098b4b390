"""
Composition Root

Architectural Intent:
- Dependency injection composition root for the Palisade application
- Single place where the adapter, registry, resolver and use cases are wired
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- The registry is frozen once the default resource kinds are registered
- Telemetry is created here but initialized by the caller (it is async)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import json
import logging

from palisade.application.use_cases.apply_security_policies import ApplySecurityPolicies
from palisade.application.use_cases.calculate_security_policies import (
    CalculateSecurityPolicies,
)
from palisade.domain.services.instance_resolver import InstanceResolver
from palisade.domain.services.resource_type_registry import (
    ResourceTypeRegistry,
    create_default_registry,
)
from palisade.infrastructure.adapters.simulated_cloud_adapter import (
    SimulatedCloudAdapter,
)
from palisade.infrastructure.config import PalisadeConfig
from palisade.infrastructure.event_bus import EventBus
from palisade.infrastructure.telemetry.otel_exporter import OTELConfig, OTELExporter

logger = logging.getLogger(__name__)


@dataclass
class PalisadeContainer:
    """DI container holding all wired dependencies."""

    config: PalisadeConfig
    cloud: SimulatedCloudAdapter
    registry: ResourceTypeRegistry
    resolver: InstanceResolver
    event_bus: EventBus
    telemetry: OTELExporter
    calculate: CalculateSecurityPolicies
    apply: ApplySecurityPolicies


def load_inventory(path: str) -> dict:
    """Read an inventory JSON document; a missing file is an error."""
    with open(Path(path)) as f:
        return json.load(f)


def create_container(
    config: Optional[PalisadeConfig] = None,
    cloud: Optional[SimulatedCloudAdapter] = None,
) -> PalisadeContainer:
    """Create and wire all dependencies."""
    config = config or PalisadeConfig()
    quota = config.allocator.security_group_quota

    if cloud is None:
        if config.cloud.inventory_path:
            inventory = load_inventory(config.cloud.inventory_path)
            inventory.setdefault("regions", list(config.cloud.regions))
            cloud = SimulatedCloudAdapter.from_inventory(inventory, policy_quota=quota)
        else:
            cloud = SimulatedCloudAdapter(regions=config.cloud.regions, policy_quota=quota)

    registry = create_default_registry(cloud)
    resolver = InstanceResolver(cloud, registry)
    event_bus = EventBus()
    telemetry = OTELExporter(
        OTELConfig(
            endpoint=config.telemetry.endpoint,
            insecure=config.telemetry.insecure,
        )
    )

    calculate = CalculateSecurityPolicies(registry, resolver, telemetry=telemetry)
    apply = ApplySecurityPolicies(
        registry,
        cloud,
        quota=quota,
        auto_group_description=config.allocator.auto_group_description,
        event_bus=event_bus,
        telemetry=telemetry,
    )
    logger.debug("Container wired with kinds %s", registry.kinds())

    return PalisadeContainer(
        config=config,
        cloud=cloud,
        registry=registry,
        resolver=resolver,
        event_bus=event_bus,
        telemetry=telemetry,
        calculate=calculate,
        apply=apply,
    )
