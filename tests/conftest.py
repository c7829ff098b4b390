"""Shared fixtures: a simulated provider seeded with one instance of every kind."""

import pytest

from palisade.infrastructure.adapters.simulated_cloud_adapter import (
    SimulatedCloudAdapter,
)

REGION = "ap-guangzhou"


@pytest.fixture
def cloud() -> SimulatedCloudAdapter:
    adapter = SimulatedCloudAdapter(regions=(REGION,))
    adapter.add_instance("cvm", REGION, "ins-web1", "10.0.0.1", name="web-1")
    adapter.add_instance("cvm", REGION, "ins-web2", "10.0.0.2", name="web-2")
    adapter.add_instance("cvm", REGION, "ins-app1", "10.0.1.1", name="app-1")
    adapter.add_instance("cvm", REGION, "ins-app2", "10.0.1.2", name="app-2")
    adapter.add_instance("mysql", REGION, "cdb-orders", "10.0.2.1", name="orders")
    adapter.add_instance("redis", REGION, "crs-cache", "10.0.3.1", name="cache")
    adapter.add_instance("mongodb", REGION, "cmgo-docs", "10.0.4.1", name="docs")
    adapter.add_instance("clb", REGION, "lb-front", "10.0.9.1", name="front")
    adapter.add_listener(
        REGION, "lb-front", "TCP", 80, [("ins-app1", 8080), ("ins-app2", 8080)]
    )
    adapter.add_listener(REGION, "lb-front", "TCP", 443, [("ins-app1", 8443)])
    return adapter
