"""Tests for CalculateSecurityPolicies use case."""

import pytest
from unittest.mock import MagicMock

from palisade.application.dtos.security_policy_dtos import CalcSecurityPoliciesRequest
from palisade.application.use_cases.calculate_security_policies import (
    CalculateSecurityPolicies,
)
from palisade.domain.exceptions import ValidationError
from palisade.domain.services.instance_resolver import InstanceResolver
from palisade.domain.services.resource_type_registry import create_default_registry
from palisade.infrastructure.adapters.simulated_cloud_adapter import (
    SimulatedCloudAdapter,
)

REGION = "ap-guangzhou"


def _use_case(cloud, telemetry=None) -> CalculateSecurityPolicies:
    registry = create_default_registry(cloud)
    return CalculateSecurityPolicies(
        registry, InstanceResolver(cloud, registry), telemetry=telemetry
    )


async def _calc(use_case, **overrides):
    data = {
        "protocol": "TCP",
        "source_ips": ["10.0.0.1"],
        "dest_ips": ["10.0.0.2"],
        "dest_port": "80",
        "policy_action": "accept",
        "policy_directions": ["egress"],
        "description": "svc",
    }
    data.update(overrides)
    return await use_case.execute(CalcSecurityPoliciesRequest.from_dict(data))


class TestEgress:
    @pytest.mark.asyncio
    async def test_compute_to_external_ip(self):
        cloud = SimulatedCloudAdapter(regions=(REGION,))
        cloud.add_instance("cvm", REGION, "ins-1", "10.0.0.1")

        response = await _calc(_use_case(cloud))

        assert response.error is None
        assert response.egress_policies_total == 1
        assert response.ingress_policies_total == 0
        policy = response.egress_policies[0]
        assert (policy.ip, policy.peer_ip, policy.ports, policy.action) == (
            "10.0.0.1",
            "10.0.0.2",
            "80",
            "accept",
        )
        assert policy.type == "cvm"
        assert policy.id == "ins-1"
        assert policy.region == REGION
        assert policy.support_security_group_api is True
        assert policy.description == "svc"

    @pytest.mark.asyncio
    async def test_kind_without_egress_is_skipped_silently(self, cloud):
        response = await _calc(
            _use_case(cloud), source_ips=["10.0.2.1"], dest_ips=["10.0.0.1"]
        )
        assert response.error is None
        assert response.egress_policies_total == 0

    @pytest.mark.asyncio
    async def test_one_policy_per_peer(self, cloud):
        response = await _calc(
            _use_case(cloud), dest_ips=["10.0.2.1", "203.0.113.5"], dest_port="80,443"
        )
        assert [(p.peer_ip, p.ports) for p in response.egress_policies] == [
            ("10.0.2.1", "80,443"),
            ("203.0.113.5", "80,443"),
        ]


class TestIngress:
    @pytest.mark.asyncio
    async def test_database_ingress(self, cloud):
        response = await _calc(
            _use_case(cloud),
            dest_ips=["10.0.2.1"],
            dest_port="3306",
            policy_directions=["ingress"],
        )
        assert response.ingress_policies_total == 1
        policy = response.ingress_policies[0]
        assert (policy.ip, policy.type, policy.id, policy.peer_ip) == (
            "10.0.2.1",
            "mysql",
            "cdb-orders",
            "10.0.0.1",
        )

    @pytest.mark.asyncio
    async def test_cache_policy_reports_no_security_group_api(self, cloud):
        response = await _calc(
            _use_case(cloud), dest_ips=["10.0.3.1"], policy_directions=["ingress"]
        )
        assert response.ingress_policies[0].support_security_group_api is False

    @pytest.mark.asyncio
    async def test_load_balancer_peer_fails_ingress_only(self, cloud):
        response = await _calc(
            _use_case(cloud),
            source_ips=["10.0.9.1", "10.0.0.1"],
            dest_ips=["10.0.2.1"],
            policy_directions=["ingress", "egress"],
        )
        assert response.ingress_policies_total == 0
        assert "10.0.9.1" in response.error
        assert "load balancer" in response.error
        # the load balancer itself has no egress; the compute instance does
        assert [p.ip for p in response.egress_policies] == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_external_peer_is_allowed(self, cloud):
        response = await _calc(
            _use_case(cloud),
            source_ips=["0.0.0.0/0"],
            dest_ips=["10.0.0.1"],
            policy_directions=["ingress"],
        )
        assert response.error is None
        assert response.ingress_policies[0].peer_ip == "0.0.0.0/0"


class TestLoadBalancerExpansion:
    @pytest.mark.asyncio
    async def test_expands_to_backends_with_backend_ports(self, cloud):
        response = await _calc(
            _use_case(cloud),
            source_ips=["203.0.113.5"],
            dest_ips=["10.0.9.1"],
            dest_port="80,443",
            policy_directions=["ingress"],
        )
        assert response.error is None
        assert [(p.ip, p.ports, p.type) for p in response.ingress_policies] == [
            ("10.0.1.1", "8080", "clb-cvm"),
            ("10.0.1.2", "8080", "clb-cvm"),
            ("10.0.1.1", "8443", "clb-cvm"),
        ]
        assert all(p.peer_ip == "203.0.113.5" for p in response.ingress_policies)
        assert all(p.support_security_group_api for p in response.ingress_policies)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("dest_port", ["ALL", "8000-9000"])
    async def test_rejects_non_single_ports(self, cloud, dest_port):
        response = await _calc(
            _use_case(cloud),
            source_ips=["203.0.113.5"],
            dest_ips=["10.0.9.1", "10.0.0.1"],
            dest_port=dest_port,
            policy_directions=["ingress"],
        )
        assert "load balancer does not support port format" in response.error
        # the other destination is still computed
        assert [p.ip for p in response.ingress_policies] == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_listener_without_backends(self, cloud):
        response = await _calc(
            _use_case(cloud),
            source_ips=["203.0.113.5"],
            dest_ips=["10.0.9.1"],
            dest_port="81",
            policy_directions=["ingress"],
        )
        assert response.ingress_policies_total == 0
        assert response.error == "load balancer(10.0.9.1) port(81) has no backends"


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_ip_is_reported_and_others_computed(self, cloud):
        response = await _calc(_use_case(cloud), source_ips=["192.168.0.9", "10.0.0.1"])
        assert response.error == "ip(192.168.0.9) can't be found"
        assert [p.ip for p in response.egress_policies] == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_errors_joined(self, cloud):
        response = await _calc(
            _use_case(cloud), source_ips=["192.168.0.8", "192.168.0.9"]
        )
        assert response.error == (
            "ip(192.168.0.8) can't be found; ip(192.168.0.9) can't be found"
        )

    @pytest.mark.asyncio
    async def test_validation_happens_before_provider_calls(self, cloud):
        with pytest.raises(ValidationError):
            await _calc(_use_case(cloud), protocol="SCTP")
        assert cloud.calls == []

    @pytest.mark.asyncio
    async def test_each_ip_resolved_once_per_request(self, cloud):
        await _calc(
            _use_case(cloud),
            source_ips=["10.0.0.1", "10.0.0.2"],
            dest_ips=["10.0.2.1"],
            policy_directions=["egress", "ingress"],
        )
        assert cloud.calls.count("list_regions") == 3


class TestTelemetry:
    @pytest.mark.asyncio
    async def test_records_calculation(self, cloud):
        telemetry = MagicMock()
        response = await _calc(_use_case(cloud, telemetry=telemetry))
        telemetry.record_calculation.assert_called_once()
        kwargs = telemetry.record_calculation.call_args.kwargs
        assert kwargs["egress_total"] == response.egress_policies_total
        assert kwargs["failed"] is False

    @pytest.mark.asyncio
    async def test_time_taken_format(self, cloud):
        response = await _calc(_use_case(cloud))
        assert response.time_taken.endswith("s")
        float(response.time_taken[:-1])
