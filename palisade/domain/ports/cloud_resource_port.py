"""
Cloud Resource Port

Architectural Intent:
- Port interface for the provider's per-kind resource services
- Covers region listing, instance lookup by id or IP, security group
  membership and binding, and load balancer backend discovery
- Implemented by the simulated cloud adapter (and any real SDK adapter)

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed)
- Instance lookups return raw provider records; resource types translate
  them into ResourceInstance values
- Every method may raise ProviderError
"""

from typing import Protocol, runtime_checkable, Any, Optional


@runtime_checkable
class CloudResourcePort(Protocol):
    """Port for provider resource lookups and security group binding."""

    async def list_regions(self) -> list[str]:
        """Regions the managed resources may live in."""
        ...

    async def describe_instances(
        self,
        kind: str,
        region: str,
        ids: Optional[list[str]] = None,
        ips: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        """Return provider records of the given kind filtered by ids or IPs."""
        ...

    async def describe_instance_security_groups(
        self, kind: str, region: str, instance_id: str
    ) -> list[str]:
        """Return the ids of the security groups bound to an instance, in order."""
        ...

    async def bind_security_groups(
        self, kind: str, region: str, instance_id: str, group_ids: list[str]
    ) -> None:
        """Replace the instance's security group list with group_ids."""
        ...

    async def describe_backend_targets(
        self, region: str, load_balancer_id: str, protocol: str, port: int
    ) -> list[dict[str, Any]]:
        """Return the backend targets behind a load balancer listener."""
        ...
