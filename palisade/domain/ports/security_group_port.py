"""
Security Group Port

Architectural Intent:
- Port interface for provider security group queries and mutations
- Query side: group details by id, rule listing per group
- Mutation side: create group, add rules in one batch, delete rules
"""

from typing import Protocol, runtime_checkable

from palisade.domain.value_objects.direction import Direction
from palisade.domain.value_objects.security_group import (
    SecurityGroup,
    SecurityGroupPolicySet,
    SecurityGroupRule,
)


@runtime_checkable
class SecurityGroupPort(Protocol):
    """Port for provider security group operations."""

    async def describe_security_groups(
        self, region: str, group_ids: list[str]
    ) -> list[SecurityGroup]:
        ...

    async def describe_security_group_policies(
        self, region: str, group_id: str
    ) -> SecurityGroupPolicySet:
        ...

    async def create_security_group(
        self, region: str, name: str, description: str
    ) -> str:
        """Create a group and return its id."""
        ...

    async def create_security_group_policies(
        self,
        region: str,
        group_id: str,
        direction: Direction,
        rules: list[SecurityGroupRule],
    ) -> None:
        """Add rules to a group as one batch; all or nothing."""
        ...

    async def delete_security_group_policies(
        self,
        region: str,
        group_id: str,
        direction: Direction,
        rules: list[SecurityGroupRule],
    ) -> None:
        ...
