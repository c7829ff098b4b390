"""Tests for EventBus infrastructure."""

import pytest

from palisade.domain.events.security_group_events import (
    SecurityGroupAutoCreated,
    SecurityPoliciesRolledBack,
)
from palisade.domain.ports.event_bus_port import EventBusPort
from palisade.infrastructure.event_bus import EventBus


def _created(group_id: str = "sg-1") -> SecurityGroupAutoCreated:
    return SecurityGroupAutoCreated(
        group_id=group_id,
        group_name="10.0.0.1-auto-1",
        owner_ip="10.0.0.1",
        region="ap-guangzhou",
        aggregate_id=group_id,
    )


class TestEventBus:
    def test_implements_port(self):
        assert isinstance(EventBus(), EventBusPort)

    @pytest.mark.asyncio
    async def test_publish_to_subscriber(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(SecurityGroupAutoCreated, handler)
        await bus.publish([_created()])

        assert len(received) == 1
        assert received[0].aggregate_id == "sg-1"

    @pytest.mark.asyncio
    async def test_no_subscriber(self):
        bus = EventBus()
        await bus.publish([_created()])
        assert len(bus.published) == 1

    @pytest.mark.asyncio
    async def test_type_filtering(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(SecurityPoliciesRolledBack, handler)
        await bus.publish([_created()])

        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self, caplog):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("handler bug")

        async def handler(event):
            received.append(event)

        bus.subscribe(SecurityGroupAutoCreated, broken)
        bus.subscribe(SecurityGroupAutoCreated, handler)
        await bus.publish([_created()])

        assert len(received) == 1
        assert "handler bug" in caplog.text


    @pytest.mark.asyncio
    async def test_published_of(self):
        bus = EventBus()
        rolled_back = SecurityPoliciesRolledBack(owner_ip="10.0.0.1", reason="x")
        await bus.publish([_created("sg-1"), rolled_back, _created("sg-2")])

        assert [e.group_id for e in bus.published_of(SecurityGroupAutoCreated)] == [
            "sg-1",
            "sg-2",
        ]
        assert bus.published_of(SecurityPoliciesRolledBack) == [rolled_back]


    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        bus = EventBus(history=2)
        await bus.publish([_created("sg-1"), _created("sg-2"), _created("sg-3")])

        assert [e.group_id for e in bus.published] == ["sg-2", "sg-3"]
        assert len(bus.published_of(SecurityGroupAutoCreated)) == 2


class TestEventPayloads:
    def test_auto_created_to_dict(self):
        data = _created().to_dict()
        assert data["event_type"] == "SecurityGroupAutoCreated"
        assert data["group_name"] == "10.0.0.1-auto-1"
        assert data["owner_ip"] == "10.0.0.1"
        assert "occurred_at" in data

    def test_rolled_back_to_dict(self):
        event = SecurityPoliciesRolledBack(
            owner_ip="10.0.0.1", region="ap-guangzhou", reason="bind failed", policy_count=3
        )
        data = event.to_dict()
        assert data["reason"] == "bind failed"
        assert data["policy_count"] == 3
