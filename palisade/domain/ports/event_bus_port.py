"""
Event Bus Port

Architectural Intent:
- Where the allocator reports groups it created and batches it rolled back
- Subscribers are keyed by event class; delivery order is subscription order
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable

from palisade.domain.events.event_base import DomainEvent

EventHandler = Callable[[DomainEvent], Awaitable[None]]


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None: ...
