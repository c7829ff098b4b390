"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus for the allocator's domain events
- Handlers are async and run in subscription order
- A failing handler is logged and does not stop delivery to the others
- The most recent published events are kept in `published`, bounded by
  `history`, for callers that report side effects after a run
"""

import logging
from collections import deque

from palisade.domain.events.event_base import DomainEvent
from palisade.domain.ports.event_bus_port import EventHandler

logger = logging.getLogger(__name__)


DEFAULT_HISTORY = 256


class EventBus:
    def __init__(self, history: int = DEFAULT_HISTORY) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = {}
        self.published: deque[DomainEvent] = deque(maxlen=history)

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            self.published.append(event)
            logger.debug("event %s", event.to_dict())
            for handler in self._handlers.get(type(event), []):
                try:
                    await handler(event)
                except Exception:
                    logger.exception(
                        "Handler %r failed for %s", handler, event.event_type
                    )

    def subscribe(self, event_type: type[DomainEvent], handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def published_of(self, event_type: type[DomainEvent]) -> list[DomainEvent]:
        return [e for e in self.published if isinstance(e, event_type)]
