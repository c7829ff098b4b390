"""
Domain Events Module

Architectural Intent:
- Base class for the allocator's domain events
- Events are immutable records of provider-side side effects
- Events are dispatched via the event bus
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), init=False, repr=False
    )
    aggregate_id: str = ""

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Flat payload: every dataclass field plus event_type."""
        data: dict[str, Any] = {"event_type": self.event_type}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data
