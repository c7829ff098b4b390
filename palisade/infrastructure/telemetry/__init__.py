"""
Palisade Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for observability
- Metrics and traces for the calculate and apply actions
"""

from palisade.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
