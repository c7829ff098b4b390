"""
OpenTelemetry export for calculation and allocation runs.

Every recorded value lands in a local buffer; once an OTLP endpoint is
configured and the SDK is importable, values are also set on gauges and
spans are opened around per-resource allocation. Plaintext http:// export
to anything but loopback needs insecure=True.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import logging
from datetime import datetime, UTC

logger = logging.getLogger(__name__)

_LOOPBACK = ("localhost", "127.0.0.1", "::1")

CALC_DURATION = "palisade.calc.duration_ms"
CALC_POLICIES = "palisade.calc.policies"
APPLY_DURATION = "palisade.apply.duration_ms"
APPLY_POLICIES = "palisade.apply.policies"
SG_CREATED = "palisade.security_group.created"


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "palisade"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint or self.insecure:
            return
        url = urlparse(self.endpoint)
        if url.scheme == "http" and url.hostname not in _LOOPBACK:
            raise ValueError(
                f"OTLP endpoint {self.endpoint!r} is plaintext http on a remote host; "
                "use https:// or pass insecure=True"
            )


class OTELExporter:
    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._gauges: dict[str, Any] = {}

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Wire the OTLP trace and metric pipelines if an endpoint is set."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return
        try:
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )
            if self.config.enable_traces:
                self._init_traces(resource)
            if self.config.enable_metrics:
                self._init_metrics(resource)
        except ImportError:
            logger.warning("OpenTelemetry SDK not installed, telemetry disabled")
            return
        except Exception as e:
            logger.error("OTEL setup against %s failed: %s", self.config.endpoint, e)
            return
        self._initialized = True
        logger.info("Exporting telemetry to %s", self.config.endpoint)

    def _init_traces(self, resource: Any) -> None:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
            )
        )
        trace.set_tracer_provider(provider)

    def _init_metrics(self, resource: Any) -> None:
        from opentelemetry import metrics
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
            OTLPMetricExporter,
        )

        reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=self.config.endpoint, insecure=self.config.insecure)
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
        self._meter = metrics.get_meter(__name__)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        attrs = attributes or {}
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attrs,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        if not self._initialized or self._meter is None:
            return
        if name not in self._gauges:
            self._gauges[name] = self._meter.create_gauge(name, unit=unit)
        self._gauges[name].set(value, attributes=attrs)

    def record_calculation(
        self, ingress_total: int, egress_total: int, duration_ms: float, failed: bool
    ) -> None:
        self.record_metric(CALC_DURATION, duration_ms, "ms", {"partial": str(failed)})
        self.record_metric(CALC_POLICIES, float(ingress_total), attributes={"direction": "ingress"})
        self.record_metric(CALC_POLICIES, float(egress_total), attributes={"direction": "egress"})

    def record_apply(
        self, direction: str, success: int, undo: int, failed: int, duration_ms: float
    ) -> None:
        self.record_metric(APPLY_DURATION, duration_ms, "ms", {"direction": direction})
        counts = {"success": success, "undo": undo, "failed": failed}
        for outcome, total in counts.items():
            self.record_metric(
                APPLY_POLICIES,
                float(total),
                attributes={"direction": direction, "outcome": outcome},
            )

    def record_security_group_created(self, owner_ip: str, region: str) -> None:
        self.record_metric(SG_CREATED, 1.0, attributes={"owner_ip": owner_ip, "region": region})

    def start_span(
        self, name: str, attributes: Optional[dict[str, str]] = None
    ) -> Optional[Any]:
        """Open a span, or return None while telemetry is disabled."""
        if not self._initialized:
            return None
        from opentelemetry import trace

        try:
            return trace.get_tracer(__name__).start_span(name, attributes=attributes or {})
        except Exception as e:
            logger.debug("span %s not started: %s", name, e)
            return None

    def end_span(self, span: Any) -> None:
        if span is None:
            return
        try:
            span.end()
        except Exception as e:
            logger.debug("span not ended: %s", e)

    async def export(self) -> None:
        """Drop buffered values; the SDK's periodic reader does the real export."""
        if not self._initialized:
            return
        flushed, self._metrics_buffer = len(self._metrics_buffer), []
        if flushed:
            logger.debug("Flushed %d buffered metrics", flushed)


async def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "palisade",
    insecure: bool = False,
) -> OTELExporter:
    exporter = OTELExporter(
        OTELConfig(endpoint=endpoint or "", service_name=service_name, insecure=insecure)
    )
    await exporter.initialize()
    return exporter
