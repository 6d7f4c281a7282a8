"""
Telemetry Layer — Pull Registry and Push Export
================================================

All other layers depend on this.

Provides:
  - Structured logging with trace correlation and an OTLP log bridge
  - Lock-guarded metrics registry with Prometheus exposition
  - OTLP export providers for logs, traces and metrics
  - Span handles bound to the trace export provider

Usage:
    from prom_otel.infra.telemetry import get_logger, MetricsRegistry, MetricKind

    logger = get_logger(__name__)
    registry = MetricsRegistry()
    hits = registry.register("cache_hits_total", "Cache hits", MetricKind.COUNTER)
    registry.increment_counter(hits)
    logger.info("cache_hit", key="user:42")
"""

from prom_otel.infra.telemetry.export import (
    DrainOutcome,
    ExportPipeline,
    ProviderState,
    Signal,
    SignalExporters,
    build_otlp_exporters,
    build_resource,
)
from prom_otel.infra.telemetry.logger import StructuredLogger, get_logger, setup_logging
from prom_otel.infra.telemetry.registry import (
    AppMetrics,
    MetricHandle,
    MetricKind,
    MetricSample,
    MetricsRegistry,
    RegistryCollector,
)
from prom_otel.infra.telemetry.tracer import Tracer, trace_span

__all__ = [
    "AppMetrics",
    "DrainOutcome",
    "ExportPipeline",
    "MetricHandle",
    "MetricKind",
    "MetricSample",
    "MetricsRegistry",
    "ProviderState",
    "RegistryCollector",
    "Signal",
    "SignalExporters",
    "StructuredLogger",
    "Tracer",
    "build_otlp_exporters",
    "build_resource",
    "get_logger",
    "setup_logging",
    "trace_span",
]
