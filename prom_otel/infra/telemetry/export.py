"""
Push Export Pipeline — OTLP Providers for Logs, Traces and Metrics
====================================================================

Three independent providers, one per signal, each owning its own
background batching/flushing worker and sharing one immutable Resource.

Lifecycle per provider:
  uninitialized -> active -> draining -> terminated

  - Construction wires the exporter and starts the background worker;
    any failure raises ExporterConfigError and aborts startup.
  - shutdown() stops accepting telemetry, flushes what was accepted
    within a deadline, and reports a DrainOutcome. It never raises and
    never retries once draining has begun.

Export failures inside the batch workers are logged by the SDK and never
reach request handling: delivery is at-most-once.
"""

from __future__ import annotations

import asyncio
import os
import socket
import threading
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any
from urllib.parse import urlparse

from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter

from prom_otel.core.config import Settings
from prom_otel.core.exceptions import ExporterConfigError
from prom_otel.infra.telemetry.logger import OtlpLogBridge, get_logger
from prom_otel.infra.telemetry.tracer import Tracer

logger = get_logger(__name__)

class Signal(StrEnum):
    LOGS = "logs"
    TRACES = "traces"
    METRICS = "metrics"

class ProviderState(StrEnum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    DRAINING = "draining"
    TERMINATED = "terminated"

@dataclass(frozen=True)
class DrainOutcome:
    """Result of draining one provider at shutdown."""

    signal: Signal
    ok: bool
    elapsed_s: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "signal": self.signal.value,
            "ok": self.ok,
            "elapsed_s": round(self.elapsed_s, 3),
            "error": self.error,
        }

@dataclass(frozen=True)
class SignalExporters:
    """The three exporter objects handed to the pipeline."""

    logs: Any
    traces: SpanExporter
    metrics: MetricExporter

# ── Builders ───────────────────────────────────────────────────────

def build_resource(settings: Settings) -> Resource:
    """Resource identity shared by every exported signal."""
    return Resource.create({
        SERVICE_NAME: settings.OTEL_SERVICE_NAME,
        SERVICE_VERSION: settings.APP_VERSION,
        "host.name": socket.gethostname(),
        "process.pid": os.getpid(),
    })

def _validate_endpoint(signal: Signal, endpoint: str) -> str:
    parsed = urlparse(endpoint)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ExporterConfigError(signal, f"malformed endpoint '{endpoint}'")
    return endpoint

def build_otlp_exporters(settings: Settings) -> SignalExporters:
    """OTLP over HTTP (protobuf) exporters for all three signals."""
    factories = {
        Signal.LOGS: OTLPLogExporter,
        Signal.TRACES: OTLPSpanExporter,
        Signal.METRICS: OTLPMetricExporter,
    }
    built: dict[Signal, Any] = {}
    for signal, factory in factories.items():
        endpoint = _validate_endpoint(signal, settings.signal_endpoint(signal))
        try:
            built[signal] = factory(endpoint=endpoint, timeout=settings.OTEL_EXPORT_TIMEOUT_S)
        except (TypeError, ValueError) as e:
            raise ExporterConfigError(signal, str(e)) from e
        logger.info("otlp_exporter_configured", signal=signal.value, endpoint=endpoint)
    return SignalExporters(
        logs=built[Signal.LOGS],
        traces=built[Signal.TRACES],
        metrics=built[Signal.METRICS],
    )

# ── Provider Base ──────────────────────────────────────────────────

class ExportProvider:
    """
    One signal's SDK provider plus its open/closed lifecycle.

    Subclasses implement ``_build`` to wire the exporter into the SDK
    provider with the right batching strategy.
    """

    signal: Signal

    def __init__(
        self,
        exporter: Any,
        resource: Resource,
        *,
        flush_interval_ms: int,
        export_timeout_ms: int,
    ):
        self._state = ProviderState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._outcome: DrainOutcome | None = None
        self.resource = resource
        try:
            self._provider = self._build(
                exporter,
                resource,
                flush_interval_ms=flush_interval_ms,
                export_timeout_ms=export_timeout_ms,
            )
        except ExporterConfigError:
            raise
        except (TypeError, ValueError, AttributeError) as e:
            raise ExporterConfigError(self.signal, str(e)) from e
        self._state = ProviderState.ACTIVE
        logger.info("export_provider_active", signal=self.signal.value)

    def _build(
        self,
        exporter: Any,
        resource: Resource,
        *,
        flush_interval_ms: int,
        export_timeout_ms: int,
    ) -> Any:
        raise NotImplementedError

    @property
    def state(self) -> ProviderState:
        return self._state

    @property
    def accepting(self) -> bool:
        return self._state is ProviderState.ACTIVE

    def _drain(self, timeout_s: float) -> bool:
        flushed = bool(self._provider.force_flush(int(timeout_s * 1000)))
        self._close()
        return flushed

    def _close(self) -> None:
        self._provider.shutdown()

    async def shutdown(self, timeout_s: float) -> DrainOutcome:
        """Drain and terminate. Safe to call more than once."""
        with self._state_lock:
            if self._state is not ProviderState.ACTIVE:
                return self._outcome or DrainOutcome(
                    self.signal, ok=False, error=f"provider is {self._state.value}"
                )
            self._state = ProviderState.DRAINING

        started = time.monotonic()
        try:
            flushed = await asyncio.wait_for(
                asyncio.to_thread(self._drain, timeout_s), timeout=timeout_s
            )
            outcome = DrainOutcome(
                self.signal,
                ok=flushed,
                elapsed_s=time.monotonic() - started,
                error=None if flushed else "flush did not complete",
            )
        except TimeoutError:
            outcome = DrainOutcome(
                self.signal,
                ok=False,
                elapsed_s=time.monotonic() - started,
                error=f"drain timed out after {timeout_s}s",
            )
        except Exception as e:
            outcome = DrainOutcome(
                self.signal, ok=False, elapsed_s=time.monotonic() - started, error=str(e)
            )

        self._outcome = outcome
        self._state = ProviderState.TERMINATED
        if outcome.ok:
            logger.info("export_provider_drained", **outcome.to_dict())
        else:
            logger.warning("export_provider_drain_failed", **outcome.to_dict())
        return outcome

    def close_now(self) -> None:
        """Terminate without draining. Used when startup is aborted."""
        with self._state_lock:
            if self._state is ProviderState.TERMINATED:
                return
            self._state = ProviderState.TERMINATED
        self._close()

# ── Providers ──────────────────────────────────────────────────────

class LogExportProvider(ExportProvider):
    """Batches log records through a BatchLogRecordProcessor."""

    signal = Signal.LOGS

    def _build(self, exporter, resource, *, flush_interval_ms, export_timeout_ms):
        provider = LoggerProvider(resource=resource)
        provider.add_log_record_processor(
            BatchLogRecordProcessor(
                exporter,
                schedule_delay_millis=flush_interval_ms,
                export_timeout_millis=export_timeout_ms,
            )
        )
        return provider

    def bridge(self, directives: str) -> OtlpLogBridge:
        """Logging handler that feeds this provider while it is active."""
        return OtlpLogBridge(
            self._provider,
            accepting=lambda: self.accepting,
            directives=directives,
        )

class TraceExportProvider(ExportProvider):
    """Batches finished spans through a BatchSpanProcessor."""

    signal = Signal.TRACES

    def _build(self, exporter, resource, *, flush_interval_ms, export_timeout_ms):
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(
                exporter,
                schedule_delay_millis=flush_interval_ms,
                export_timeout_millis=export_timeout_ms,
            )
        )
        return provider

    def tracer(self, name: str) -> Tracer:
        return Tracer(self._provider.get_tracer(name), lambda: self.accepting)

class OtlpCounter:
    """Monotonic OTLP counter that drops increments outside the active window."""

    __slots__ = ("_counter", "_provider")

    def __init__(self, provider: MetricExportProvider, counter: Any):
        self._provider = provider
        self._counter = counter

    def add(self, amount: int = 1, attributes: dict[str, str] | None = None) -> None:
        if self._provider.accepting:
            self._counter.add(amount, attributes=attributes)

class MetricExportProvider(ExportProvider):
    """Periodically collects and exports aggregated metrics."""

    signal = Signal.METRICS

    def __init__(self, exporter, resource, *, flush_interval_ms, export_timeout_ms,
                 export_interval_ms: int = 60000):
        self._export_interval_ms = export_interval_ms
        super().__init__(
            exporter,
            resource,
            flush_interval_ms=flush_interval_ms,
            export_timeout_ms=export_timeout_ms,
        )

    def _build(self, exporter, resource, *, flush_interval_ms, export_timeout_ms):
        reader = PeriodicExportingMetricReader(
            exporter,
            export_interval_millis=self._export_interval_ms,
            export_timeout_millis=export_timeout_ms,
        )
        return MeterProvider(resource=resource, metric_readers=[reader])

    def counter(self, name: str, description: str, unit: str = "1") -> OtlpCounter:
        meter = self._provider.get_meter("prom_otel")
        return OtlpCounter(self, meter.create_counter(name, unit=unit, description=description))

    def _drain(self, timeout_s: float) -> bool:
        millis = int(timeout_s * 1000)
        flushed = bool(self._provider.force_flush(millis))
        self._provider.shutdown(timeout_millis=millis)
        return flushed

# ── Pipeline ───────────────────────────────────────────────────────

class ExportPipeline:
    """
    Owns the three export providers and their shared Resource.

    Usage:
        pipeline = ExportPipeline.from_settings(settings)
        tracer = pipeline.traces.tracer(__name__)
        ...
        outcomes = await pipeline.shutdown(timeout_s=5.0)
    """

    def __init__(
        self,
        resource: Resource,
        exporters: SignalExporters,
        *,
        flush_interval_ms: int = 5000,
        export_timeout_ms: int = 10000,
        metric_export_interval_ms: int = 60000,
    ):
        self.resource = resource
        built: list[ExportProvider] = []
        try:
            self.logs = LogExportProvider(
                exporters.logs,
                resource,
                flush_interval_ms=flush_interval_ms,
                export_timeout_ms=export_timeout_ms,
            )
            built.append(self.logs)
            self.traces = TraceExportProvider(
                exporters.traces,
                resource,
                flush_interval_ms=flush_interval_ms,
                export_timeout_ms=export_timeout_ms,
            )
            built.append(self.traces)
            self.metrics = MetricExportProvider(
                exporters.metrics,
                resource,
                flush_interval_ms=flush_interval_ms,
                export_timeout_ms=export_timeout_ms,
                export_interval_ms=metric_export_interval_ms,
            )
        except ExporterConfigError:
            for provider in built:
                provider.close_now()
            raise

    @classmethod
    def from_settings(
        cls, settings: Settings, exporters: SignalExporters | None = None
    ) -> ExportPipeline:
        return cls(
            build_resource(settings),
            exporters or build_otlp_exporters(settings),
            flush_interval_ms=settings.OTEL_BATCH_DELAY_MS,
            export_timeout_ms=int(settings.OTEL_EXPORT_TIMEOUT_S * 1000),
            metric_export_interval_ms=settings.OTEL_METRIC_EXPORT_INTERVAL_MS,
        )

    @property
    def providers(self) -> tuple[ExportProvider, ...]:
        return (self.logs, self.traces, self.metrics)

    def status(self) -> dict[str, str]:
        return {p.signal.value: p.state.value for p in self.providers}

    async def shutdown(self, timeout_s: float) -> list[DrainOutcome]:
        """Drain every provider concurrently; one slow provider never blocks another."""
        outcomes = await asyncio.gather(*(p.shutdown(timeout_s) for p in self.providers))
        failed = [o.signal.value for o in outcomes if not o.ok]
        if failed:
            logger.warning("export_pipeline_shutdown_incomplete", failed=",".join(failed))
        else:
            logger.info("export_pipeline_shutdown_complete")
        return list(outcomes)
