"""Shared fixtures: in-memory exporters, a fake psutil process, test settings."""

import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from prom_otel.core.config import Settings
from prom_otel.infra.telemetry.export import SignalExporters
from tests.helpers import FakeLogExporter, FakeMetricExporter, FakeProcess


@pytest.fixture
def settings():
    return Settings(
        ENVIRONMENT="development",
        SAMPLE_INTERVAL_S=0.05,
        SHUTDOWN_DRAIN_TIMEOUT_S=2.0,
        OTEL_BATCH_DELAY_MS=60_000,
        OTEL_METRIC_EXPORT_INTERVAL_MS=60_000,
        OTEL_EXPORT_TIMEOUT_S=1.0,
        LOG_FILTER="info",
    )


@pytest.fixture
def log_exporter():
    return FakeLogExporter()


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def metric_exporter():
    return FakeMetricExporter()


@pytest.fixture
def exporters(log_exporter, span_exporter, metric_exporter):
    return SignalExporters(logs=log_exporter, traces=span_exporter, metrics=metric_exporter)


@pytest.fixture
def fake_process():
    return FakeProcess()
