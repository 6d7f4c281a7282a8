"""Test doubles: in-memory exporters, a fake psutil process, exposition parsing."""

import threading
from contextlib import contextmanager
from types import SimpleNamespace

import psutil
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client.parser import text_string_to_metric_families


class FakeLogExporter:
    """Collects exported log records in memory."""

    def __init__(self):
        self.records = []
        self.shutdown_called = False

    def export(self, batch):
        self.records.extend(batch)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True

    def shutdown(self):
        self.shutdown_called = True


class FakeMetricExporter(MetricExporter):
    """Collects exported MetricsData objects in memory."""

    def __init__(self):
        super().__init__()
        self.exports = []

    def export(self, metrics_data, timeout_millis: float = 10_000, **kwargs):
        self.exports.append(metrics_data)
        return MetricExportResult.SUCCESS

    def force_flush(self, timeout_millis: float = 10_000) -> bool:
        return True

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        pass

    def metric_names(self) -> set[str]:
        names = set()
        for data in self.exports:
            for resource_metrics in data.resource_metrics:
                for scope_metrics in resource_metrics.scope_metrics:
                    names.update(m.name for m in scope_metrics.metrics)
        return names


class HangingSpanExporter(InMemorySpanExporter):
    """Blocks every export until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def export(self, spans):
        self.release.wait()
        return super().export(spans)


class FakeProcess:
    """psutil.Process stand-in with switchable failure."""

    def __init__(self, cpu: float = 12.5, rss: int = 64 * 1024 * 1024):
        self.cpu = cpu
        self.rss = rss
        self.fail = False

    @contextmanager
    def oneshot(self):
        yield

    def cpu_percent(self, interval=None) -> float:
        if self.fail:
            raise psutil.NoSuchProcess(0)
        return self.cpu

    def memory_info(self):
        return SimpleNamespace(rss=self.rss)


def scrape_values(text: str) -> dict[str, float]:
    """Parse Prometheus exposition text into {sample name: value}."""
    return {
        sample.name: sample.value
        for family in text_string_to_metric_families(text)
        for sample in family.samples
    }
