"""
Metrics Registry — Unit Tests
==============================

Covers registration rules, counter/gauge semantics, and the
lock discipline under concurrent writers and readers.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from prom_otel.core.exceptions import (
    DuplicateNameError,
    InvalidMetricError,
    RegistryFrozenError,
)
from prom_otel.infra.telemetry.registry import (
    AppMetrics,
    MetricHandle,
    MetricKind,
    MetricsRegistry,
)


class TestRegistration:

    def setup_method(self):
        self.registry = MetricsRegistry()

    def test_register_returns_handle(self):
        handle = self.registry.register("jobs_total", "Jobs", MetricKind.COUNTER)
        assert handle == MetricHandle("jobs_total", MetricKind.COUNTER)
        assert len(self.registry) == 1

    def test_duplicate_name_rejected_and_original_untouched(self):
        handle = self.registry.register("jobs_total", "Jobs", MetricKind.COUNTER)
        self.registry.increment_counter(handle, 7)

        with pytest.raises(DuplicateNameError) as exc_info:
            self.registry.register("jobs_total", "Other description", MetricKind.GAUGE)

        assert exc_info.value.name == "jobs_total"
        [sample] = self.registry.snapshot()
        assert sample.description == "Jobs"
        assert sample.kind is MetricKind.COUNTER
        assert sample.value == 7

    def test_register_after_freeze_fails(self):
        self.registry.register("jobs_total", "Jobs", MetricKind.COUNTER)
        self.registry.freeze()
        with pytest.raises(RegistryFrozenError):
            self.registry.register("late_total", "Late", MetricKind.COUNTER)
        assert len(self.registry) == 1

    @pytest.mark.parametrize("name", ["", "1abc", "has space", "dash-name"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(InvalidMetricError):
            self.registry.register(name, "bad", MetricKind.GAUGE)

    @pytest.mark.parametrize("name", ["test_counter", "jobs", "_total", "total"])
    def test_counter_name_must_end_in_total(self, name):
        with pytest.raises(InvalidMetricError, match="_total"):
            self.registry.register(name, "A simple counter", MetricKind.COUNTER)
        assert len(self.registry) == 0

    def test_gauge_may_end_in_total(self):
        handle = self.registry.register("jobs_total", "Jobs in flight", MetricKind.GAUGE)
        assert handle.kind is MetricKind.GAUGE

    def test_counter_and_gauge_cannot_share_exposed_name(self):
        self.registry.register("jobs_total", "Jobs", MetricKind.COUNTER)
        with pytest.raises(DuplicateNameError):
            self.registry.register("jobs_total", "Jobs", MetricKind.GAUGE)

    def test_snapshot_preserves_registration_order(self):
        for name in ("c_metric", "a_metric", "b_metric"):
            self.registry.register(name, name, MetricKind.GAUGE)
        assert [s.name for s in self.registry.snapshot()] == ["c_metric", "a_metric", "b_metric"]

    def test_app_metrics_registered(self):
        metrics = AppMetrics.register(self.registry)
        names = [s.name for s in self.registry.snapshot()]
        assert names == [
            "http_requests_total",
            "process_cpu_usage_percent",
            "process_memory_usage_megabytes",
        ]
        assert metrics.requests.kind is MetricKind.COUNTER
        assert metrics.cpu_percent.kind is MetricKind.GAUGE


class TestMutation:

    def setup_method(self):
        self.registry = MetricsRegistry()
        self.counter = self.registry.register("jobs_total", "Jobs", MetricKind.COUNTER)
        self.gauge = self.registry.register("queue_depth", "Depth", MetricKind.GAUGE)

    def test_counter_starts_at_zero_and_increments(self):
        assert self.registry.value(self.counter) == 0
        self.registry.increment_counter(self.counter)
        self.registry.increment_counter(self.counter, 4)
        assert self.registry.value(self.counter) == 5

    def test_zero_delta_allowed(self):
        self.registry.increment_counter(self.counter, 0)
        assert self.registry.value(self.counter) == 0

    def test_negative_delta_fails_fast(self):
        self.registry.increment_counter(self.counter, 2)
        with pytest.raises(InvalidMetricError):
            self.registry.increment_counter(self.counter, -1)
        assert self.registry.value(self.counter) == 2

    def test_gauge_last_write_wins(self):
        self.registry.set_gauge(self.gauge, 3.5)
        self.registry.set_gauge(self.gauge, 1.25)
        assert self.registry.value(self.gauge) == 1.25

    def test_kind_mismatch_rejected(self):
        with pytest.raises(InvalidMetricError):
            self.registry.set_gauge(self.counter, 1.0)
        with pytest.raises(InvalidMetricError):
            self.registry.increment_counter(self.gauge)

    def test_unregistered_handle_rejected(self):
        stranger = MetricHandle("unknown_total", MetricKind.COUNTER)
        with pytest.raises(InvalidMetricError):
            self.registry.increment_counter(stranger)

    def test_set_gauges_rejects_counter_without_partial_write(self):
        with pytest.raises(InvalidMetricError):
            self.registry.set_gauges({self.gauge: 9.0, self.counter: 1.0})
        assert self.registry.value(self.gauge) == 0.0


class TestConcurrency:

    def test_no_lost_updates(self):
        registry = MetricsRegistry()
        counter = registry.register("hits_total", "Hits", MetricKind.COUNTER)
        workers, per_worker = 16, 2000

        def hammer():
            for _ in range(per_worker):
                registry.increment_counter(counter)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            for future in [pool.submit(hammer) for _ in range(workers)]:
                future.result()

        assert registry.value(counter) == workers * per_worker

    def test_snapshot_never_sees_partial_multi_gauge_update(self):
        registry = MetricsRegistry()
        left = registry.register("left_value", "Left", MetricKind.GAUGE)
        right = registry.register("right_value", "Right", MetricKind.GAUGE)
        stop = threading.Event()
        torn = []

        def writer():
            i = 0
            while not stop.is_set():
                i += 1
                registry.set_gauges({left: float(i), right: float(i)})

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(5000):
                a, b = registry.snapshot()
                if a.value != b.value:
                    torn.append((a.value, b.value))
        finally:
            stop.set()
            thread.join()

        assert torn == []
