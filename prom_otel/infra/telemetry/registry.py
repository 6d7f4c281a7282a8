"""
Metrics Registry — Lock-Guarded Counters and Gauges
=====================================================

The single source of truth for pull-based exposition. Written by the
resource sampler and by the request counter hook, read by the /metrics
endpoint.

Design:
  - One threading.Lock guards every read and write
  - Critical sections never perform I/O
  - Registration happens at startup only; ``freeze()`` seals the registry
  - Snapshots are copied out under the lock and rendered outside it

Metric Naming Convention:
  - Prometheus style, snake_case with unit suffix
  - Counters end in ``_total``, the suffix their samples are exposed with
  - e.g., http_requests_total, process_memory_usage_megabytes
"""

from __future__ import annotations

import re
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from prom_otel.core.exceptions import (
    DuplicateNameError,
    InvalidMetricError,
    RegistryFrozenError,
)

_METRIC_NAME = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_COUNTER_SUFFIX = "_total"

class MetricKind(StrEnum):
    COUNTER = "counter"
    GAUGE = "gauge"

@dataclass(frozen=True, slots=True)
class MetricHandle:
    """Opaque token returned by ``register``; all mutation goes through one."""

    name: str
    kind: MetricKind

@dataclass(frozen=True, slots=True)
class MetricSample:
    """Point-in-time value of one registered metric."""

    name: str
    description: str
    kind: MetricKind
    value: int | float

class _Slot:
    __slots__ = ("description", "kind", "value")

    def __init__(self, description: str, kind: MetricKind):
        self.description = description
        self.kind = kind
        self.value: int | float = 0 if kind is MetricKind.COUNTER else 0.0

# ── Registry ───────────────────────────────────────────────────────

class MetricsRegistry:
    """
    Process-local registry of counters and gauges.

    Usage:
        registry = MetricsRegistry()
        requests = registry.register("http_requests_total", "Total HTTP requests", MetricKind.COUNTER)
        registry.freeze()

        registry.increment_counter(requests)
        for sample in registry.snapshot():
            ...
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._slots: dict[str, _Slot] = {}
        self._frozen = False

    # ── Registration ───────────────────────────────────────────────

    def register(self, name: str, description: str, kind: MetricKind) -> MetricHandle:
        if not _METRIC_NAME.match(name):
            raise InvalidMetricError(f"'{name}' is not a valid metric name")
        kind = MetricKind(kind)
        if kind is MetricKind.COUNTER and (
            name == _COUNTER_SUFFIX or not name.endswith(_COUNTER_SUFFIX)
        ):
            raise InvalidMetricError(
                f"Counter '{name}' must end in '{_COUNTER_SUFFIX}'"
            )
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(name)
            if name in self._slots:
                raise DuplicateNameError(name)
            self._slots[name] = _Slot(description, kind)
        return MetricHandle(name=name, kind=kind)

    def freeze(self) -> None:
        """Seal the registry once startup registration is complete."""
        with self._lock:
            self._frozen = True

    # ── Mutation ───────────────────────────────────────────────────

    def increment_counter(self, handle: MetricHandle, delta: int = 1) -> None:
        if handle.kind is not MetricKind.COUNTER:
            raise InvalidMetricError(f"'{handle.name}' is not a counter")
        if delta < 0:
            raise InvalidMetricError(
                f"Counter '{handle.name}' cannot be decremented (delta={delta})"
            )
        with self._lock:
            self._slot(handle).value += delta

    def set_gauge(self, handle: MetricHandle, value: float) -> None:
        if handle.kind is not MetricKind.GAUGE:
            raise InvalidMetricError(f"'{handle.name}' is not a gauge")
        with self._lock:
            self._slot(handle).value = float(value)

    def set_gauges(self, values: Mapping[MetricHandle, float]) -> None:
        """Write several gauges in one critical section."""
        for handle in values:
            if handle.kind is not MetricKind.GAUGE:
                raise InvalidMetricError(f"'{handle.name}' is not a gauge")
        with self._lock:
            slots = [(self._slot(h), float(v)) for h, v in values.items()]
            for slot, value in slots:
                slot.value = value

    # ── Reads ──────────────────────────────────────────────────────

    def snapshot(self) -> list[MetricSample]:
        """Copy every sample in registration order."""
        with self._lock:
            return [
                MetricSample(name, slot.description, slot.kind, slot.value)
                for name, slot in self._slots.items()
            ]

    def value(self, handle: MetricHandle) -> int | float:
        with self._lock:
            return self._slot(handle).value

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def _slot(self, handle: MetricHandle) -> _Slot:
        # Caller holds the lock.
        slot = self._slots.get(handle.name)
        if slot is None or slot.kind is not handle.kind:
            raise InvalidMetricError(f"'{handle.name}' is not registered as a {handle.kind}")
        return slot

# ── Prometheus Bridge ──────────────────────────────────────────────

class RegistryCollector(Collector):
    """prometheus_client collector that renders a registry snapshot."""

    def __init__(self, registry: MetricsRegistry):
        self._registry = registry

    def collect(self) -> Iterator[Metric]:
        for sample in self._registry.snapshot():
            if sample.kind is MetricKind.COUNTER:
                family = CounterMetricFamily(sample.name, sample.description)
            else:
                family = GaugeMetricFamily(sample.name, sample.description)
            family.add_metric([], sample.value)
            yield family

# ── Application Metrics ───────────────────────────────────────────

@dataclass(frozen=True)
class AppMetrics:
    """Handles for the metrics this service registers at startup."""

    requests: MetricHandle
    cpu_percent: MetricHandle
    memory_megabytes: MetricHandle

    @classmethod
    def register(cls, registry: MetricsRegistry) -> AppMetrics:
        return cls(
            requests=registry.register(
                "http_requests_total", "Total HTTP requests", MetricKind.COUNTER
            ),
            cpu_percent=registry.register(
                "process_cpu_usage_percent",
                "CPU usage of this process in percent",
                MetricKind.GAUGE,
            ),
            memory_megabytes=registry.register(
                "process_memory_usage_megabytes",
                "Resident memory of this process in megabytes",
                MetricKind.GAUGE,
            ),
        )
