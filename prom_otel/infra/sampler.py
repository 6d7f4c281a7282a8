"""
Resource Sampler
================

Periodically reads this process's CPU and resident memory through psutil
and folds each reading into the metrics registry gauges.

- First reading happens during startup; failure there aborts the service
- Later failures are logged and skipped, previous gauge values remain
- Runs as a cancellable asyncio task; never sleeps while holding the lock
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from collections.abc import Callable
from dataclasses import dataclass

import psutil

from prom_otel.core.exceptions import ProcessLookupFailedError
from prom_otel.infra.telemetry.logger import get_logger
from prom_otel.infra.telemetry.registry import AppMetrics, MetricsRegistry

logger = get_logger(__name__)

_BYTES_PER_MB = 1024 * 1024

@dataclass(frozen=True, slots=True)
class ResourceReading:
    """One sampling cycle's measurement."""

    cpu_percent: float
    memory_megabytes: float

class ResourceSampler:
    """
    Background sampler writing process CPU and memory into the registry.

    Usage:
        sampler = ResourceSampler(registry, metrics, interval_s=5.0)
        sampler.prime()        # raises ProcessLookupFailedError if pid is unreadable
        sampler.start()
        ...
        await sampler.stop()
    """

    def __init__(
        self,
        registry: MetricsRegistry,
        metrics: AppMetrics,
        *,
        interval_s: float = 5.0,
        process_factory: Callable[[int], psutil.Process] = psutil.Process,
    ):
        self._registry = registry
        self._metrics = metrics
        self.interval_s = interval_s
        self._process_factory = process_factory
        self._pid = os.getpid()
        self._process: psutil.Process | None = None
        self._task: asyncio.Task | None = None
        self.iterations = 0
        self.consecutive_failures = 0
        self.last_reading: ResourceReading | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def read(self) -> ResourceReading:
        """Refresh accounting for the current pid and return one reading."""
        if self._process is None:
            self._process = self._process_factory(self._pid)
        with self._process.oneshot():
            cpu = self._process.cpu_percent(interval=None)
            rss = self._process.memory_info().rss
        return ResourceReading(cpu_percent=cpu, memory_megabytes=rss / _BYTES_PER_MB)

    def record(self, reading: ResourceReading) -> None:
        self._registry.set_gauges({
            self._metrics.cpu_percent: reading.cpu_percent,
            self._metrics.memory_megabytes: reading.memory_megabytes,
        })
        self.last_reading = reading

    def prime(self) -> ResourceReading:
        """Take the first reading synchronously; failure is fatal."""
        try:
            reading = self.read()
        except (psutil.Error, OSError) as e:
            raise ProcessLookupFailedError(self._pid, e) from e
        self.record(reading)
        self.iterations += 1
        logger.info(
            "sampler_primed",
            pid=self._pid,
            cpu_percent=reading.cpu_percent,
            memory_mb=round(reading.memory_megabytes, 2),
        )
        return reading

    def sample_once(self) -> ResourceReading | None:
        """One loop iteration; transient failures return None."""
        try:
            reading = self.read()
        except (psutil.Error, OSError) as e:
            self.consecutive_failures += 1
            # Drop the handle so the next cycle looks the pid up again.
            self._process = None
            logger.warning(
                "sample_failed",
                pid=self._pid,
                error=str(e),
                consecutive_failures=self.consecutive_failures,
            )
            return None
        finally:
            self.iterations += 1
        self.consecutive_failures = 0
        self.record(reading)
        logger.debug(
            "sample_recorded",
            cpu_percent=reading.cpu_percent,
            memory_mb=round(reading.memory_megabytes, 2),
        )
        return reading

    def start(self) -> None:
        """Spawn the sampling loop on the running event loop."""
        if self.running:
            return
        if self.iterations == 0:
            self.prime()
        self._task = asyncio.create_task(self._run(), name="resource-sampler-loop")
        logger.info("sampler_started", interval_s=self.interval_s)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info("sampler_stopped", iterations=self.iterations)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            self.sample_once()
