"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter

from prom_otel.api.deps import TelemetryDep

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(telemetry: TelemetryDep):
    """Liveness plus sampler and exporter status. Not counted as traffic."""
    sampler = telemetry.sampler
    exporters = telemetry.pipeline.status()
    degraded = not sampler.running or any(state != "active" for state in exporters.values())
    reading = sampler.last_reading
    return {
        "status": "degraded" if degraded else "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "sampler": {
            "running": sampler.running,
            "iterations": sampler.iterations,
            "consecutive_failures": sampler.consecutive_failures,
            "cpu_percent": reading.cpu_percent if reading else None,
            "memory_megabytes": reading.memory_megabytes if reading else None,
        },
        "exporters": exporters,
    }
