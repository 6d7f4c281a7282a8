"""
Shared API Dependencies
========================

The telemetry state built by the lifespan lives on ``app.state.telemetry``;
route modules reach it through the dependencies below instead of
module-level singletons.

Usage:
    from ..deps import TelemetryDep, count_request

    @router.get("/", dependencies=[Depends(count_request)])
    async def root(): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from prom_otel.core.config import Settings
from prom_otel.infra.sampler import ResourceSampler
from prom_otel.infra.telemetry.export import ExportPipeline, OtlpCounter
from prom_otel.infra.telemetry.registry import AppMetrics, MetricsRegistry

__all__ = [
    "TelemetryDep",
    "TelemetryState",
    "count_request",
    "get_telemetry",
]

@dataclass
class TelemetryState:
    """Everything the lifespan builds once and the routes share by reference."""

    settings: Settings
    registry: MetricsRegistry
    metrics: AppMetrics
    sampler: ResourceSampler
    pipeline: ExportPipeline
    otlp_requests: OtlpCounter

def get_telemetry(request: Request) -> TelemetryState:
    return request.app.state.telemetry

TelemetryDep = Annotated[TelemetryState, Depends(get_telemetry)]

async def count_request(request: Request, telemetry: TelemetryDep) -> None:
    """Request counter hook: runs before the route handler builds its response."""
    telemetry.registry.increment_counter(telemetry.metrics.requests)
    telemetry.otlp_requests.add(1, attributes={"http.route": request.url.path})
