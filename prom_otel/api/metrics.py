"""
Prometheus Exposition Endpoint
==============================

GET /metrics renders the live registry snapshot in the Prometheus text
format. Every scrape re-encodes the snapshot; nothing is cached and the
registry is never mutated here.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, generate_latest

from prom_otel.api.deps import TelemetryDep
from prom_otel.infra.telemetry.registry import MetricsRegistry, RegistryCollector

CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter(tags=["metrics"])

def render_exposition(registry: MetricsRegistry) -> bytes:
    """Encode one snapshot of ``registry`` as Prometheus text."""
    collectors = CollectorRegistry(auto_describe=False)
    collectors.register(RegistryCollector(registry))
    return generate_latest(collectors)

@router.get("/metrics")
async def metrics_endpoint(telemetry: TelemetryDep) -> Response:
    return Response(content=render_exposition(telemetry.registry), media_type=CONTENT_TYPE)
