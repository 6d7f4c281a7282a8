"""
prom-otel Main Application
==========================

Startup order (inside the lifespan, before traffic is accepted):
  1. Logging        (console handler + level directives)
  2. Export         (resource identity, OTLP log/trace/metric providers)
  3. Log bridge     (root logger -> OTLP log provider)
  4. Registry       (application metrics registered, then frozen)
  5. Sampler        (first reading taken synchronously, loop spawned)
  6. Startup span

Shutdown order (after the server stops):
  1. Sampler stopped
  2. Export providers drained concurrently, each with its own deadline
  3. Log bridge detached

Any ConfigurationError raised during startup propagates out of the
lifespan and the server refuses to start.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import psutil
from fastapi import FastAPI

from prom_otel.api.deps import TelemetryState
from prom_otel.api.routes import router
from prom_otel.core.config import Settings, get_settings
from prom_otel.core.exceptions import ConfigurationError
from prom_otel.infra.sampler import ResourceSampler
from prom_otel.infra.telemetry.export import ExportPipeline, SignalExporters
from prom_otel.infra.telemetry.logger import (
    attach_log_bridge,
    detach_log_bridge,
    get_logger,
    setup_logging,
)
from prom_otel.infra.telemetry.registry import AppMetrics, MetricsRegistry

logger = get_logger(__name__)

# ==================== LIFESPAN CONTEXT MANAGER ====================

def _build_lifespan(
    settings: Settings,
    exporters: SignalExporters | None,
    process_factory: Callable[[int], psutil.Process],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ==================== STARTUP ====================
        setup_logging(
            level=settings.LOG_LEVEL,
            json_output=settings.json_logs,
            filters=settings.LOG_FILTER,
        )
        logger.info(
            "service_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )

        pipeline = ExportPipeline.from_settings(settings, exporters)
        bridge = pipeline.logs.bridge(settings.OTEL_LOG_FILTER)
        attach_log_bridge(bridge)

        try:
            registry = MetricsRegistry()
            metrics = AppMetrics.register(registry)
            registry.freeze()

            sampler = ResourceSampler(
                registry,
                metrics,
                interval_s=settings.SAMPLE_INTERVAL_S,
                process_factory=process_factory,
            )
            sampler.prime()
        except ConfigurationError as e:
            logger.error("service_startup_failed", exc=e, **e.to_dict())
            detach_log_bridge(bridge)
            for provider in pipeline.providers:
                provider.close_now()
            raise

        app.state.telemetry = TelemetryState(
            settings=settings,
            registry=registry,
            metrics=metrics,
            sampler=sampler,
            pipeline=pipeline,
            otlp_requests=pipeline.metrics.counter(
                "http.server.requests", "Requests served by instrumented routes"
            ),
        )
        sampler.start()

        tracer = pipeline.traces.tracer(__name__)
        with tracer.span("main.startup", attributes={"example.key": "value"}) as span:
            span.set_attribute("registered_metrics", len(registry))
            logger.info("startup_span_recorded", sample_interval_s=sampler.interval_s)

        logger.info("service_ready", host=settings.HOST, port=settings.PORT)

        try:
            yield  # ═══════════ Application runs here ═══════════
        finally:
            # ==================== SHUTDOWN ====================
            logger.info("service_stopping")
            await sampler.stop()
            outcomes = await pipeline.shutdown(settings.SHUTDOWN_DRAIN_TIMEOUT_S)
            detach_log_bridge(bridge)
            logger.info(
                "service_stopped",
                drained=",".join(o.signal.value for o in outcomes if o.ok),
            )

    return lifespan

# ==================== APPLICATION FACTORY ====================

def create_app(
    settings: Settings | None = None,
    *,
    exporters: SignalExporters | None = None,
    process_factory: Callable[[int], psutil.Process] = psutil.Process,
) -> FastAPI:
    """
    Build the FastAPI app. Nothing is started until the lifespan runs.

    Args:
        settings: Resolved configuration; read from the environment if None
        exporters: Exporter objects to use instead of OTLP/HTTP ones
        process_factory: psutil.Process-compatible factory for the sampler
    """
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=_build_lifespan(settings, exporters, process_factory),
    )
    app.include_router(router)
    return app
