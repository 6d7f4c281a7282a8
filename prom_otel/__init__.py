"""prom-otel — self-monitoring telemetry sidecar (Prometheus pull + OTLP push)."""

__version__ = "0.1.0"
