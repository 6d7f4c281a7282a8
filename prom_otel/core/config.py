"""
Service Configuration
=====================

Centralized configuration management using Pydantic Settings.
All environment variables are resolved here, before any telemetry
component is constructed, and handed to the lifespan as one object.
"""

from __future__ import annotations

from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prom_otel import __version__

_SIGNAL_PATHS = {
    "logs": "/v1/logs",
    "traces": "/v1/traces",
    "metrics": "/v1/metrics",
}


def _check_http_url(value: str | None) -> str | None:
    if value is None:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"'{value}' is not an http(s) URL")
    return value.rstrip("/")


class Settings(BaseSettings):
    """Sidecar settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== Application ====================
    APP_NAME: str = "prom-otel"
    APP_VERSION: str = __version__
    ENVIRONMENT: str = "production"
    HOST: str = "0.0.0.0"
    PORT: int = 8888

    # ==================== OTLP Export ====================
    OTEL_SERVICE_NAME: str = "otlp-fastapi-http-example"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = "http://localhost:4318"
    OTEL_EXPORTER_OTLP_LOGS_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_TRACES_ENDPOINT: str | None = None
    OTEL_EXPORTER_OTLP_METRICS_ENDPOINT: str | None = None
    OTEL_EXPORT_TIMEOUT_S: float = Field(default=10.0, gt=0)
    OTEL_BATCH_DELAY_MS: int = Field(default=5000, gt=0)
    OTEL_METRIC_EXPORT_INTERVAL_MS: int = Field(default=60000, gt=0)
    SHUTDOWN_DRAIN_TIMEOUT_S: float = Field(default=5.0, gt=0)

    # ==================== Sampling ====================
    SAMPLE_INTERVAL_S: float = Field(default=5.0, gt=0)

    # ==================== Logging ====================
    LOG_LEVEL: str = "INFO"
    LOG_FILTER: str = "opentelemetry=debug"
    OTEL_LOG_FILTER: str = (
        "info,httpx=off,httpcore=off,urllib3=off,requests=off,opentelemetry=off"
    )
    LOG_JSON: bool | None = None

    @field_validator(
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
    )
    @classmethod
    def validate_endpoint(cls, v: str | None) -> str | None:
        return _check_http_url(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @property
    def json_logs(self) -> bool:
        if self.LOG_JSON is not None:
            return self.LOG_JSON
        return self.ENVIRONMENT != "development"

    def signal_endpoint(self, signal: str) -> str:
        """Resolve the collector URL for one signal ("logs", "traces", "metrics").

        A per-signal override is used verbatim; otherwise the signal path is
        appended to the base endpoint.
        """
        override = getattr(self, f"OTEL_EXPORTER_OTLP_{signal.upper()}_ENDPOINT")
        if override:
            return override
        return f"{self.OTEL_EXPORTER_OTLP_ENDPOINT}{_SIGNAL_PATHS[signal]}"


@lru_cache
def get_settings() -> Settings:
    """Settings resolved once from the environment."""
    return Settings()
