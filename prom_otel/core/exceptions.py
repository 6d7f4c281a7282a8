"""Exception classes for prom-otel.

Includes:
- Base exception carrying an error code and a serializable payload
- Startup (configuration) errors that abort the service
- Hot-path argument errors raised by the metrics registry
"""

from datetime import UTC, datetime
from typing import Any


class PromOtelError(Exception):
    """Base exception for all prom-otel errors."""

    def __init__(self, detail: str, error_code: str = "INTERNAL_ERROR"):
        self.detail = detail
        self.error_code = error_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logs and health payloads."""
        return {
            "error": self.error_code,
            "detail": self.detail,
            "timestamp": self.timestamp,
        }


# =============================================================================
# STARTUP EXCEPTIONS (fatal)
# =============================================================================


class ConfigurationError(PromOtelError):
    """Base class for errors that must abort process startup."""

    def __init__(self, detail: str, error_code: str = "CONFIGURATION_ERROR"):
        super().__init__(detail=detail, error_code=error_code)


class DuplicateNameError(ConfigurationError):
    """Raised when a metric name is registered twice."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            detail=f"Metric '{name}' is already registered",
            error_code="DUPLICATE_METRIC",
        )


class RegistryFrozenError(ConfigurationError):
    """Raised when a metric is registered after startup has completed."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            detail=f"Cannot register '{name}': registry is frozen",
            error_code="REGISTRY_FROZEN",
        )


class ExporterConfigError(ConfigurationError):
    """Raised when an export provider cannot be constructed."""

    def __init__(self, signal: str, detail: str):
        self.signal = signal
        super().__init__(
            detail=f"{signal} exporter: {detail}",
            error_code="EXPORTER_CONFIG_ERROR",
        )


class ProcessLookupFailedError(ConfigurationError):
    """Raised when the current process cannot be inspected on the first sample."""

    def __init__(self, pid: int, original_error: Exception | None = None):
        self.pid = pid
        self.original_error = original_error
        reason = f": {original_error}" if original_error else ""
        super().__init__(
            detail=f"Unable to read resource usage for pid {pid}{reason}",
            error_code="PROCESS_LOOKUP_FAILED",
        )


# =============================================================================
# HOT-PATH EXCEPTIONS
# =============================================================================


class InvalidMetricError(PromOtelError, ValueError):
    """Raised on a programming error against the registry (bad delta, wrong kind)."""

    def __init__(self, detail: str):
        super().__init__(detail=detail, error_code="INVALID_METRIC_ARGUMENT")
