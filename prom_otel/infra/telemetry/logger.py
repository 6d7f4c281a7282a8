"""
Structured Logger — Console Output and OTLP Log Bridge
========================================================

Provides structured JSON logging with automatic trace/span correlation,
env-filter style level directives, and a bridge handler that forwards
records into the OpenTelemetry log provider for push export.

Design:
  - JSON-structured output for machine parsing
  - Human-readable fallback for development
  - Automatic trace_id/span_id injection from the active OpenTelemetry span
  - Per-target level directives ("info,httpx=off,opentelemetry=debug")
  - Thread-safe and async-compatible

Architecture:
  - This is the lowest-level telemetry primitive
  - All other layers import from here
"""

from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace as otel_trace
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler

# ── Filter Directives ─────────────────────────────────────────────

OFF = logging.CRITICAL + 10

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": OFF,
}

def _parse_level(token: str) -> int:
    try:
        return _LEVELS[token.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level '{token}' in filter directive") from None

def parse_filter_directives(
    spec: str, default: int = logging.INFO
) -> tuple[int, dict[str, int]]:
    """
    Parse an env-filter style directive string.

    "info,httpx=off,opentelemetry=debug" -> (INFO, {"httpx": OFF, "opentelemetry": DEBUG})

    A bare level sets the default; ``target=level`` sets the level for a
    logger and its children.
    """
    targets: dict[str, int] = {}
    for raw in spec.split(","):
        directive = raw.strip()
        if not directive:
            continue
        if "=" in directive:
            target, level = directive.split("=", 1)
            targets[target.strip()] = _parse_level(level)
        else:
            default = _parse_level(directive)
    return default, targets

class DirectiveFilter(logging.Filter):
    """Handler filter applying the most specific matching directive to each record."""

    def __init__(self, spec: str, default: int = logging.INFO):
        super().__init__()
        self.default, self.targets = parse_filter_directives(spec, default)
        # Longest prefix first so "a.b" wins over "a".
        self._ordered = sorted(self.targets.items(), key=lambda kv: -len(kv[0]))

    def level_for(self, name: str) -> int:
        for target, level in self._ordered:
            if name == target or name.startswith(target + "."):
                return level
        return self.default

    @property
    def min_level(self) -> int:
        return min([self.default, *self.targets.values()])

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= self.level_for(record.name)

# ── Structured Formatter ──────────────────────────────────────────

_SKIP = {
    "name", "msg", "args", "created", "relativeCreated",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "pathname", "filename", "module", "levelno", "levelname",
    "thread", "threadName", "process", "processName", "msecs",
    "taskName", "message",
    # Injected by the OpenTelemetry logging instrumentation when present.
    "otelSpanID", "otelTraceID", "otelTraceSampled", "otelServiceName",
}

_JSON_SAFE = (str, int, float, bool, type(None))

class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter with automatic trace context injection."""

    def __init__(self, *, json_output: bool = True, include_traceback: bool = True):
        super().__init__()
        self._json = json_output
        self._include_tb = include_traceback
        self._hostname = os.uname().nodename
        self._pid = os.getpid()

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=UTC
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "pid": self._pid,
            "host": self._hostname,
        }

        span_ctx = otel_trace.get_current_span().get_span_context()
        if span_ctx.is_valid:
            entry["context"] = {
                "trace_id": otel_trace.format_trace_id(span_ctx.trace_id),
                "span_id": otel_trace.format_span_id(span_ctx.span_id),
            }

        extras: dict[str, str | int | float | bool | None] = {}
        for key, val in record.__dict__.items():
            if key.startswith("_") or key in _SKIP:
                continue
            extras[key] = val if isinstance(val, _JSON_SAFE) else str(val)

        if extras:
            entry["data"] = extras

        if record.exc_info and self._include_tb:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
                if record.exc_info[2]
                else None,
            }

        if self._json:
            return json.dumps(entry, default=str, ensure_ascii=False)

        # Human-readable fallback
        data = " ".join(f"{k}={v}" for k, v in extras.items())
        line = (
            f"{entry['timestamp']} | {entry['level']:8s} | "
            f"{entry['thread']} | {entry['logger']}:{entry['line']} | "
            f"{entry['message']}"
        )
        return f"{line} | {data}" if data else line

# ── Structured Logger ─────────────────────────────────────────────

class StructuredLogger:
    """
    Wrapper around stdlib logger providing structured logging helpers.

    Usage:
        log = StructuredLogger("prom_otel.infra.sampler")
        log.info("sample_recorded", cpu_percent=3.2, memory_mb=41.7)
        log.warning("sample_failed", consecutive_failures=2)
    """

    __slots__ = ("_logger", "_name")

    def __init__(self, name: str):
        self._name = name
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._name

    def _log(self, level: int, event: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, event, extra=kwargs, stacklevel=3)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, exc: BaseException | None = None, **kwargs: Any) -> None:
        if exc:
            self._logger.error(event, extra=kwargs, exc_info=exc, stacklevel=2)
        else:
            self._log(logging.ERROR, event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        self._logger.exception(event, extra=kwargs, stacklevel=2)

# ── OTLP Log Bridge ───────────────────────────────────────────────

class OtlpLogBridge(LoggingHandler):
    """
    Forwards stdlib log records to an OpenTelemetry LoggerProvider.

    Records are dropped while ``accepting()`` is false, so nothing reaches
    the provider outside its active window. The directive filter keeps the
    exporter's own transport libraries out of the export stream.
    """

    def __init__(
        self,
        logger_provider: LoggerProvider,
        *,
        accepting: Callable[[], bool],
        directives: str,
    ):
        self._directives = DirectiveFilter(directives)
        super().__init__(level=self._directives.min_level, logger_provider=logger_provider)
        self._accepting = accepting
        self.addFilter(self._directives)

    def emit(self, record: logging.LogRecord) -> None:
        if not self._accepting():
            return
        super().emit(record)

# ── Setup ──────────────────────────────────────────────────────────

_initialized = False

def setup_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    filters: str | None = None,
    force: bool = False,
) -> None:
    """
    Initialize the logging system. Call once at application startup.

    Args:
        level: Default level when ``filters`` carries no bare level
        json_output: JSON lines (True) or human-readable output (False)
        filters: Directive string, e.g. "opentelemetry=debug"; a bare level overrides ``level``
        force: Reinstall handlers even if already initialized
    """
    global _initialized
    if _initialized and not force:
        return
    _initialized = True

    directives = DirectiveFilter(filters or "", default=_parse_level(level))

    root = logging.getLogger()
    root.setLevel(min(directives.min_level, logging.CRITICAL))

    # Keep any bridge handlers that are already attached.
    for handler in list(root.handlers):
        if not isinstance(handler, OtlpLogBridge):
            root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(json_output=json_output))
    console.addFilter(directives)
    root.addHandler(console)

def attach_log_bridge(bridge: OtlpLogBridge) -> None:
    """Route root-logger records into the OTLP log provider."""
    logging.getLogger().addHandler(bridge)

def detach_log_bridge(bridge: OtlpLogBridge) -> None:
    logging.getLogger().removeHandler(bridge)

def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
