"""Structured logger, formatter and filter directives."""

import json
import logging

import pytest

from prom_otel.core.config import Settings
from prom_otel.infra.telemetry.logger import (
    OFF,
    DirectiveFilter,
    StructuredFormatter,
    get_logger,
    parse_filter_directives,
    setup_logging,
)


def _record(name: str, level: int, msg: str = "event", **extra) -> logging.LogRecord:
    record = logging.LogRecord(name, level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestDirectives:

    def test_parse_default_and_targets(self):
        default, targets = parse_filter_directives("warn,httpx=off,opentelemetry=debug")
        assert default == logging.WARNING
        assert targets == {"httpx": OFF, "opentelemetry": logging.DEBUG}

    def test_empty_spec_keeps_default(self):
        assert parse_filter_directives("", default=logging.ERROR) == (logging.ERROR, {})

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError, match="loud"):
            parse_filter_directives("info,httpx=loud")

    def test_most_specific_target_wins(self):
        f = DirectiveFilter("info,opentelemetry=off,opentelemetry.sdk=debug")
        assert f.level_for("opentelemetry.exporter") == OFF
        assert f.level_for("opentelemetry.sdk.trace") == logging.DEBUG
        assert f.level_for("opentelemetryx") == logging.INFO
        assert f.min_level == logging.DEBUG

    def test_filter_applies_levels(self):
        f = DirectiveFilter("info,urllib3=off")
        assert f.filter(_record("app", logging.INFO))
        assert not f.filter(_record("app", logging.DEBUG))
        assert not f.filter(_record("urllib3.connectionpool", logging.ERROR))


class TestFormatter:

    def test_json_output_includes_structured_data(self):
        formatter = StructuredFormatter(json_output=True)
        line = formatter.format(_record("prom_otel.test", logging.INFO, "sample_recorded", cpu=1.5))
        entry = json.loads(line)

        assert entry["message"] == "sample_recorded"
        assert entry["level"] == "INFO"
        assert entry["data"] == {"cpu": 1.5}
        assert "thread" in entry

    def test_human_output(self):
        formatter = StructuredFormatter(json_output=False)
        line = formatter.format(_record("prom_otel.test", logging.WARNING, "sample_failed", pid=7))
        assert "WARNING" in line
        assert "sample_failed" in line
        assert "pid=7" in line


def test_structured_logger_passes_fields_as_extra(caplog):
    log = get_logger("prom_otel.tests.structured")
    with caplog.at_level(logging.INFO, logger="prom_otel.tests.structured"):
        log.info("sampler_started", interval_s=5.0)

    [record] = caplog.records
    assert record.getMessage() == "sampler_started"
    assert record.interval_s == 5.0


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_log_level_sets_default_under_default_filter(restore_root_logger, monkeypatch):
    monkeypatch.delenv("LOG_FILTER", raising=False)
    settings = Settings(_env_file=None, LOG_LEVEL="DEBUG")
    setup_logging(
        level=settings.LOG_LEVEL,
        json_output=False,
        filters=settings.LOG_FILTER,
        force=True,
    )

    [console] = [h for h in restore_root_logger.handlers if isinstance(h, logging.StreamHandler)]
    assert all(f.filter(_record("app.component", logging.DEBUG)) for f in console.filters)
    assert restore_root_logger.level == logging.DEBUG


def test_bare_level_in_filter_overrides_log_level():
    directives = DirectiveFilter("warn,opentelemetry=debug", default=logging.DEBUG)
    assert directives.level_for("app.component") == logging.WARNING
