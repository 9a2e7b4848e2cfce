"""Tests for the logging and metrics helpers."""

import io
import json
import logging
from unittest.mock import patch

from prometheus_client import generate_latest

from observability.logging import (
    ColoredFormatter,
    JSONFormatter,
    get_structured_logger,
    log_performance,
    setup_logging,
)
from observability.prometheus_metrics import (
    PrometheusMiddleware,
    flusio_registry,
    record_feed_fetch,
    record_job,
)


def _record(message="Feed fetched", **extra):
    record = logging.LogRecord("flusio.test", logging.INFO, __file__, 12, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    def test_json_formatter(self):
        output = JSONFormatter("flusio-worker").format(_record(ctx_job_id=42))

        entry = json.loads(output)
        assert entry["message"] == "Feed fetched"
        assert entry["level"] == "INFO"
        assert entry["service"] == "flusio-worker"
        assert entry["ctx_job_id"] == 42
        assert entry["timestamp"].endswith("Z")

    def test_colored_formatter_appends_context(self):
        output = ColoredFormatter(use_colors=False).format(_record(ctx_feed_id=3))

        assert output.endswith("| flusio.test | Feed fetched | feed_id=3")
        assert "\033[" not in output

    def test_colored_formatter_colors(self):
        output = ColoredFormatter(use_colors=True).format(_record())

        assert output.startswith("\033[32m")


def test_structured_logger_adds_context(caplog):
    logger = get_structured_logger("flusio.jobs", job_id=1)

    with caplog.at_level(logging.INFO, logger="flusio.jobs"):
        logger.info("Job done", handler="feed_fetch")

    record = caplog.records[-1]
    assert record.ctx_job_id == 1
    assert record.ctx_handler == "feed_fetch"


def test_setup_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "flusio.log"
    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    previous_level = root_logger.level
    try:
        setup_logging("warning", log_file=str(log_file))
        logging.getLogger("flusio.test").warning("Cache is full")
        for handler in root_logger.handlers:
            handler.flush()
    finally:
        for handler in root_logger.handlers:
            handler.close()
        root_logger.handlers = previous_handlers
        root_logger.setLevel(previous_level)

    entry = json.loads(log_file.read_text().splitlines()[-1])
    assert entry["message"] == "Cache is full"
    assert entry["level"] == "WARNING"


def test_setup_logging_to_a_stream():
    stream = io.StringIO()
    root_logger = logging.getLogger()
    previous_handlers = list(root_logger.handlers)
    previous_level = root_logger.level
    try:
        setup_logging("info", use_colors=False, stream=stream)
        logging.getLogger("flusio.test").info("Feed fetched")
    finally:
        root_logger.handlers = previous_handlers
        root_logger.setLevel(previous_level)

    assert "| INFO     | flusio.test | Feed fetched" in stream.getvalue()


class TestLogPerformance:
    def test_warns_on_slow_calls(self, caplog):
        @log_performance("flusio.perf", threshold_ms=100)
        def slow():
            return "done"

        with patch("observability.logging.time") as clock:
            clock.perf_counter.side_effect = [10.0, 10.5]
            with caplog.at_level(logging.WARNING, logger="flusio.perf"):
                assert slow() == "done"

        assert "Slow execution of slow" in caplog.text

    def test_silent_on_fast_calls(self, caplog):
        @log_performance("flusio.perf", threshold_ms=1000)
        def fast():
            return 1

        with caplog.at_level(logging.WARNING, logger="flusio.perf"):
            fast()

        assert caplog.text == ""


class TestMetrics:
    def test_normalize_endpoint(self):
        assert PrometheusMiddleware._normalize_endpoint("/collections/42/links") == "/collections/{id}/links"
        assert PrometheusMiddleware._normalize_endpoint("/links/7") == "/links/{id}"
        assert PrometheusMiddleware._normalize_endpoint("/news") == "/news"

    def test_records_are_exported(self):
        record_feed_fetch("success", 0.2, number_created=3)
        record_job("feed_fetch", 0.1, error=True)

        output = generate_latest(flusio_registry).decode()
        assert 'flusio_feed_fetches_total{status="success"}' in output
        assert "flusio_feed_links_created_total" in output
        assert 'flusio_jobs_executed_total{handler="feed_fetch",status="error"}' in output
