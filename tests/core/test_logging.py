"""Tests for spine_delayed.core.logging."""

import json
import logging

import pytest
import structlog
from structlog.testing import LogCapture

from spine_delayed.core.logging import (
    LogContext,
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def log_capture():
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    return capture


class TestConfigureLogging:
    def test_json_output(self, caplog):
        caplog.set_level(logging.INFO)
        configure_logging(level="INFO", json_format=True)
        get_logger("tests.logging").info("delayed_job_dispatched", queue="jobs")

        record = json.loads(caplog.records[-1].getMessage())
        assert record["event"] == "delayed_job_dispatched"
        assert record["queue"] == "jobs"
        assert record["service.name"] == "spine-delayed"
        assert record["log.level"] == "info"
        assert "@timestamp" in record

    def test_level_filters_lower_levels(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="WARNING", json_format=True)
        get_logger("tests.logging").info("quiet_event")

        assert "quiet_event" not in caplog.text


class TestContext:
    def test_log_context_binds_and_unbinds(self, log_capture):
        logger = get_logger("tests")
        with LogContext(worker_id="host:1:abc"):
            logger.info("inside")
        logger.info("outside")

        assert log_capture.entries[0]["worker_id"] == "host:1:abc"
        assert "worker_id" not in log_capture.entries[1]

    def test_bind_and_unbind(self, log_capture):
        logger = get_logger("tests")
        bind_context(queue="jobs")
        logger.info("bound")
        unbind_context("queue")
        logger.info("unbound")

        assert log_capture.entries[0]["queue"] == "jobs"
        assert "queue" not in log_capture.entries[1]
