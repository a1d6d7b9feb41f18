"""
Tests for run-id aware logging.
"""
import pytest
import json
import logging
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.logging_config import (
    ConsoleFormatter,
    StructuredFormatter,
    clear_run_id,
    get_run_id,
    log_method,
    log_request,
    set_run_id,
)


def make_record(message="hello", level=logging.INFO, name="services.backtesting.engine"):
    return logging.LogRecord(name, level, __file__, 1, message, None, None)


class TestRunId:

    def test_set_and_get(self):
        set_run_id("run-1")
        assert get_run_id() == "run-1"
        clear_run_id()

    def test_generated_when_missing(self):
        clear_run_id()
        run_id = get_run_id()
        assert len(run_id) == 12
        assert get_run_id() == run_id
        clear_run_id()


class TestFormatters:

    def test_structured_formatter(self):
        set_run_id("abc")
        record = make_record("12 trades")
        record.strategy = "rsi"
        entry = json.loads(StructuredFormatter().format(record))
        clear_run_id()

        assert entry["run_id"] == "abc"
        assert entry["component"] == "engine"
        assert entry["level"] == "INFO"
        assert entry["message"] == "12 trades"
        assert entry["extra"] == {"strategy": "rsi"}

    def test_console_formatter(self):
        set_run_id("abc")
        line = ConsoleFormatter(use_color=False).format(make_record("done", logging.WARNING))
        clear_run_id()
        assert line.startswith("[abc] WARNING ")
        assert "engine" in line
        assert line.endswith("- done")


class TestLogHelpers:

    def test_log_request_levels(self, caplog):
        logger = logging.getLogger("quantflow.test")
        with caplog.at_level(logging.INFO, logger="quantflow.test"):
            log_request(logger, "POST", "/api/backtest/run", 200, 12.3)
            log_request(logger, "POST", "/api/backtest/run", 400, 1.0)
            log_request(logger, "GET", "/boom", 500)

        levels = [r.levelno for r in caplog.records]
        assert levels == [logging.INFO, logging.WARNING, logging.ERROR]
        assert caplog.records[0].getMessage() == "POST /api/backtest/run -> 200 (12ms)"

    def test_log_method_records_entry_and_exit(self, caplog):
        logger = logging.getLogger("quantflow.test")

        @log_method(logger=logger)
        def add(a, b):
            return a + b

        with caplog.at_level(logging.DEBUG, logger="quantflow.test"):
            assert add(1, 2) == 3

        messages = [r.getMessage() for r in caplog.records]
        assert messages[0].startswith("ENTER: ")
        assert messages[1].startswith("EXIT: ")

    def test_log_method_reraises(self, caplog):
        logger = logging.getLogger("quantflow.test")

        @log_method(logger=logger)
        def fail():
            raise ValueError("bad")

        with caplog.at_level(logging.DEBUG, logger="quantflow.test"):
            with pytest.raises(ValueError):
                fail()

        assert caplog.records[-1].levelno == logging.ERROR
        assert caplog.records[-1].error_type == "ValueError"

    def test_log_method_wraps_and_uses_level(self, caplog):
        logger = logging.getLogger("quantflow.test")

        @log_method(logger=logger, level=logging.INFO)
        def run_once():
            return "done"

        with caplog.at_level(logging.INFO, logger="quantflow.test"):
            assert run_once() == "done"

        assert run_once.__name__ == "run_once"
        assert [r.levelno for r in caplog.records] == [logging.INFO, logging.INFO]
        assert caplog.records[0].function.endswith("run_once")
