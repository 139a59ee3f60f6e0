"""
Tests for structured logging and error tracking
"""

import json
import logging
import logging.handlers

import pytest

from config.app_config import AppConfig
from utils.logging_config import (
    ErrorTracker,
    StructuredFormatter,
    log_execution_time,
    log_user_interaction,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    """setup_logging replaces root handlers; put the test runner's back afterwards"""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("test.logger", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test JSON log formatting"""

    def test_basic_fields(self):
        line = StructuredFormatter().format(make_record("hello"))
        data = json.loads(line)

        assert data["level"] == "INFO"
        assert data["logger"] == "test.logger"
        assert data["msg"] == "hello"
        assert data["src"].endswith(":10")
        assert isinstance(data["ts"], int)
        assert "fields" not in data
        assert ", " not in line

    def test_correlation_fields_are_top_level(self):
        record = make_record(conversation_id="abc", interaction_type="message_sent", count=3)

        data = json.loads(StructuredFormatter().format(record))

        assert data["conversation_id"] == "abc"
        assert data["interaction_type"] == "message_sent"
        assert data["fields"] == {"count": 3}

    def test_exception_info(self):
        try:
            raise ValueError("bad value")
        except ValueError:
            import sys
            record = make_record("failed", logging.ERROR)
            record.exc_info = sys.exc_info()

        data = json.loads(StructuredFormatter().format(record))

        assert data["error"]["type"] == "ValueError"
        assert data["error"]["message"] == "bad value"
        assert "Traceback" in data["error"]["trace"]


class TestSetupLogging:
    """Test root logger configuration"""

    def test_file_logging(self, tmp_path, restore_root_logger):
        config = AppConfig()
        config.debug = False
        config.environment = "production"
        config.logging.level = "WARNING"
        config.logging.log_file = str(tmp_path / "logs" / "app.log")

        root = setup_logging(config)

        assert root.level == logging.WARNING
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
        assert (tmp_path / "logs").is_dir()

    def test_console_only(self, restore_root_logger):
        config = AppConfig()
        config.debug = False
        config.environment = "production"
        config.logging.enable_file_logging = False

        root = setup_logging(config)

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)


class TestLoggingHelpers:
    """Test the logging helper functions"""

    def test_log_user_interaction(self, caplog):
        logger = logging.getLogger("test.interactions")

        with caplog.at_level(logging.INFO, logger="test.interactions"):
            log_user_interaction(logger, "message_sent", query_length=12)

        record = caplog.records[-1]
        assert record.interaction_type == "message_sent"
        assert record.query_length == 12

    def test_log_execution_time_success(self, caplog):
        logger = logging.getLogger("test.timing")

        with caplog.at_level(logging.DEBUG, logger="test.timing"):
            with log_execution_time(logger, "work", model="m"):
                pass

        completed = [r for r in caplog.records if r.getMessage() == "Completed work"]
        assert completed and completed[0].status == "success"

    def test_log_execution_time_reraises(self, caplog):
        logger = logging.getLogger("test.timing")

        with caplog.at_level(logging.DEBUG, logger="test.timing"):
            with pytest.raises(RuntimeError):
                with log_execution_time(logger, "work"):
                    raise RuntimeError("boom")

        failed = [r for r in caplog.records if r.getMessage().startswith("Failed work")]
        assert failed and failed[0].error_type == "RuntimeError"


class TestErrorTracker:
    """Test error counting per context"""

    def test_counts_by_context_and_type(self, caplog):
        tracker = ErrorTracker(logging.getLogger("test.errors"))

        with caplog.at_level(logging.ERROR, logger="test.errors"):
            tracker.track_error(ValueError("a"), "persistence_decode")
            tracker.track_error(ValueError("b"), "persistence_decode")
            tracker.track_error(OSError("c"), "persist", conversation_id="x")

        summary = tracker.get_error_summary()
        assert summary["total"] == 3
        assert summary["by_context"] == {
            "persist": {"OSError": 1},
            "persistence_decode": {"ValueError": 2},
        }
        assert [e["message"] for e in summary["recent"]] == ["a", "b", "c"]
        assert caplog.records[-1].context == "persist"
        assert caplog.records[-1].conversation_id == "x"
        assert caplog.records[1].occurrences == 2

    def test_history_is_bounded(self):
        tracker = ErrorTracker(logging.getLogger("test.errors"), history_size=2)

        for n in range(5):
            tracker.track_error(RuntimeError(str(n)), "generation")

        summary = tracker.get_error_summary()
        assert summary["total"] == 5
        assert [e["message"] for e in summary["recent"]] == ["3", "4"]

    def test_last_error_per_context(self):
        tracker = ErrorTracker(logging.getLogger("test.errors"))
        tracker.track_error(RuntimeError("first"), "generation")
        tracker.track_error(OSError("disk"), "persist")
        tracker.track_error(TimeoutError("slow"), "generation")

        assert tracker.last_error("generation")["message"] == "slow"
        assert tracker.last_error("persist")["type"] == "OSError"
        assert tracker.last_error("state_load") is None

    def test_missing_context_is_labelled(self):
        tracker = ErrorTracker(logging.getLogger("test.errors"))

        tracker.track_error(KeyError("k"))

        assert tracker.get_error_summary()["by_context"] == {"unknown": {"KeyError": 1}}

    def test_reset(self):
        tracker = ErrorTracker(logging.getLogger("test.errors"))
        tracker.track_error(ValueError("a"), "persistence_decode")

        tracker.reset()

        assert tracker.get_error_summary() == {"total": 0, "by_context": {}, "recent": []}
