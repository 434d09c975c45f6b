"""
Tests for structured logging configuration
"""

import io
import json
import logging
import sys

from billing_engine.logging_config import JSONFormatter, setup_logging, get_logger, log_action


def make_record(message="Test message", **attrs):
    logger = logging.getLogger("test")
    record = logger.makeRecord("test", logging.INFO, __name__, 42, message, (), None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Test JSON log formatting"""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["message"] == "Test message"
        assert data["logger"] == "test"
        assert "timestamp" in data

    def test_structured_fields(self):
        record = make_record(
            action="make_payment", resource="loan:loan-1",
            correlation_id="corr-1", user_id="teller-7",
            extra={"week_number": 3}
        )
        data = json.loads(JSONFormatter().format(record))

        assert data["action"] == "make_payment"
        assert data["resource"] == "loan:loan-1"
        assert data["correlation_id"] == "corr-1"
        assert data["user_id"] == "teller-7"
        assert data["extra"] == {"week_number": 3}

    def test_none_values_dropped(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert "action" not in data
        assert "extra" not in data

    def test_exception_included(self):
        try:
            raise ValueError("bad week")
        except ValueError:
            record = logging.getLogger("test").makeRecord(
                "test", logging.ERROR, __name__, 1, "failed", (), sys.exc_info()
            )
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad week" in data["exception"]


class TestSetupLogging:
    """Test logger setup"""

    def test_json_setup(self):
        logger = setup_logging("DEBUG", "test_billing_json")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

    def test_repeat_setup_does_not_duplicate_handlers(self):
        setup_logging("INFO", "test_billing_repeat")
        logger = setup_logging("WARNING", "test_billing_repeat")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

    def test_text_format(self):
        logger = setup_logging("INFO", "test_billing_text", log_format="text")
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_file(self, tmp_path):
        path = tmp_path / "billing.log"
        logger = setup_logging("INFO", "test_billing_file", log_file=str(path))

        logger.info("written")
        logger.handlers[0].flush()

        assert json.loads(path.read_text().strip())["message"] == "written"

    def test_get_logger(self):
        assert get_logger("billing.loans").name == "billing.loans"
        assert get_logger().name == "billing"


class TestLogAction:
    """Test the structured action helper"""

    def setup_method(self):
        self.stream = io.StringIO()
        self.logger = logging.getLogger("test_billing_actions")
        self.logger.handlers = []
        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

    def test_log_action(self):
        log_action(
            self.logger, "info", "Payment recorded",
            action="make_payment", resource="loan:loan-1",
            extra={"week_number": 1}
        )

        data = json.loads(self.stream.getvalue())
        assert data["message"] == "Payment recorded"
        assert data["action"] == "make_payment"
        assert data["extra"] == {"week_number": 1}

    def test_below_level_is_skipped(self):
        log_action(self.logger, "debug", "noise", action="set_current_week")
        assert self.stream.getvalue() == ""
