"""Tests for logging setup and the JSON formatter."""

import json
import logging
import sys

import pytest

from patient_ledger.infrastructure.logging_config import StructuredFormatter, get_logger, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Test suite for StructuredFormatter."""

    def test_formats_json(self):
        record = logging.LogRecord(
            name="patient_ledger.test", level=logging.WARNING, pathname=__file__, lineno=10,
            msg="Saved %d patients", args=(3,), exc_info=None,
        )
        data = json.loads(StructuredFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["logger"] == "patient_ledger.test"
        assert data["message"] == "Saved 3 patients"
        assert data["timestamp"].endswith("Z")

    def test_includes_exception(self):
        try:
            raise ValueError("bad payload")
        except ValueError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            name="x", level=logging.ERROR, pathname=__file__, lineno=1,
            msg="failed", args=(), exc_info=exc_info,
        )
        data = json.loads(StructuredFormatter().format(record))
        assert "bad payload" in data["exception"]

    def test_extra_fields_are_merged(self):
        record = logging.LogRecord(
            name="x", level=logging.INFO, pathname=__file__, lineno=1,
            msg="saved", args=(), exc_info=None,
        )
        record.extra_fields = {"patient_count": 3}
        assert json.loads(StructuredFormatter().format(record))["patient_count"] == 3


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_json_handler(self, restore_root_logger):
        setup_logging(use_json=True, log_level="debug")
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_plain_handler_and_unknown_level(self, restore_root_logger):
        setup_logging(log_level="nonsense")
        assert restore_root_logger.level == logging.INFO
        assert not isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_get_logger(self):
        assert get_logger("patient_ledger.x").name == "patient_ledger.x"
