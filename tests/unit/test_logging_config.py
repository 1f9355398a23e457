"""Tests for temporal_intel/logging_config.py"""

import json
import logging

import pytest
import structlog

from temporal_intel.logging_config import add_component, get_logger, setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level

    yield

    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestAddComponent:
    def test_strips_package_prefix(self):
        event = add_component(None, "info", {"event": "x", "logger": "temporal_intel.budget.manager"})
        assert event["component"] == "budget.manager"

    def test_foreign_logger_untouched(self):
        event = add_component(None, "info", {"event": "x", "logger": "uvicorn.error"})
        assert "component" not in event


class TestSetupLogging:
    def test_level_and_noisy_loggers(self, restore_logging):
        setup_logging(level="DEBUG", json_output=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_file_output_is_json(self, restore_logging, tmp_path):
        log_file = tmp_path / "til.log"
        setup_logging(level="INFO", json_output=False, log_file=str(log_file))

        get_logger("temporal_intel.digest.generator").info("digest_built", user_id="alice")
        for handler in logging.getLogger().handlers:
            handler.flush()

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["event"] == "digest_built"
        assert record["user_id"] == "alice"
        assert record["component"] == "digest.generator"
        assert record["level"] == "info"
