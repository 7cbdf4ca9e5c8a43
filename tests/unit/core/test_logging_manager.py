"""Unit tests for the Logging Manager."""

import json
import logging
import logging.handlers
from unittest.mock import MagicMock

import pytest
from pythonjsonlogger import jsonlogger

from ferron_forge.build.builder import Builder
from ferron_forge.core.logging_manager import LoggingManager
from ferron_forge.utils.exceptions import ManagerInitializationError


@pytest.fixture
def logging_config(tmp_path):
    """Create a logging configuration for testing."""
    return {
        "level": "INFO",
        "format": "text",
        "file": {
            "enabled": True,
            "path": str(tmp_path / "logs" / "test.log"),
            "rotation": "1 MB",
            "retention": "3 days",
        },
        "console": {"enabled": True, "level": "DEBUG"},
    }


@pytest.fixture
def config_manager_mock(logging_config):
    """Create a mock ConfigManager for the LoggingManager."""
    config_manager = MagicMock()
    config_manager.get.return_value = logging_config
    return config_manager


def test_logging_manager_initialization(config_manager_mock, tmp_path):
    """Test that the LoggingManager initializes correctly."""
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    assert logging_manager.initialized
    assert logging_manager.healthy
    config_manager_mock.get.assert_called_with("logging", {})
    assert (tmp_path / "logs").is_dir()

    root = logging.getLogger()
    assert root.level == logging.INFO
    assert logging_manager._console_handler in root.handlers
    assert logging_manager._file_handler in root.handlers
    assert logging_manager._console_handler.level == logging.DEBUG

    logging_manager.shutdown()


def test_file_rotation_settings(config_manager_mock):
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    handler = logging_manager._file_handler
    assert isinstance(handler, logging.handlers.RotatingFileHandler)
    assert handler.maxBytes == 1024 * 1024
    assert handler.backupCount == 3

    logging_manager.shutdown()


def test_log_messages_reach_file(config_manager_mock, logging_config):
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    logging_manager.get_logger("ferron_forge.test").info("Compiling Ferron")
    logging_manager.shutdown()

    with open(logging_config["file"]["path"]) as f:
        content = f.read()
    assert "ferron_forge.test - INFO - Compiling Ferron" in content


def test_json_format(config_manager_mock, logging_config):
    """Test that JSON output switches formatters and enables structlog."""
    logging_config["format"] = "json"
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    assert isinstance(logging_manager._file_handler.formatter, jsonlogger.JsonFormatter)
    assert logging_manager.status()["structured_logging"] is True

    logging.getLogger("ferron_forge.test").warning("Archive written")
    logging_manager.shutdown()

    with open(logging_config["file"]["path"]) as f:
        record = json.loads(f.readline())
    assert record["message"] == "Archive written"
    assert record["levelname"] == "WARNING"


def test_console_disabled(config_manager_mock, logging_config):
    logging_config["console"]["enabled"] = False
    logging_config["file"]["enabled"] = False
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    assert logging_manager._console_handler is None
    assert logging_manager.status()["handlers"] == {"console": False, "file": False}

    logging_manager.shutdown()


def test_get_logger_before_initialize(config_manager_mock):
    logger = LoggingManager(config_manager_mock).get_logger("ferron_forge.test")
    assert isinstance(logger, logging.Logger)


def test_shutdown_removes_handlers(config_manager_mock):
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()
    handlers = list(logging_manager._handlers)

    logging_manager.shutdown()

    assert not logging_manager.initialized
    root = logging.getLogger()
    assert all(handler not in root.handlers for handler in handlers)


def test_initialization_failure(config_manager_mock):
    config_manager_mock.get.side_effect = RuntimeError("config unavailable")

    with pytest.raises(ManagerInitializationError, match="config unavailable"):
        LoggingManager(config_manager_mock).initialize()


def test_build_events_carry_context_as_json_fields(config_manager_mock, logging_config, tmp_path):
    logging_config["format"] = "json"
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    Builder(tmp_path).log("Compiling workspace", target="aarch64-unknown-linux-gnu", features="defaults")
    logging_manager.shutdown()

    with open(logging_config["file"]["path"]) as f:
        records = [json.loads(line) for line in f if line.strip()]
    record = next(r for r in records if r["message"] == "Compiling workspace")
    assert record["target"] == "aarch64-unknown-linux-gnu"
    assert record["features"] == "defaults"
    assert record["logger"] == "ferron_forge.build.builder"


def test_build_events_carry_context_in_text(config_manager_mock, logging_config):
    logging_manager = LoggingManager(config_manager_mock)
    logging_manager.initialize()

    logging_manager.get_logger("ferron_forge.test").bind(reference="v1.2.3").info("Repository cloned")
    logging_manager.shutdown()

    with open(logging_config["file"]["path"]) as f:
        content = f.read()
    assert "Repository cloned" in content
    assert "reference=v1.2.3" in content
