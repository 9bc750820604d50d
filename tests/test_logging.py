"""
Tests for logging utilities.
"""

import json
import logging
from decimal import Decimal
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

import marketplace_watcher.utils.logging as logging_module
from marketplace_watcher.utils.logging import (
    ComponentLogger,
    LoggingManager,
    LogLevel,
    get_logger,
    get_logging_stats,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging_manager():
    yield
    logging_module._logging_manager = None
    for name in ["marketplace_watcher"] + [
        f"marketplace_watcher.{component}" for component in LoggingManager.COMPONENTS
    ]:
        for handler in logging.getLogger(name).handlers:
            handler.close()
        logging.getLogger(name).handlers.clear()


class TestComponentLogger:
    """Test cases for ComponentLogger."""

    def test_component_logger_initialization(self):
        logger = ComponentLogger("platforms.olx", {"key": "value"})

        assert logger.component_name == "platforms.olx"
        assert logger.extra_context == {"key": "value"}
        assert logger.logger.name == "marketplace_watcher.platforms.olx"

    def test_format_message(self):
        logger = ComponentLogger("orchestrator", {"context_key": "context_value"})

        formatted = logger._format_message("Test message", {"extra_key": "extra_value"})

        assert formatted["component"] == "orchestrator"
        assert formatted["message"] == "Test message"
        assert formatted["context_key"] == "context_value"
        assert formatted["extra_key"] == "extra_value"
        assert "timestamp" in formatted

    def test_log_methods(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger
            logger = ComponentLogger("orchestrator")

            logger.debug("Debug message", {"key": "value"})
            logger.info("Info message")
            logger.warning("Warning message")
            logger.error("Error message", exc_info=True)
            logger.critical("Critical message")

        mock_logger.debug.assert_called_once()
        mock_logger.info.assert_called_once()
        mock_logger.warning.assert_called_once()
        mock_logger.error.assert_called_once()
        mock_logger.critical.assert_called_once()

    def test_structured_logging_format(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            logger = ComponentLogger("notifier", {"context": "test"})
            logger.info("Alert sent", {"chat_id": "100", "preço": "R$ 10,00"})

        parsed = json.loads(mock_logger.info.call_args[0][0])
        assert parsed["component"] == "notifier"
        assert parsed["message"] == "Alert sent"
        assert parsed["context"] == "test"
        assert parsed["preço"] == "R$ 10,00"

    def test_non_json_extras_are_stringified(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            ComponentLogger("storage").info("Watch added", {"max_price": Decimal("199.90")})

        parsed = json.loads(mock_logger.info.call_args[0][0])
        assert parsed["max_price"] == "199.90"

    def test_exception_logging(self):
        with patch("logging.getLogger") as mock_get_logger:
            mock_logger = Mock()
            mock_get_logger.return_value = mock_logger

            ComponentLogger("orchestrator").error("Error occurred", exc_info=True)

        assert mock_logger.error.call_args[1].get("exc_info") is True
        parsed = json.loads(mock_logger.error.call_args[0][0])
        assert parsed["exception"] is True


class TestLoggingManager:
    """Test cases for LoggingManager."""

    def test_logging_manager_initialization(self, tmp_path):
        manager = LoggingManager(log_dir=str(tmp_path / "logs"), log_level="DEBUG")

        assert manager.log_dir == tmp_path / "logs"
        assert manager.log_level == logging.DEBUG
        assert manager.log_dir.exists()

    def test_log_files_created(self, tmp_path):
        manager = LoggingManager(log_dir=str(tmp_path))
        manager.get_component_logger("orchestrator").info("hello")

        names = {Path(f["name"]).name for f in manager.get_log_stats()["log_files"]}
        assert {"marketplace_watcher.log", "errors.log", "orchestrator.log"} <= names
        assert "relevance_refiner.log" in names

    @patch("logging.handlers.RotatingFileHandler")
    def test_component_specific_handlers(self, mock_handler, tmp_path):
        LoggingManager(log_dir=str(tmp_path))

        # Main log, error log and one per component
        assert mock_handler.call_count == 2 + len(LoggingManager.COMPONENTS)

    @patch("logging.handlers.RotatingFileHandler")
    def test_get_component_logger_cached(self, mock_handler, tmp_path):
        manager = LoggingManager(log_dir=str(tmp_path))

        logger1 = manager.get_component_logger("notifier")
        assert manager.get_component_logger("notifier") is logger1
        assert manager.get_component_logger("storage") is not logger1
        assert manager.get_component_logger("notifier", {"key": "v"}) is not logger1

    def test_set_log_level_keeps_error_file(self, tmp_path):
        manager = LoggingManager(log_dir=str(tmp_path), log_level="INFO")

        manager.set_log_level("DEBUG")

        root_logger = logging.getLogger("marketplace_watcher")
        assert root_logger.level == logging.DEBUG
        assert manager.get_log_stats()["log_level"] == "DEBUG"
        error_handlers = [
            h for h in root_logger.handlers if "errors.log" in str(getattr(h, "baseFilename", ""))
        ]
        assert error_handlers[0].level == logging.ERROR

    def test_get_log_stats(self, tmp_path):
        manager = LoggingManager(log_dir=str(tmp_path))
        manager.get_component_logger("comp1")
        manager.get_component_logger("comp2")

        stats = manager.get_log_stats()

        assert stats["log_directory"] == str(manager.log_dir)
        assert stats["log_level"] == "INFO"
        assert stats["component_loggers"] == 2
        assert isinstance(stats["log_files"], list)


class TestGlobalFunctions:
    """Test cases for global logging functions."""

    @patch("logging.handlers.RotatingFileHandler")
    def test_setup_logging(self, mock_handler, tmp_path):
        manager = setup_logging(log_dir=str(tmp_path), log_level="DEBUG")

        assert isinstance(manager, LoggingManager)
        assert manager.log_level == logging.DEBUG
        assert isinstance(get_logger("orchestrator"), ComponentLogger)
        assert "log_directory" in get_logging_stats()

    def test_get_logger_without_setup(self):
        logger = get_logger("orchestrator")

        assert isinstance(logger, ComponentLogger)
        assert logger.component_name == "orchestrator"

    def test_get_logging_stats_without_setup(self):
        assert get_logging_stats() == {"error": "Logging not initialized"}


class TestLogLevel:
    """Test cases for LogLevel enum."""

    def test_log_level_values(self):
        assert [level.value for level in LogLevel] == [
            "DEBUG",
            "INFO",
            "WARNING",
            "ERROR",
            "CRITICAL",
        ]
