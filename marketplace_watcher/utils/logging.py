"""
Structured logging utilities for the Marketplace Watcher.

This module provides logging configuration with structured JSON output,
rotating log files and component-specific loggers for the scrape pipeline.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "marketplace_watcher"


class LogLevel(Enum):
    """Log levels for different types of events."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ComponentLogger:
    """
    Structured logger for system components.

    Every message is emitted as a JSON document carrying the component name,
    a timestamp and any extra context passed by the caller.
    """

    def __init__(
        self, component_name: str, extra_context: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize component logger.

        Args:
            component_name: Name of the component (e.g. 'orchestrator', 'platforms.olx')
            extra_context: Additional context to include in all log messages
        """
        self.component_name = component_name
        self.extra_context = extra_context or {}
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}")

    def _format_message(
        self, message: str, extra: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format log message with structured data."""
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "component": self.component_name,
            "message": message,
            **self.extra_context,
        }

        if extra:
            log_data.update(extra)

        return log_data

    def _dump(self, log_data: Dict[str, Any]) -> str:
        # Decimal and datetime extras are stringified
        return json.dumps(log_data, default=str, ensure_ascii=False)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log debug message."""
        self.logger.debug(self._dump(self._format_message(message, extra)))

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log info message."""
        self.logger.info(self._dump(self._format_message(message, extra)))

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        """Log warning message."""
        self.logger.warning(self._dump(self._format_message(message, extra)))

    def error(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ):
        """Log error message."""
        log_data = self._format_message(message, extra)
        if exc_info:
            log_data["exception"] = True
        self.logger.error(self._dump(log_data), exc_info=exc_info)

    def critical(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False,
    ):
        """Log critical message."""
        log_data = self._format_message(message, extra)
        if exc_info:
            log_data["exception"] = True
        self.logger.critical(self._dump(log_data), exc_info=exc_info)


class LoggingManager:
    """
    Centralized logging configuration and management.

    Handles log file rotation, formatting, and component-specific loggers.
    """

    COMPONENTS = [
        "orchestrator",
        "platforms",
        "relevance.refiner",
        "notifier",
        "storage",
    ]

    def __init__(self, log_dir: str = "logs", log_level: str = "INFO"):
        """
        Initialize logging manager.

        Args:
            log_dir: Directory for log files
            log_level: Default log level
        """
        self.log_dir = Path(log_dir)
        self.log_level = getattr(logging, log_level.upper())
        self.component_loggers: Dict[str, ComponentLogger] = {}

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self._setup_logging()

    def _setup_logging(self):
        """Setup logging configuration with structured output."""
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / "marketplace_watcher.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            self.log_dir / "errors.log",
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root_logger.addHandler(error_handler)

        self._setup_component_loggers()

    def _setup_component_loggers(self):
        """Setup component-specific log files."""
        for component in self.COMPONENTS:
            component_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
            component_logger.handlers.clear()

            component_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{component.replace('.', '_')}.log",
                maxBytes=5 * 1024 * 1024,  # 5MB
                backupCount=2,
                encoding="utf-8",
            )
            component_handler.setLevel(self.log_level)
            component_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
            )

            component_logger.addHandler(component_handler)

    def get_component_logger(
        self, component_name: str, extra_context: Optional[Dict[str, Any]] = None
    ) -> ComponentLogger:
        """
        Get or create a component logger.

        Args:
            component_name: Name of the component
            extra_context: Additional context for all log messages

        Returns:
            ComponentLogger instance
        """
        cache_key = f"{component_name}_{hash(str(extra_context))}"

        if cache_key not in self.component_loggers:
            self.component_loggers[cache_key] = ComponentLogger(
                component_name, extra_context
            )

        return self.component_loggers[cache_key]

    def set_log_level(self, level: str):
        """Set log level for all loggers except the error file."""
        log_level = getattr(logging, level.upper())
        self.log_level = log_level

        root_logger = logging.getLogger(ROOT_LOGGER_NAME)
        root_logger.setLevel(log_level)

        for handler in root_logger.handlers:
            if "errors.log" in str(getattr(handler, "baseFilename", "")):
                continue
            handler.setLevel(log_level)

    def get_log_stats(self) -> Dict[str, Any]:
        """Get logging statistics."""
        stats = {
            "log_directory": str(self.log_dir),
            "log_level": logging.getLevelName(self.log_level),
            "component_loggers": len(self.component_loggers),
            "log_files": [],
        }

        for log_file in self.log_dir.glob("*.log"):
            file_stats = log_file.stat()
            stats["log_files"].append(
                {
                    "name": log_file.name,
                    "size_bytes": file_stats.st_size,
                    "modified": datetime.fromtimestamp(file_stats.st_mtime).isoformat(),
                }
            )

        return stats


_logging_manager: Optional[LoggingManager] = None


def setup_logging(log_dir: str = "logs", log_level: str = "INFO") -> LoggingManager:
    """
    Setup global logging configuration.

    Args:
        log_dir: Directory for log files
        log_level: Default log level

    Returns:
        LoggingManager instance
    """
    global _logging_manager
    _logging_manager = LoggingManager(log_dir, log_level)
    return _logging_manager


def get_logger(
    component_name: str, extra_context: Optional[Dict[str, Any]] = None
) -> ComponentLogger:
    """
    Get a component logger.

    Returns an unmanaged ComponentLogger (no file handlers) when
    setup_logging() has not been called.
    """
    if _logging_manager is None:
        return ComponentLogger(component_name, extra_context)

    return _logging_manager.get_component_logger(component_name, extra_context)


def get_logging_stats() -> Dict[str, Any]:
    """Get logging statistics."""
    if _logging_manager is None:
        return {"error": "Logging not initialized"}

    return _logging_manager.get_log_stats()
