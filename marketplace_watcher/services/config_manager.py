"""
Configuration management system for the Marketplace Watcher.
"""

import json
import os
import re
from typing import Any, Dict, Optional

import yaml

from ..exceptions import ConfigurationError
from ..interfaces import IConfigurationManager
from ..models.config import (
    MISSING_ENV_PREFIX,
    Configuration,
    LimitsConfig,
    LoggingConfig,
    RelevanceConfig,
    ScrapingConfig,
    StorageConfig,
    TelegramConfig,
)
from ..utils.logging import get_logger

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigurationManager(IConfigurationManager):
    """Manages loading, validation, and reloading of system configuration."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file. If None, uses default paths.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Configuration] = None
        self._last_modified: Optional[float] = None
        self.logger = get_logger("config_manager")

    def _find_config_file(self) -> str:
        """Find the configuration file in standard locations."""
        possible_paths = [
            "config/config.yaml",
            "config/config.yml",
            "config/config.json",
            "config.yaml",
            "config.yml",
            "config.json",
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        if os.path.exists("config/config.example.yaml"):
            raise ConfigurationError(
                "No configuration file found. Please copy 'config/config.example.yaml' "
                "to 'config/config.yaml' and customize it for your needs."
            )

        raise ConfigurationError(
            "No configuration file found. Please create a configuration file "
            "at one of these locations: " + ", ".join(possible_paths)
        )

    def load_configuration(self) -> Configuration:
        """
        Load configuration from file.

        Returns:
            Configuration object with validated settings.

        Raises:
            ConfigurationError: If configuration is invalid or file cannot be read.
            FileNotFoundError: If configuration file doesn't exist.
        """
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        raw_config = self._read_file(self.config_path)
        raw_config = self._expand_env_vars(raw_config)

        config = self._parse_config(raw_config)
        self.validate_configuration(config)

        self._config = config
        self._last_modified = os.path.getmtime(self.config_path)

        self.logger.info(
            f"Configuration loaded from {self.config_path}",
            extra={"config_path": self.config_path},
        )
        return config

    def _read_file(self, path: str) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.endswith(".json"):
                    raw_config = json.load(f)
                else:
                    raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file: {e}") from e

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError("Configuration file must contain a mapping")
        return raw_config

    def _expand_env_vars(self, obj: Any) -> Any:
        """
        Recursively expand ``${VAR_NAME}`` references.

        Unset variables become ``__MISSING_ENV_VAR_<NAME>__`` placeholders so
        that only the sections that actually need them fail validation.
        """
        if isinstance(obj, dict):
            return {key: self._expand_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._expand_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            return _ENV_PATTERN.sub(self._env_value, obj)
        else:
            return obj

    @staticmethod
    def _env_value(match: "re.Match") -> str:
        var_name = match.group(1)
        value = os.getenv(var_name)
        if value is None:
            return f"{MISSING_ENV_PREFIX}{var_name}__"
        return value

    def _parse_config(self, raw_config: Dict[str, Any]) -> Configuration:
        """Parse raw configuration dictionary into Configuration object."""
        try:
            telegram_data = raw_config.get("telegram") or {}
            admin_chat_id = telegram_data.get("admin_chat_id")
            telegram = TelegramConfig(
                bot_token=str(telegram_data.get("bot_token") or ""),
                admin_chat_id=str(admin_chat_id) if admin_chat_id else None,
            )

            scraping_data = raw_config.get("scraping") or {}
            scraping = ScrapingConfig(
                **{
                    key: value
                    for key, value in scraping_data.items()
                    if key in ScrapingConfig.__dataclass_fields__
                }
            )

            storage_data = raw_config.get("storage") or {}
            storage = StorageConfig(
                database_url=storage_data.get("database_url", StorageConfig.database_url),
                retention_days=storage_data.get(
                    "retention_days", StorageConfig.retention_days
                ),
            )

            relevance_data = raw_config.get("relevance") or {}
            relevance = RelevanceConfig(
                enabled=bool(relevance_data.get("enabled", False)),
                type=relevance_data.get("type", "api"),
                api=relevance_data.get("api"),
                local=relevance_data.get("local"),
            )

            limits_data = raw_config.get("limits") or {}
            limits = LimitsConfig(
                max_watches_per_owner=limits_data.get(
                    "max_watches_per_owner", LimitsConfig.max_watches_per_owner
                )
            )

            logging_data = raw_config.get("logging") or {}
            logging_config = LoggingConfig(
                level=str(logging_data.get("level", "INFO")),
                directory=str(logging_data.get("directory", "logs")),
            )

            return Configuration(
                telegram=telegram,
                scraping=scraping,
                storage=storage,
                relevance=relevance,
                limits=limits,
                logging=logging_config,
            )

        except (TypeError, AttributeError) as e:
            raise ConfigurationError(f"Error parsing configuration: {e}") from e

    def validate_configuration(self, config: Configuration) -> bool:
        """Validate a parsed configuration, raising ConfigurationError."""
        try:
            return config.validate()
        except ValueError as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(str(e)) from e

    def get_config(self) -> Configuration:
        """
        Get current configuration, loading if necessary.

        Returns:
            Current configuration object.
        """
        if self._config is None:
            return self.load_configuration()
        return self._config

    def reload_if_changed(self) -> bool:
        """
        Reload configuration if file has been modified.

        Returns:
            True if configuration was reloaded, False otherwise.
        """
        if not os.path.exists(self.config_path):
            return False

        current_modified = os.path.getmtime(self.config_path)

        if self._last_modified is None or current_modified > self._last_modified:
            try:
                self.load_configuration()
                return True
            except (ConfigurationError, OSError) as e:
                self.logger.warning(
                    f"Configuration reload failed, keeping current settings: {e}"
                )
                return False

        return False

    def validate_config_file(self, config_path: str) -> bool:
        """
        Validate a configuration file without loading it.

        Raises:
            ConfigurationError: If configuration is invalid with detailed error message.
        """
        if not os.path.exists(config_path):
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        raw_config = self._expand_env_vars(self._read_file(config_path))
        return self.validate_configuration(self._parse_config(raw_config))

    def get_config_template(self) -> Dict[str, Any]:
        """
        Get a template configuration dictionary.

        Returns:
            Dictionary with example configuration structure.
        """
        return {
            "telegram": {
                "bot_token": "${TELEGRAM_BOT_TOKEN}",
                "admin_chat_id": "${TELEGRAM_ADMIN_CHAT_ID}",
            },
            "scraping": {
                "check_interval_minutes": 5,
                "scrape_delay_seconds": 3,
                "retry_attempts": 3,
                "retry_base_delay": 2.0,
                "navigation_timeout_seconds": 60,
                "browser_max_age_minutes": 60,
                "headless": True,
                "staleness_threshold": 5,
            },
            "storage": {
                "database_url": "sqlite:///data/bot.db",
                "retention_days": 30,
            },
            "relevance": {
                "enabled": False,
                "type": "api",
                "api": {
                    "provider": "anthropic",
                    "model": "claude-3-5-haiku-latest",
                    "api_key": "${ANTHROPIC_API_KEY}",
                },
                "local": {"model": "llama3", "base_url": "http://localhost:11434"},
            },
            "limits": {"max_watches_per_owner": 50},
            "logging": {"level": "INFO", "directory": "logs"},
        }
