"""
Configuration models for the system.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MISSING_ENV_PREFIX = "__MISSING_ENV_VAR_"


def _missing_env_var(value: Optional[str]) -> Optional[str]:
    """Name of the unset environment variable a placeholder stands for."""
    if isinstance(value, str) and value.startswith(MISSING_ENV_PREFIX):
        return value[len(MISSING_ENV_PREFIX) :].rstrip("_")
    return None


@dataclass
class TelegramConfig:
    """Telegram Bot API configuration."""

    bot_token: str
    admin_chat_id: Optional[str] = None

    def validate(self) -> bool:
        """Validate Telegram configuration."""
        missing_var = _missing_env_var(self.bot_token)
        if missing_var:
            raise ValueError(
                f"Telegram bot token is required. Please set the {missing_var} "
                "environment variable."
            )

        if not self.bot_token or not str(self.bot_token).strip():
            raise ValueError("Telegram configuration must include 'bot_token'")

        if ":" not in str(self.bot_token):
            raise ValueError("Invalid Telegram bot token format")

        if self.admin_chat_id is not None:
            if _missing_env_var(str(self.admin_chat_id)):
                self.admin_chat_id = None
            elif not str(self.admin_chat_id).lstrip("-").isdigit():
                raise ValueError("admin_chat_id must be a numeric chat id")

        return True


@dataclass
class ScrapingConfig:
    """Scrape scheduling, politeness and browser settings."""

    check_interval_minutes: int = 5
    scrape_delay_seconds: float = 3.0
    retry_attempts: int = 3
    retry_base_delay: float = 2.0
    navigation_timeout_seconds: int = 60
    browser_max_age_minutes: int = 60
    headless: bool = True
    staleness_threshold: int = 5

    def validate(self) -> bool:
        """Validate scraping configuration."""
        if (
            not isinstance(self.check_interval_minutes, int)
            or self.check_interval_minutes <= 0
        ):
            raise ValueError("check_interval_minutes must be a positive integer")

        if self.scrape_delay_seconds < 0:
            raise ValueError("scrape_delay_seconds cannot be negative")

        if not isinstance(self.retry_attempts, int) or not 1 <= self.retry_attempts <= 10:
            raise ValueError("retry_attempts must be between 1 and 10")

        if self.retry_base_delay < 0:
            raise ValueError("retry_base_delay cannot be negative")

        if self.navigation_timeout_seconds <= 0:
            raise ValueError("navigation_timeout_seconds must be positive")

        if self.browser_max_age_minutes <= 0:
            raise ValueError("browser_max_age_minutes must be positive")

        if not isinstance(self.staleness_threshold, int) or self.staleness_threshold < 1:
            raise ValueError("staleness_threshold must be a positive integer")

        return True


@dataclass
class StorageConfig:
    """Database settings."""

    database_url: str = "sqlite:///data/bot.db"
    retention_days: int = 30

    def validate(self) -> bool:
        """Validate storage configuration."""
        if not self.database_url or "://" not in self.database_url:
            raise ValueError("database_url must be a SQLAlchemy URL")

        if not isinstance(self.retention_days, int) or self.retention_days <= 0:
            raise ValueError("retention_days must be a positive integer")

        return True


@dataclass
class RelevanceConfig:
    """Optional relevance refinement settings."""

    enabled: bool = False
    type: str = "api"  # "api", "local" or "keyword"
    api: Optional[Dict[str, Any]] = None
    local: Optional[Dict[str, Any]] = None

    def validate(self) -> bool:
        """Validate relevance refiner configuration."""
        if not self.enabled:
            return True

        if self.type not in ["api", "local", "keyword"]:
            raise ValueError("Relevance type must be 'api', 'local' or 'keyword'")

        if self.type == "local":
            if not self.local:
                raise ValueError(
                    "Local LLM configuration required when type is 'local'"
                )

            if "model" not in self.local:
                raise ValueError("Local LLM configuration must include 'model'")

        if self.type == "api":
            if not self.api:
                raise ValueError("API LLM configuration required when type is 'api'")

            if "provider" not in self.api:
                raise ValueError("API LLM configuration must include 'provider'")

            if "model" not in self.api:
                raise ValueError("API LLM configuration must include 'model'")

            valid_providers = ["openai", "anthropic"]
            if self.api["provider"] not in valid_providers:
                raise ValueError(f"API provider must be one of: {valid_providers}")

            api_key = self.api.get("api_key", "")
            missing_var = _missing_env_var(api_key)
            if not api_key or missing_var:
                raise ValueError(
                    "API key is required when using API-based relevance refinement. "
                    f"Please set the {missing_var or 'API_KEY'} environment variable."
                )

        return True


@dataclass
class LimitsConfig:
    """Per-owner limits."""

    max_watches_per_owner: int = 50

    def validate(self) -> bool:
        if (
            not isinstance(self.max_watches_per_owner, int)
            or self.max_watches_per_owner <= 0
        ):
            raise ValueError("max_watches_per_owner must be a positive integer")
        return True


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    directory: str = "logs"

    def validate(self) -> bool:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return True


@dataclass
class Configuration:
    """System configuration."""

    telegram: TelegramConfig
    scraping: ScrapingConfig = field(default_factory=ScrapingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    relevance: RelevanceConfig = field(default_factory=RelevanceConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> bool:
        """Validate system configuration."""
        self.telegram.validate()
        self.scraping.validate()
        self.storage.validate()
        self.relevance.validate()
        self.limits.validate()
        self.logging.validate()

        return True
