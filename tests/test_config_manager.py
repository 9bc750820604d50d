"""
Unit tests for configuration management system.
"""

import json
import os

import pytest
import yaml

from marketplace_watcher.exceptions import ConfigurationError
from marketplace_watcher.models.config import Configuration
from marketplace_watcher.services.config_manager import ConfigurationManager


class TestConfigurationManager:
    """Test ConfigurationManager functionality."""

    @pytest.fixture(autouse=True)
    def setup(self, tmp_path, monkeypatch):
        self.tmp_path = tmp_path
        monkeypatch.setenv("TEST_BOT_TOKEN", "123456:ABC-DEF")
        monkeypatch.delenv("MISSING_ADMIN_CHAT", raising=False)
        monkeypatch.delenv("MISSING_API_KEY", raising=False)

    def create_temp_config(self, config_data: dict, file_format: str = "yaml") -> str:
        """Create a temporary configuration file."""
        path = self.tmp_path / f"config.{file_format}"
        with open(path, "w", encoding="utf-8") as f:
            if file_format == "json":
                json.dump(config_data, f, indent=2)
            else:
                yaml.dump(config_data, f, default_flow_style=False)
        return str(path)

    def get_valid_config_data(self) -> dict:
        """Get valid configuration data for testing."""
        return {
            "telegram": {
                "bot_token": "${TEST_BOT_TOKEN}",
                "admin_chat_id": "${MISSING_ADMIN_CHAT}",
            },
            "scraping": {
                "check_interval_minutes": 10,
                "scrape_delay_seconds": 1.5,
                "staleness_threshold": 4,
            },
            "storage": {"database_url": "sqlite:///data/test.db", "retention_days": 7},
            "relevance": {"enabled": True, "type": "keyword"},
            "limits": {"max_watches_per_owner": 20},
            "logging": {"level": "DEBUG", "directory": "test-logs"},
        }

    def test_load_valid_yaml_config(self):
        config_file = self.create_temp_config(self.get_valid_config_data())

        config = ConfigurationManager(config_file).load_configuration()

        assert isinstance(config, Configuration)
        assert config.telegram.bot_token == "123456:ABC-DEF"
        assert config.telegram.admin_chat_id is None
        assert config.scraping.check_interval_minutes == 10
        assert config.scraping.scrape_delay_seconds == 1.5
        assert config.scraping.retry_attempts == 3
        assert config.storage.retention_days == 7
        assert config.relevance.type == "keyword"
        assert config.limits.max_watches_per_owner == 20
        assert config.logging.level == "DEBUG"

    def test_load_valid_json_config(self):
        config_file = self.create_temp_config(self.get_valid_config_data(), "json")

        config = ConfigurationManager(config_file).load_configuration()

        assert config.storage.database_url == "sqlite:///data/test.db"

    def test_defaults_for_missing_sections(self):
        config_file = self.create_temp_config({"telegram": {"bot_token": "1:A"}})

        config = ConfigurationManager(config_file).load_configuration()

        assert config.scraping.check_interval_minutes == 5
        assert config.scraping.staleness_threshold == 5
        assert config.storage.retention_days == 30
        assert config.relevance.enabled is False
        assert config.limits.max_watches_per_owner == 50

    def test_unknown_scraping_keys_ignored(self):
        data = self.get_valid_config_data()
        data["scraping"]["user_agent_rotation"] = True
        config_file = self.create_temp_config(data)

        config = ConfigurationManager(config_file).load_configuration()

        assert not hasattr(config.scraping, "user_agent_rotation")

    def test_missing_bot_token_env_var(self):
        data = self.get_valid_config_data()
        data["telegram"]["bot_token"] = "${MISSING_BOT_TOKEN_VAR}"
        config_file = self.create_temp_config(data)

        with pytest.raises(ConfigurationError, match="MISSING_BOT_TOKEN_VAR"):
            ConfigurationManager(config_file).load_configuration()

    def test_api_relevance_requires_key(self):
        data = self.get_valid_config_data()
        data["relevance"] = {
            "enabled": True,
            "type": "api",
            "api": {"provider": "anthropic", "model": "m", "api_key": "${MISSING_API_KEY}"},
        }
        config_file = self.create_temp_config(data)

        with pytest.raises(ConfigurationError, match="MISSING_API_KEY"):
            ConfigurationManager(config_file).load_configuration()

    @pytest.mark.parametrize(
        "section,values",
        [
            ("scraping", {"check_interval_minutes": 0}),
            ("scraping", {"retry_attempts": 11}),
            ("storage", {"database_url": "not-a-url"}),
            ("storage", {"retention_days": -1}),
            ("limits", {"max_watches_per_owner": 0}),
            ("logging", {"level": "LOUD"}),
            ("relevance", {"enabled": True, "type": "magic"}),
        ],
    )
    def test_invalid_values_rejected(self, section, values):
        data = self.get_valid_config_data()
        data[section].update(values)
        config_file = self.create_temp_config(data)

        with pytest.raises(ConfigurationError):
            ConfigurationManager(config_file).load_configuration()

    def test_invalid_yaml(self):
        path = self.tmp_path / "config.yaml"
        path.write_text("telegram: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigurationManager(str(path)).load_configuration()

    def test_non_mapping_file(self):
        path = self.tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            ConfigurationManager(str(path)).load_configuration()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            ConfigurationManager(str(self.tmp_path / "absent.yaml")).load_configuration()

    def test_find_config_file_none_present(self, monkeypatch):
        monkeypatch.chdir(self.tmp_path)

        with pytest.raises(ConfigurationError, match="No configuration file found"):
            ConfigurationManager()

    def test_find_config_file_in_config_dir(self, monkeypatch):
        monkeypatch.chdir(self.tmp_path)
        os.makedirs("config")
        with open("config/config.yaml", "w", encoding="utf-8") as f:
            yaml.dump(self.get_valid_config_data(), f)

        assert ConfigurationManager().config_path == "config/config.yaml"

    def test_get_config_loads_once(self):
        manager = ConfigurationManager(self.create_temp_config(self.get_valid_config_data()))

        first = manager.get_config()

        assert manager.get_config() is first

    def test_reload_if_changed(self):
        config_file = self.create_temp_config(self.get_valid_config_data())
        manager = ConfigurationManager(config_file)
        manager.load_configuration()
        assert manager.reload_if_changed() is False

        data = self.get_valid_config_data()
        data["scraping"]["scrape_delay_seconds"] = 9
        self.create_temp_config(data)
        mtime = os.path.getmtime(config_file) + 10
        os.utime(config_file, (mtime, mtime))

        assert manager.reload_if_changed() is True
        assert manager.get_config().scraping.scrape_delay_seconds == 9

    def test_reload_keeps_config_when_new_file_invalid(self):
        config_file = self.create_temp_config(self.get_valid_config_data())
        manager = ConfigurationManager(config_file)
        original = manager.load_configuration()

        data = self.get_valid_config_data()
        data["logging"]["level"] = "LOUD"
        self.create_temp_config(data)
        mtime = os.path.getmtime(config_file) + 10
        os.utime(config_file, (mtime, mtime))

        assert manager.reload_if_changed() is False
        assert manager.get_config() is original

    def test_validate_config_file(self):
        config_file = self.create_temp_config(self.get_valid_config_data())
        manager = ConfigurationManager(config_file)

        assert manager.validate_config_file(config_file) is True
        with pytest.raises(ConfigurationError):
            manager.validate_config_file(str(self.tmp_path / "absent.yaml"))

    def test_template_is_valid(self, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "1:A")
        manager = ConfigurationManager(str(self.tmp_path / "unused.yaml"))
        template = manager.get_config_template()
        config_file = self.create_temp_config(template)

        assert manager.validate_config_file(config_file) is True
