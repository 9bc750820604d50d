"""
Unit tests for data models.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from marketplace_watcher.models import (
    Configuration,
    CycleSummary,
    DeliveryResult,
    EnjoeiFilters,
    FormattedAlert,
    Listing,
    OlxFilters,
    RelevanceConfig,
    ScrapeGroup,
    ScrapingConfig,
    TelegramConfig,
    Watch,
    normalize_keyword,
    sanitize_keyword,
)


class TestListing:
    """Test cases for Listing model."""

    def setup_method(self):
        self.valid_data = {
            "id": "MLB1234567",
            "title": "Tênis Nike Air",
            "price": "R$ 1.299",
            "url": "https://produto.mercadolivre.com.br/MLB-1234567-tenis-nike-_JM",
            "image": "https://http2.mlstatic.com/zoom.jpg",
        }

    def test_valid_listing(self):
        assert Listing(**self.valid_data).validate() is True

    def test_empty_price_is_allowed(self):
        self.valid_data["price"] = ""
        assert Listing(**self.valid_data).validate() is True

    @pytest.mark.parametrize(
        "field,value",
        [
            ("id", " "),
            ("url", ""),
            ("url", "produto.mercadolivre.com.br/MLB-1"),
            ("title", "x" * 501),
            ("price", None),
        ],
    )
    def test_invalid_listing(self, field, value):
        self.valid_data[field] = value
        with pytest.raises(ValueError):
            Listing(**self.valid_data).validate()

    def test_display_title_falls_back_to_id(self):
        self.valid_data["title"] = "  "
        assert Listing(**self.valid_data).display_title == "MLB1234567"


class TestKeywordNormalization:
    """Test cases for keyword sanitising."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ('"Nike Air"', "Nike Air"),
            ("  camisa   seleção  ", "camisa seleção"),
            ("“iphone” <12>", "iphone 12"),
            ("[ps5] {slim} | `novo`", "ps5 slim novo"),
            (None, ""),
        ],
    )
    def test_sanitize(self, text, expected):
        assert sanitize_keyword(text) == expected

    def test_normalize_lowercases(self):
        assert normalize_keyword(" Camisa  SELEÇÃO ") == "camisa seleção"


class TestWatch:
    """Test cases for Watch model."""

    def test_valid_watch(self):
        watch = Watch(id=1, owner="100", keyword="nike", platform="enjoei", max_price=Decimal("200"))
        assert watch.validate() is True
        assert watch.unique_key == ("100", "nike", "enjoei")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"owner": ""},
            {"keyword": "Nike"},
            {"keyword": "n"},
            {"keyword": "n" * 51},
            {"platform": ""},
            {"max_price": Decimal("0")},
            {"filters": OlxFilters(sort="date")},
        ],
    )
    def test_invalid_watch(self, overrides):
        data = {"id": 1, "owner": "100", "keyword": "nike", "platform": "enjoei"}
        data.update(overrides)
        with pytest.raises(ValueError):
            Watch(**data).validate()

    def test_filters_must_match_platform(self):
        watch = Watch(id=1, owner="100", keyword="nike", platform="enjoei", filters=EnjoeiFilters(used=True))
        assert watch.validate() is True


class TestCycleSummary:
    """Test cases for CycleSummary and ScrapeGroup."""

    def test_record_new_by_platform(self):
        summary = CycleSummary()
        summary.record_new("enjoei")
        summary.record_new("olx", 2)
        summary.record_new("enjoei")

        assert summary.total_new == 4
        assert summary.by_platform == {"enjoei": 2, "olx": 2}
        assert summary.validate() is True

    def test_record_failure(self):
        summary = CycleSummary(groups_total=2)
        summary.record_failure("olx:iphone")

        assert summary.groups_failed == 1
        assert summary.failed_groups == ["olx:iphone"]

    def test_inconsistent_summary(self):
        with pytest.raises(ValueError):
            CycleSummary(total_new=3, by_platform={"enjoei": 1}).validate()
        with pytest.raises(ValueError):
            CycleSummary(groups_total=1, groups_failed=2).validate()

    def test_duration(self):
        start = datetime(2024, 1, 1, 12, 0, 0)
        summary = CycleSummary(started_at=start, finished_at=start + timedelta(seconds=42))

        assert summary.duration_seconds == 42
        assert CycleSummary().duration_seconds is None

    def test_group_label_and_owners(self):
        group = ScrapeGroup(platform="olx", keyword="iphone", filters_key=None, filters=None)
        group.watches.append(Watch(id=1, owner="100", keyword="iphone", platform="olx"))

        assert group.label == "olx:iphone"
        assert group.key == ("olx", "iphone", None)
        assert group.owners == ["100"]


class TestFormattedAlert:
    """Test cases for FormattedAlert model."""

    def test_valid(self):
        assert FormattedAlert(text="<b>oi</b>").validate() is True

    def test_caption_limit_with_photo(self):
        alert = FormattedAlert(text="x" * 1500, photo_url="https://img")
        with pytest.raises(ValueError):
            alert.validate()
        assert FormattedAlert(text="x" * 1500).validate() is True

    @pytest.mark.parametrize(
        "overrides",
        [{"text": "  "}, {"parse_mode": "BBCode"}, {"reply_markup": "button"}],
    )
    def test_invalid(self, overrides):
        data = {"text": "oi"}
        data.update(overrides)
        with pytest.raises(ValueError):
            FormattedAlert(**data).validate()


class TestDeliveryResult:
    """Test cases for DeliveryResult model."""

    def test_success(self):
        result = DeliveryResult(success=True, chat_id="100", delivery_time=datetime.now())
        assert result.validate() is True

    def test_failure_requires_message(self):
        result = DeliveryResult(success=False, chat_id="100", delivery_time=datetime.now())
        with pytest.raises(ValueError):
            result.validate()

    def test_error_message_length(self):
        result = DeliveryResult(
            success=False, chat_id="100", delivery_time=datetime.now(), error_message="x" * 501
        )
        with pytest.raises(ValueError):
            result.validate()


class TestConfigurationModels:
    """Test cases for configuration models."""

    def test_telegram_token_format(self):
        assert TelegramConfig(bot_token="123:ABC").validate() is True
        with pytest.raises(ValueError):
            TelegramConfig(bot_token="no-colon").validate()

    def test_missing_admin_chat_placeholder_cleared(self):
        config = TelegramConfig(bot_token="1:A", admin_chat_id="__MISSING_ENV_VAR_ADMIN__")
        config.validate()
        assert config.admin_chat_id is None

    def test_negative_group_chat_id_allowed(self):
        assert TelegramConfig(bot_token="1:A", admin_chat_id="-100123").validate() is True

    def test_scraping_defaults_valid(self):
        assert ScrapingConfig().validate() is True

    def test_relevance_disabled_skips_checks(self):
        assert RelevanceConfig(enabled=False, type="magic").validate() is True

    def test_relevance_api_needs_known_provider(self):
        config = RelevanceConfig(
            enabled=True, type="api", api={"provider": "cohere", "model": "m", "api_key": "k"}
        )
        with pytest.raises(ValueError):
            config.validate()

    def test_configuration_defaults(self):
        config = Configuration(telegram=TelegramConfig(bot_token="1:A"))

        assert config.validate() is True
        assert config.storage.retention_days == 30
        assert config.scraping.staleness_threshold == 5
