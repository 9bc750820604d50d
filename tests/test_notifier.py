"""
Tests for TelegramNotifier and the logging operator alerter.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest

from marketplace_watcher.components.notifier import LoggingOperatorAlerter, TelegramNotifier
from marketplace_watcher.models.delivery import DeliveryResult


def _result(success=True):
    return DeliveryResult(
        success=success,
        chat_id="100",
        delivery_time=datetime.now(),
        attempts=1,
        error_message=None if success else "Forbidden: bot was blocked by the user",
    )


class TestTelegramNotifier:
    """Test cases for TelegramNotifier."""

    def setup_method(self):
        self.dispatcher = Mock()
        self.dispatcher.send_alert.return_value = _result()
        self.dispatcher.send_text.return_value = _result()
        self.notifier = TelegramNotifier(
            self.dispatcher,
            platform_name={"enjoei": "Enjoei", "ml": "Mercado Livre"}.get,
        )

    @pytest.mark.asyncio
    async def test_notify_new(self, sample_listing):
        assert await self.notifier.notify_new(sample_listing, "nike", "100", "enjoei")

        chat_id, alert = self.dispatcher.send_alert.call_args[0]
        assert chat_id == "100"
        assert "Novo item no Enjoei!" in alert.text
        assert alert.photo_url == sample_listing.image
        assert self.notifier.sent_count == 1

    @pytest.mark.asyncio
    async def test_notify_price_drop(self, sample_listing):
        ok = await self.notifier.notify_price_drop(
            sample_listing, "nike", "100", "R$ 150,00", "R$ 100,00", "ml"
        )

        assert ok
        alert = self.dispatcher.send_alert.call_args[0][1]
        assert "Preço caiu no Mercado Livre!" in alert.text
        assert "<s>R$ 150,00</s>" in alert.text

    @pytest.mark.asyncio
    async def test_failed_delivery_returns_false(self, sample_listing):
        self.dispatcher.send_alert.return_value = _result(success=False)

        assert not await self.notifier.notify_new(sample_listing, "nike", "100", "enjoei")
        assert self.notifier.failed_count == 1

    @pytest.mark.asyncio
    async def test_dispatcher_exception_never_raises(self, sample_listing):
        self.dispatcher.send_alert.side_effect = RuntimeError("socket closed")

        assert not await self.notifier.notify_new(sample_listing, "nike", "100", "enjoei")
        assert self.notifier.failed_count == 1

    @pytest.mark.asyncio
    async def test_operator_alert_without_admin_chat(self):
        await self.notifier.notify_operator("scrape failed")
        self.dispatcher.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_operator_alert_to_admin_chat(self):
        self.notifier.admin_chat_id = "999"

        await self.notifier.notify_operator("scrape failed")

        self.dispatcher.send_text.assert_called_once_with("999", "⚠️ scrape failed")


class TestLoggingOperatorAlerter:
    """Test cases for LoggingOperatorAlerter."""

    @pytest.mark.asyncio
    async def test_logs_warning(self, monkeypatch):
        logger = Mock()
        monkeypatch.setattr("marketplace_watcher.components.notifier.logger", logger)

        await LoggingOperatorAlerter().notify_operator("stale")

        assert "stale" in logger.warning.call_args[0][0]
