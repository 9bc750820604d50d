"""
Notification emitter for the Marketplace Watcher system.

Bridges the async check cycle to the blocking Telegram dispatcher. Delivery
failures are logged and tracked, never raised: a failed alert must not
abort the cycle that produced it.
"""

import asyncio
from typing import Callable, Optional

from ..interfaces import IMessageDispatcher
from ..models.alert import FormattedAlert
from ..models.delivery import DeliveryResult
from ..models.listing import Listing
from ..utils.error_handling import ErrorCategory, ErrorSeverity, get_error_tracker
from ..utils.logging import get_logger
from .alert_formatter import AlertFormatter


logger = get_logger("notifier")


class LoggingOperatorAlerter:
    """Operator alerter for runs without an admin chat."""

    async def notify_operator(self, message: str) -> None:
        logger.warning(f"Operator alert: {message}", extra={"operator_alert": True})


class TelegramNotifier:
    """Sends listing alerts to owners and operator alerts to the admin chat."""

    def __init__(
        self,
        dispatcher: IMessageDispatcher,
        formatter: Optional[AlertFormatter] = None,
        platform_name: Optional[Callable[[str], str]] = None,
        admin_chat_id: Optional[str] = None,
    ):
        """
        Initialize the notifier.

        Args:
            dispatcher: Telegram dispatcher doing the HTTP work
            formatter: Alert formatter
            platform_name: Maps a platform key to its display name
            admin_chat_id: Chat that receives operator alerts
        """
        self.dispatcher = dispatcher
        self.formatter = formatter or AlertFormatter()
        self._platform_name = platform_name or (lambda key: key)
        self.admin_chat_id = admin_chat_id
        self.sent_count = 0
        self.failed_count = 0

    async def notify_new(
        self, listing: Listing, keyword: str, owner: str, platform: str
    ) -> bool:
        alert = self.formatter.format_new_listing(
            listing, keyword, self._platform_name(platform)
        )
        return await self._deliver(owner, alert, kind="new", platform=platform)

    async def notify_price_drop(
        self,
        listing: Listing,
        keyword: str,
        owner: str,
        old_price: str,
        new_price: str,
        platform: str,
    ) -> bool:
        alert = self.formatter.format_price_drop(
            listing, keyword, old_price, new_price, self._platform_name(platform)
        )
        return await self._deliver(owner, alert, kind="price_drop", platform=platform)

    async def notify_operator(self, message: str) -> None:
        if not self.admin_chat_id:
            logger.warning(
                f"Operator alert (no admin chat configured): {message}",
                extra={"operator_alert": True},
            )
            return

        text = self.formatter.format_operator_message(message)
        result = await asyncio.to_thread(
            self.dispatcher.send_text, self.admin_chat_id, text
        )
        if not result.success:
            logger.error(
                f"Operator alert could not be delivered: {message}",
                extra={"error": result.error_message},
            )

    async def _deliver(
        self, chat_id: str, alert: FormattedAlert, kind: str, platform: str
    ) -> bool:
        try:
            result: DeliveryResult = await asyncio.to_thread(
                self.dispatcher.send_alert, str(chat_id), alert
            )
        except Exception as e:
            get_error_tracker().record_error(
                component="notifier",
                category=ErrorCategory.MESSAGE_DELIVERY,
                severity=ErrorSeverity.MEDIUM,
                message=f"Unexpected error delivering {kind} alert",
                exception=e,
                context={"chat_id": chat_id, "platform": platform},
            )
            self.failed_count += 1
            return False

        if result.success:
            self.sent_count += 1
            logger.debug(
                f"Delivered {kind} alert",
                extra={"chat_id": chat_id, "platform": platform, "method": result.method},
            )
            return True

        self.failed_count += 1
        get_error_tracker().record_error(
            component="notifier",
            category=ErrorCategory.MESSAGE_DELIVERY,
            severity=ErrorSeverity.MEDIUM,
            message=f"Failed to deliver {kind} alert: {result.error_message}",
            context={"chat_id": chat_id, "platform": platform},
        )
        return False
