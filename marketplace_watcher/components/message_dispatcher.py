"""
Message dispatching components for the Marketplace Watcher system.

This module sends formatted alerts through the Telegram Bot API with
retry logic and error handling.
"""

import html
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..interfaces import IMessageDispatcher
from ..models.alert import FormattedAlert
from ..models.delivery import DeliveryResult
from ..utils.logging import get_logger

logger = get_logger("notifier.dispatcher")


class TelegramAPIError(Exception):
    """Telegram answered with ``ok: false``."""

    def __init__(self, method: str, description: str):
        self.method = method
        self.description = description
        super().__init__(f"Telegram API error on {method}: {description}")


class BaseMessageDispatcher(IMessageDispatcher, ABC):
    """Base class for message dispatchers with common retry logic."""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize base dispatcher.

        Args:
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries in seconds
            sleep: Blocking sleep used between attempts
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "POST"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def send_alert(self, chat_id: str, alert: FormattedAlert) -> DeliveryResult:
        """
        Send alert with retry logic.

        Args:
            chat_id: Target chat
            alert: Formatted alert to send

        Returns:
            DeliveryResult: Result of delivery attempt
        """
        start_time = datetime.now()
        last_error = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                method = self._send_message(chat_id, alert)

                delivery_time = datetime.now()
                logger.info(
                    f"Alert sent in {(delivery_time - start_time).total_seconds():.2f}s",
                    extra={"chat_id": chat_id, "method": method, "attempts": attempts},
                )
                result = DeliveryResult(
                    success=True,
                    chat_id=str(chat_id),
                    delivery_time=delivery_time,
                    method=method,
                    attempts=attempts,
                )
                result.validate()
                return result

            except (requests.exceptions.RequestException, TelegramAPIError) as e:
                last_error = str(e)
                logger.warning(
                    f"Send attempt {attempts} failed: {last_error}",
                    extra={"chat_id": chat_id},
                )

                # Don't sleep after the last attempt
                if attempt < self.max_retries:
                    sleep_time = self.retry_delay * (2**attempt)
                    self._sleep(sleep_time)

        error_msg = f"Failed after {attempts} attempts. Last error: {last_error}"
        logger.error(error_msg, extra={"chat_id": chat_id})

        result = DeliveryResult(
            success=False,
            chat_id=str(chat_id),
            delivery_time=datetime.now(),
            attempts=attempts,
            error_message=error_msg[:500],
        )
        result.validate()
        return result

    @abstractmethod
    def _send_message(self, chat_id: str, alert: FormattedAlert) -> str:
        """
        Platform-specific message sending implementation.

        Returns:
            str: Name of the API method that delivered the message
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection to the messaging platform."""
        pass


class TelegramDispatcher(BaseMessageDispatcher):
    """Telegram Bot API message dispatcher."""

    def __init__(
        self,
        bot_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_timeout: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(max_retries, retry_delay, sleep)
        self.bot_token = bot_token
        self.request_timeout = request_timeout
        self.base_url = f"https://api.telegram.org/bot{bot_token}"

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(
            f"{self.base_url}/{method}", json=payload, timeout=self.request_timeout
        )
        # 400 carries a description worth surfacing (e.g. a bad photo URL)
        if response.status_code != 400:
            response.raise_for_status()

        result = response.json()
        if not result.get("ok"):
            raise TelegramAPIError(method, result.get("description", "Unknown error"))
        return result

    def _send_message(self, chat_id: str, alert: FormattedAlert) -> str:
        """Send via sendPhoto when an image exists, else sendMessage."""
        if alert.photo_url:
            try:
                self._call("sendPhoto", self._photo_payload(chat_id, alert))
                return "sendPhoto"
            except (requests.exceptions.RequestException, TelegramAPIError) as e:
                logger.warning(
                    f"sendPhoto failed, falling back to text: {e}",
                    extra={"chat_id": chat_id, "photo_url": alert.photo_url},
                )

        self._call("sendMessage", self._text_payload(chat_id, alert))
        return "sendMessage"

    @staticmethod
    def _photo_payload(chat_id: str, alert: FormattedAlert) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "photo": alert.photo_url,
            "caption": alert.text,
            "parse_mode": alert.parse_mode,
        }
        if alert.reply_markup:
            payload["reply_markup"] = alert.reply_markup
        return payload

    @staticmethod
    def _text_payload(chat_id: str, alert: FormattedAlert) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": alert.text,
            "parse_mode": alert.parse_mode,
            "disable_web_page_preview": False,
        }
        if alert.reply_markup:
            payload["reply_markup"] = alert.reply_markup
        return payload

    def send_text(self, chat_id: str, text: str) -> DeliveryResult:
        """Send a plain text message (operator alerts, command replies)."""
        alert = FormattedAlert(text=html.escape(text, quote=False)[:4096])
        return self.send_alert(chat_id, alert)

    def test_connection(self) -> bool:
        """Test connection to Telegram Bot API."""
        try:
            response = self.session.get(f"{self.base_url}/getMe", timeout=10)
            response.raise_for_status()
            result = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Failed to connect to Telegram: {e}")
            return False

        if result.get("ok"):
            bot_info = result.get("result", {})
            logger.info(
                f"Connected to Telegram bot: {bot_info.get('username', 'Unknown')}"
            )
            return True

        logger.error(f"Telegram API error: {result.get('description', 'Unknown error')}")
        return False
