"""
Message delivery result models.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class DeliveryResult:
    """Result of a Telegram delivery attempt for one chat."""

    success: bool
    chat_id: str
    delivery_time: datetime
    method: Optional[str] = None  # Bot API method that delivered the message
    attempts: int = 1
    error_message: Optional[str] = None

    def validate(self) -> bool:
        """Validate delivery result data."""
        if not isinstance(self.success, bool):
            raise ValueError("success must be a boolean")

        if not self.chat_id:
            raise ValueError("chat_id cannot be empty")

        if not isinstance(self.delivery_time, datetime):
            raise ValueError("delivery_time must be a datetime object")

        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")

        if self.error_message is not None and len(self.error_message) > 500:
            raise ValueError("error_message too long (max 500 characters)")

        if not self.success and not self.error_message:
            raise ValueError("error_message should be provided when success is False")

        return True
