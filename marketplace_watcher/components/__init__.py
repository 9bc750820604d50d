"""
Core components for the Marketplace Watcher system.

This module contains the components that fetch pages, refine relevance,
format alerts and deliver them through Telegram.
"""

from .alert_formatter import AlertFormatter
from .browser_session import BrowserSession
from .message_dispatcher import BaseMessageDispatcher, TelegramAPIError, TelegramDispatcher
from .notifier import LoggingOperatorAlerter, TelegramNotifier
from .relevance_refiner import (
    APILLMClient,
    BaseRelevanceRefiner,
    KeywordRelevanceRefiner,
    LLMProvider,
    LLMRelevanceRefiner,
    LocalLLMClient,
    PassthroughRefiner,
    create_refiner,
)

__all__ = [
    "AlertFormatter",
    "BrowserSession",
    "BaseMessageDispatcher",
    "TelegramAPIError",
    "TelegramDispatcher",
    "LoggingOperatorAlerter",
    "TelegramNotifier",
    "BaseRelevanceRefiner",
    "PassthroughRefiner",
    "KeywordRelevanceRefiner",
    "LLMRelevanceRefiner",
    "LLMProvider",
    "LocalLLMClient",
    "APILLMClient",
    "create_refiner",
]
