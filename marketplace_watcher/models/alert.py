"""
Alert formatting models.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

MAX_MESSAGE_LENGTH = 4096
MAX_CAPTION_LENGTH = 1024


@dataclass
class FormattedAlert:
    """Formatted alert ready for delivery."""

    text: str
    photo_url: Optional[str] = None
    reply_markup: Optional[Dict[str, Any]] = None
    parse_mode: str = "HTML"
    platform_specific_data: Dict[str, Any] = field(default_factory=dict)

    def validate(self) -> bool:
        """Validate formatted alert data."""
        if not isinstance(self.text, str):
            raise ValueError("text must be a string")

        if not self.text.strip():
            raise ValueError("text cannot be empty")

        limit = MAX_CAPTION_LENGTH if self.photo_url else MAX_MESSAGE_LENGTH
        if len(self.text) > limit:
            raise ValueError(f"text too long (max {limit} characters)")

        if self.reply_markup is not None and not isinstance(self.reply_markup, dict):
            raise ValueError("reply_markup must be a dictionary")

        if self.parse_mode not in ["HTML", "Markdown", "MarkdownV2"]:
            raise ValueError("parse_mode must be HTML, Markdown or MarkdownV2")

        return True
