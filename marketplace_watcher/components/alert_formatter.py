"""
Alert formatting component for the Marketplace Watcher system.

Turns listings into Telegram HTML messages: a new-listing alert and a
price-drop alert, both carrying a "Ver anúncio" link button. When the
listing has an image the text is sized to fit a photo caption.
"""

import html
from typing import Any, Dict, List, Optional

from ..models.alert import MAX_CAPTION_LENGTH, MAX_MESSAGE_LENGTH, FormattedAlert
from ..models.listing import Listing

VIEW_BUTTON_TEXT = "🛒 Ver anúncio"


class AlertFormatter:
    """Formats listing notifications for Telegram."""

    def __init__(self, max_title_length: int = 200):
        self.max_title_length = max_title_length

    def format_new_listing(
        self, listing: Listing, keyword: str, platform_name: str
    ) -> FormattedAlert:
        """
        Format a listing seen for the first time.

        Args:
            listing: The new listing
            keyword: Keyword whose search produced it
            platform_name: Display name of the marketplace

        Returns:
            FormattedAlert: Alert ready for delivery
        """
        lines = [
            f"🚨 <b>Novo item no {self._escape(platform_name)}!</b>",
            "",
            f"<b>{self._title(listing)}</b>",
            f"💰 <b>Preço:</b> {self._escape(listing.price or 'N/A')}",
            "",
            f'🔎 Palavra-chave: "{self._escape(keyword)}"',
        ]
        return self._build(listing, lines)

    def format_price_drop(
        self,
        listing: Listing,
        keyword: str,
        old_price: str,
        new_price: str,
        platform_name: str,
    ) -> FormattedAlert:
        """Format a price drop on a listing already notified."""
        lines = [
            f"📉 <b>Preço caiu no {self._escape(platform_name)}!</b>",
            "",
            f"<b>{self._title(listing)}</b>",
            f"💰 <s>{self._escape(old_price)}</s> → <b>{self._escape(new_price)}</b>",
            "",
            f'🔎 Palavra-chave: "{self._escape(keyword)}"',
        ]
        return self._build(listing, lines)

    def _build(self, listing: Listing, lines: List[str]) -> FormattedAlert:
        photo_url = listing.image or None
        limit = MAX_CAPTION_LENGTH if photo_url else MAX_MESSAGE_LENGTH

        text = "\n".join(lines)
        if len(text) > limit:
            # Only the title varies in length; drop it rather than cut a tag
            text = "\n".join(line for index, line in enumerate(lines) if index != 2)
            text = text[:limit]

        alert = FormattedAlert(
            text=text,
            photo_url=photo_url,
            reply_markup=self._view_button(listing.url),
            parse_mode="HTML",
            platform_specific_data={"listing_id": listing.id},
        )
        alert.validate()
        return alert

    def _title(self, listing: Listing) -> str:
        title = listing.display_title
        if len(title) > self.max_title_length:
            title = title[: self.max_title_length - 3] + "..."
        return self._escape(title)

    @staticmethod
    def _view_button(url: Optional[str]) -> Optional[Dict[str, Any]]:
        if not url:
            return None
        return {"inline_keyboard": [[{"text": VIEW_BUTTON_TEXT, "url": url}]]}

    @staticmethod
    def _escape(text: str) -> str:
        return html.escape(str(text), quote=False)

    def format_operator_message(self, message: str) -> str:
        """Operator alerts are plain text prefixed with a warning marker."""
        return f"⚠️ {message}"
