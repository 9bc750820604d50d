"""
Price string parsing for marketplace listings.

Marketplace prices arrive as display text such as ``"R$ 1.500,00"``,
``"R$50"`` or ``"preço a combinar"``. This module turns them into
``Decimal`` values, or ``None`` when no number can be recovered.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

_NUMBER_PATTERN = re.compile(r"\d[\d.,]*")
_THOUSANDS_DOT_GROUPS = re.compile(r"^\d{1,3}(\.\d{3})+$")
_THOUSANDS_COMMA_GROUPS = re.compile(r"^\d{1,3}(,\d{3})+$")


def parse_price(text: Optional[Union[str, int, float, Decimal]]) -> Optional[Decimal]:
    """
    Parse a currency-tagged price string into a Decimal.

    Currency symbols, spaces and thousands separators are stripped and the
    decimal separator is normalised. Both Brazilian (``1.500,00``) and
    English (``1,500.00``) conventions are accepted: the right-most separator
    is the decimal one when both appear. A single kind of separator followed
    only by three-digit groups is a thousands separator (``R$ 1.500``).

    Returns:
        The parsed value, or None when the text holds no number.
    """
    if text is None:
        return None

    if isinstance(text, Decimal):
        return text

    if isinstance(text, (int, float)):
        return Decimal(str(text))

    match = _NUMBER_PATTERN.search(text)
    if not match:
        return None

    number = match.group(0).rstrip(".,")
    if not number:
        return None

    if "," in number and "." in number:
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        if _THOUSANDS_COMMA_GROUPS.match(number):
            number = number.replace(",", "")
        else:
            head, _, tail = number.rpartition(",")
            number = head.replace(",", "") + "." + tail
    elif "." in number and _THOUSANDS_DOT_GROUPS.match(number):
        number = number.replace(".", "")

    try:
        return Decimal(number)
    except InvalidOperation:
        return None


def format_price(value: Optional[Decimal]) -> str:
    """Render a Decimal the way Brazilian marketplaces display prices."""
    if value is None:
        return "N/A"

    integer, _, cents = f"{value:,.2f}".partition(".")
    return f"R$ {integer.replace(',', '.')},{cents}"
