"""
Money parsing for receipt amounts.

Handles the formats providers print:
- Thousands separators: 1,234.50 -> 1234.50
- Currency prefixes/suffixes: ETB 1,234.50, 1,234.50 Birr
- Missing decimals: 1234 -> 1234
- Negative: -12.34 or (12.34) is not a payment amount and yields None
"""

from decimal import Decimal, InvalidOperation
from typing import Optional
import re

CURRENCY_PATTERN = re.compile(r'\b(?:ETB|Birr|Br|USD)\b\.?|[$€£]', re.IGNORECASE)


def parse_amount(amount_str: Optional[str]) -> Optional[Decimal]:
    """
    Parse a printed amount into a Decimal.

    Args:
        amount_str: String containing amount (e.g., "1,234.50 ETB")

    Returns:
        Decimal amount, or None if the text is not a finite number.
        An unparseable amount is never coerced to zero.

    Examples:
        >>> parse_amount("1,234.50")
        Decimal('1234.50')
        >>> parse_amount("ETB 1234.50")
        Decimal('1234.50')
        >>> parse_amount("n/a") is None
        True
    """
    if not amount_str or not isinstance(amount_str, str):
        return None

    cleaned = CURRENCY_PATTERN.sub('', amount_str).strip()

    # Negative, signed or parenthesised
    if cleaned.startswith(('(', '-')):
        return None

    # Thousands separators and stray spaces
    cleaned = cleaned.replace(',', '').replace(' ', '')

    if not re.fullmatch(r'\d+(?:\.\d+)?', cleaned):
        return None

    try:
        result = Decimal(cleaned)
    except (InvalidOperation, ValueError):
        return None

    if not result.is_finite():
        return None

    return result
