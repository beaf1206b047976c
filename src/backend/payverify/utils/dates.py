"""
Date parsing for receipt timestamps.

Providers print local (Addis Ababa) wall-clock times in their own formats, so
parsing is driven by a per-provider list of strptime formats. The result is a
naive datetime in the provider's local time.
"""

import re
from datetime import datetime
from typing import Iterable, Optional


def clean_date_text(value: str) -> str:
    """Drop commas and collapse whitespace ("2/5/2026, 3:45 PM" -> "2/5/2026 3:45 PM")."""
    return re.sub(r'\s+', ' ', value.replace(',', ' ')).strip()


def parse_datetime(value: Optional[str], formats: Iterable[str]) -> Optional[datetime]:
    """
    Parse a printed timestamp using the first matching format.

    Returns:
        datetime, or None if no format matches
    """
    if not value:
        return None

    cleaned = clean_date_text(value)

    for fmt in formats:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue

    return None
