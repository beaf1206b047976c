"""
Tests for amount and timestamp parsing.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import datetime
from decimal import Decimal

import pytest

from payverify.utils.dates import clean_date_text, parse_datetime
from payverify.utils.money import parse_amount


class TestParseAmount:

    def test_thousands_separator_variation(self):
        """1,234.50 and 1234.50 are the same amount."""
        assert parse_amount("1,234.50") == parse_amount("1234.50") == Decimal("1234.50")

    @pytest.mark.parametrize("text", [
        "ETB 1,000.00",
        "1,000.00 ETB",
        "1,000.00 Birr",
        "Br. 1000.00",
        "1 000.00",
    ])
    def test_currency_markers_stripped(self, text):
        """Currency prefixes, suffixes and spacing are ignored."""
        assert parse_amount(text) == Decimal("1000.00")

    def test_integer_amount(self):
        """Amounts without decimals parse."""
        assert parse_amount("750") == Decimal("750")

    @pytest.mark.parametrize("text", ["", None, "n/a", "1.2.3", "ETB", "inf", "NaN", "12abc"])
    def test_unparseable_is_none_not_zero(self, text):
        """Unparseable text is None, never zero."""
        assert parse_amount(text) is None

    @pytest.mark.parametrize("text", ["-12.34", "(12.34)", "ETB -1,000.00", "(1,000.00) Birr"])
    def test_negative_is_not_an_amount(self, text):
        """Signed or parenthesised values are not payment amounts."""
        assert parse_amount(text) is None


class TestParseDatetime:

    def test_clean_date_text(self):
        """Commas and repeated spaces are removed before parsing."""
        assert clean_date_text(" 2/5/2026,   3:45 PM ") == "2/5/2026 3:45 PM"

    def test_first_matching_format_wins(self):
        """Formats are tried in the provider's order."""
        formats = ("%d/%m/%y %H:%M", "%m/%d/%y %H:%M")
        assert parse_datetime("01/02/24 10:30", formats) == datetime(2024, 2, 1, 10, 30)

    def test_twelve_hour_clock(self):
        """AM/PM timestamps become 24-hour times."""
        result = parse_datetime("2/5/2026, 3:45:12 PM", ("%m/%d/%Y %I:%M:%S %p",))
        assert result == datetime(2026, 2, 5, 15, 45, 12)

    def test_result_is_naive_local_time(self):
        """Receipt times are kept as provider local time."""
        result = parse_datetime("2025-02-10 08:45:12", ("%Y-%m-%d %H:%M:%S",))
        assert result.tzinfo is None

    def test_no_matching_format(self):
        """Text that fits no format is None."""
        assert parse_datetime("yesterday", ("%d/%m/%Y",)) is None

    def test_empty(self):
        """Empty input is None."""
        assert parse_datetime("", ("%d/%m/%Y",)) is None
        assert parse_datetime(None, ("%d/%m/%Y",)) is None
