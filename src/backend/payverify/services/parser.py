"""
Receipt field extraction from flattened receipt text.

Each provider describes its receipt as an ordered tuple of FieldRule entries.
A rule pairs a label pattern with a value pattern (bounded by a lookahead for
the next label, since flattened text has no structure) and a transform for
the captured value. Rules run independently: a rule that does not match
leaves its field as None and never aborts the rest of the set.
"""

import re
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence

from payverify.utils.dates import parse_datetime
from payverify.utils.money import parse_amount

logger = logging.getLogger(__name__)


class Transform(str, Enum):
    """How a captured value is converted."""
    TEXT = "text"        # trimmed, empty -> None
    TITLE = "title"      # person/business names, Title Cased for display
    ACCOUNT = "account"  # preserved exactly as printed (masking included)
    MONEY = "money"      # Decimal, thousands separators stripped
    DATE = "date"        # datetime via the provider's date formats


@dataclass(frozen=True)
class FieldRule:
    """A canonical field, the regex that captures it, and its transform."""
    name: str
    pattern: str
    transform: Transform = Transform.TEXT
    example: Optional[str] = None
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


def _phrase(phrase: str) -> str:
    """Regex fragment for one printed label; spaces match any whitespace."""
    words = phrase.split()
    body = r'\s*'.join(words)
    if words and words[0][0].isalnum():
        body = r'\b' + body
    return body


def label(*phrases: str) -> str:
    """
    Regex for a field label in any of its printed variants.

    Phrases are regex fragments. Variants may appear alone or joined with a
    slash, as on bilingual receipts ("የከፋይ ስም/Payer Name"). An optional
    colon or dash after the label is consumed.
    """
    variants = '|'.join(_phrase(p) for p in phrases)
    return rf'(?:(?:{variants})\s*/?\s*)+[:\-]?\s*'


def until(*phrases: str, end: bool = False) -> str:
    """Lookahead for the label that follows a free-text value."""
    variants = '|'.join(_phrase(p) for p in phrases)
    tail = r'|\s*$' if end else ''
    return rf'(?=\s*(?:{variants}){tail})'


# Common value patterns
TEXT = r'(.+?)'
MONEY = r'(?:ETB|Birr)?\s*(\d[\d,]*(?:\.\d+)?)'
ACCOUNT = r'([0-9*][0-9*\-]{3,})'
REFERENCE = r'((?-i:[A-Z0-9][A-Z0-9\-]{5,}))'
NUMERIC_DATE = r'(\d{1,4}[/\-]\d{1,2}[/\-]\d{2,4},?\s+\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M\b)?)'
ISO_DATE = r'(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2})'


def title_case(value: str) -> str:
    """ABEBE KEBEDE -> Abebe Kebede."""
    return re.sub(r'\b\w', lambda m: m.group().upper(), value.lower())


class ReceiptParser:
    """Applies a provider's rule set to flattened receipt text."""

    def parse(
        self,
        text: str,
        rules: Sequence[FieldRule],
        date_formats: Iterable[str] = ()
    ) -> Dict[str, Any]:
        """
        Extract every field named by the rules.

        When several rules share a field name they act as ordered fallbacks:
        the first one yielding a value wins.

        Args:
            text: Normalized receipt text
            rules: Ordered provider rules
            date_formats: strptime formats for DATE transforms

        Returns:
            Dict of field name -> value (None when not found)
        """
        date_formats = tuple(date_formats)
        fields: Dict[str, Any] = {rule.name: None for rule in rules}
        matched: Dict[str, str] = {}

        for rule in rules:
            if fields[rule.name] is not None:
                continue

            try:
                match = rule.compiled.search(text)
                if not match:
                    continue

                raw = match.group(1) if match.groups() else match.group(0)
                value = self._apply(rule.transform, raw, date_formats)

            except (re.error, IndexError, AttributeError):
                logger.warning("Error applying field rule", extra={
                    "field": rule.name,
                    "pattern": rule.pattern,
                }, exc_info=True)
                continue

            if value is None:
                logger.debug("Field matched but value rejected", extra={
                    "field": rule.name,
                    "raw": raw,
                })
                continue

            fields[rule.name] = value
            matched[rule.name] = raw

        logger.debug("Field extraction complete", extra={
            "matched": sorted(matched),
            "unmatched": sorted(k for k, v in fields.items() if v is None),
        })

        return fields

    def _apply(self, transform: Transform, raw: Optional[str], date_formats: Sequence[str]) -> Any:
        if raw is None:
            return None

        value = raw.strip()
        if not value:
            return None

        if transform == Transform.MONEY:
            return self._money(value)
        if transform == Transform.DATE:
            return self._date(value, date_formats)
        if transform == Transform.TITLE:
            return title_case(value)
        return value

    @staticmethod
    def _money(value: str) -> Optional[Decimal]:
        return parse_amount(value)

    @staticmethod
    def _date(value: str, date_formats: Sequence[str]) -> Optional[datetime]:
        return parse_datetime(value, date_formats)
