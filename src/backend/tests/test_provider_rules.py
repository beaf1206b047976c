"""
Tests for the per-provider field rule tables.

Every provider's sample receipt must verify with all fields typed correctly,
and dropping any single mandatory label must fail naming that field.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import datetime
from decimal import Decimal

import pytest
from pydantic.alias_generators import to_camel

from payverify.models.verification import Provider
from payverify.services.normalizer import ResultNormalizer
from payverify.services.parser import FieldRule, ReceiptParser, Transform, label, title_case, until
from payverify.services.providers import PROVIDERS
from payverify.utils.errors import FieldsIncomplete

from sample_receipts import EXPECTED, MANDATORY_LABELS, SAMPLES, without_label


def _extract(provider: str, text: str):
    profile = PROVIDERS[Provider(provider)]
    return ReceiptParser().parse(text, profile.rules, profile.date_formats)


class TestParserHelpers:

    def test_label_accepts_bilingual_variants(self):
        """Amharic and English labels both match."""
        rule = FieldRule('payer', label('የከፋይ ስም', 'Payer Name') + r'(\w+)')
        assert rule.compiled.search("የከፋይ ስም/Payer Name ABEBE").group(1) == "ABEBE"
        assert rule.compiled.search("Payer Name: ABEBE").group(1) == "ABEBE"
        assert rule.compiled.search("የከፋይ ስም ABEBE").group(1) == "ABEBE"

    def test_label_tolerates_spacing_and_colon(self):
        """Label matching ignores spacing and an optional colon."""
        rule = FieldRule('reference', label('Transaction Reference') + r'(\w+)')
        assert rule.compiled.search("TransactionReference:FT1").group(1) == "FT1"
        assert rule.compiled.search("Transaction  Reference - FT1").group(1) == "FT1"

    def test_until_bounds_free_text(self):
        """Free text stops at the next label."""
        rule = FieldRule('payer', label('Payer') + r'(.+?)' + until('Account'))
        assert rule.compiled.search("Payer ABEBE KEBEDE Account 123").group(1) == "ABEBE KEBEDE"

    def test_until_can_stop_at_end_of_text(self):
        """Free text may run to the end of the receipt."""
        rule = FieldRule('reason', label('Narrative') + r'(.+?)' + until('Transaction', end=True))
        assert rule.compiled.search("Narrative House rent").group(1) == "House rent"

    def test_title_case(self):
        """Names are title-cased."""
        assert title_case("ABEBE KEBEDE") == "Abebe Kebede"

    def test_unmatched_rule_leaves_field_none(self):
        """A rule that finds nothing leaves its field empty."""
        rules = (
            FieldRule('amount', label('Amount') + r'(\d+)', Transform.MONEY),
            FieldRule('reference', label('Reference') + r'(\w+)'),
        )
        fields = ReceiptParser().parse("Reference ABC123", rules)
        assert fields == {'amount': None, 'reference': 'ABC123'}

    def test_fallback_rule_used_when_first_misses(self):
        """A later rule for the same field fills it when the first misses."""
        rules = (
            FieldRule('receiver_account', label('Receiver Account') + r'(\d+)', Transform.ACCOUNT),
            FieldRule('receiver_account', label('Phone No') + r'(\+?\d+)', Transform.ACCOUNT),
        )
        fields = ReceiptParser().parse("Phone No +251911", rules)
        assert fields['receiver_account'] == "+251911"

    def test_unparseable_amount_is_absent(self):
        """An amount that does not parse is dropped."""
        rules = (FieldRule('amount', label('Amount') + r'(\S+)', Transform.MONEY),)
        assert ReceiptParser().parse("Amount 1.2.3", rules)['amount'] is None

    def test_unparseable_date_is_absent(self):
        """A date that fits no format is dropped."""
        rules = (FieldRule('date', label('Date') + r'(\S+)', Transform.DATE),)
        fields = ReceiptParser().parse("Date 99/99/9999", rules, ("%d/%m/%Y",))
        assert fields['date'] is None


class TestRuleExamples:

    @pytest.mark.parametrize("provider", list(PROVIDERS))
    def test_rule_examples_match(self, provider):
        """Each documented example string is matched by its own rule."""
        for rule in PROVIDERS[provider].rules:
            if rule.example:
                assert rule.compiled.search(rule.example), f"{provider.value}.{rule.name}"


class TestProviderSamples:

    @pytest.mark.parametrize("provider", sorted(SAMPLES))
    def test_sample_extracts_expected_fields(self, provider):
        """Each provider's sample receipt yields the expected fields."""
        fields = _extract(provider, SAMPLES[provider])

        for name, expected in EXPECTED[provider].items():
            assert fields.get(name) == expected, f"{provider}.{name}"

    @pytest.mark.parametrize("provider", sorted(SAMPLES))
    def test_sample_verifies(self, provider):
        """Each sample receipt normalises to a successful result."""
        profile = PROVIDERS[Provider(provider)]
        result = ResultNormalizer().normalize(profile, _extract(provider, SAMPLES[provider]))

        assert result.success is True
        assert isinstance(result.amount, Decimal)
        assert isinstance(result.date, datetime)
        assert result.reference
        for name in profile.mandatory_fields:
            assert getattr(result, name) is not None

    @pytest.mark.parametrize("provider,field", [
        (provider, field)
        for provider, labels in sorted(MANDATORY_LABELS.items())
        for field in labels
    ])
    def test_missing_mandatory_label_fails(self, provider, field):
        """Removing a mandatory label names that field in FieldsIncomplete."""
        profile = PROVIDERS[Provider(provider)]
        fields = _extract(provider, without_label(provider, field))

        assert fields[field] is None

        with pytest.raises(FieldsIncomplete) as exc_info:
            ResultNormalizer().normalize(profile, fields)

        assert to_camel(field) in exc_info.value.missing
        assert to_camel(field) in str(exc_info.value)

    def test_every_mandatory_field_has_a_label_fixture(self):
        """Each mandatory field has a label to remove."""
        for provider, profile in PROVIDERS.items():
            assert set(MANDATORY_LABELS[provider.value]) == set(profile.mandatory_fields)

    def test_account_masking_preserved(self):
        """Masked account digits are kept as printed."""
        fields = _extract("CBE", SAMPLES["CBE"])
        assert fields['payer_account'] == "1****1234"

    def test_mpesa_reference_requires_uppercase_prefix(self):
        """M-PESA references must start with an uppercase UBH."""
        text = SAMPLES["MPESA"].replace("UBH4X7K2M9", "ubh4x7k2m9")
        assert _extract("MPESA", text)['reference'] is None
