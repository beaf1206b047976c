"""
Tests for verification record persistence.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import hashlib
from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock, patch

from payverify.models.verification import Provider, VerificationResult
from payverify.services.repository import VerificationRepository
from payverify.utils.errors import ErrorKind


def _client(data=None, error=None):
    client = Mock()
    insert = client.table.return_value.insert
    if error:
        insert.return_value.execute.side_effect = error
    else:
        insert.return_value.execute.return_value = Mock(data=data)
    return client


class TestVerificationRepository:

    def test_success_record(self):
        """A verified payment is stored with hash, amount string and raw result."""
        client = _client(data=[{"id": "x"}])
        result = VerificationResult(
            success=True,
            provider=Provider.DASHEN,
            payer="Abebe Kebede",
            amount=Decimal("2500.00"),
            date=datetime(2025, 2, 10, 14, 5, 33),
            reference="091DSTR2502100ABC",
        )

        record_id = VerificationRepository(client=client, table="verifications").save(result, file_data=b"%PDF")

        assert record_id is not None
        client.table.assert_called_with("verifications")
        record = client.table.return_value.insert.call_args.args[0]
        assert record["status"] == "success"
        assert record["provider"] == "DASHEN"
        assert record["amount"] == "2500.00"
        assert record["transaction_date"] == "2025-02-10T14:05:33"
        assert record["file_hash"] == hashlib.sha256(b"%PDF").hexdigest()
        assert record["raw_data"] == result.to_dict()
        assert record["created_at"].endswith("+00:00")

    def test_failed_record_keeps_caller_reference(self):
        """Failures are stored under the caller's reference."""
        client = _client(data=[{"id": "x"}])
        result = VerificationResult.failure(ErrorKind.DOCUMENT_NOT_AVAILABLE, "no receipt", provider=Provider.AWASH)

        VerificationRepository(client=client).save(result, reference="AWB25021000123")

        record = client.table.return_value.insert.call_args.args[0]
        assert record["status"] == "failed"
        assert record["reference"] == "AWB25021000123"
        assert record["amount"] is None
        assert record["file_hash"] is None
        assert record["error"] == "DocumentNotAvailable: no receipt"

    def test_store_error_is_not_raised(self):
        """Store errors are logged, not raised."""
        client = _client(error=RuntimeError("connection refused"))
        result = VerificationResult.failure(ErrorKind.TRANSPORT_ERROR, "x", provider=Provider.CBE)

        assert VerificationRepository(client=client).save(result) is None

    def test_empty_insert_response(self):
        """An insert that returns nothing yields no id."""
        client = _client(data=[])
        result = VerificationResult.failure(ErrorKind.TRANSPORT_ERROR, "x", provider=Provider.CBE)

        assert VerificationRepository(client=client).save(result) is None

    @patch('payverify.services.repository.get_supabase_client')
    def test_default_client_from_settings(self, mock_get_client):
        """The Supabase client comes from settings when none is given."""
        repository = VerificationRepository()

        assert repository.supabase is mock_get_client.return_value
