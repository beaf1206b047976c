"""
Persistence of verification outcomes in Supabase.

Called by the API layer after the pipeline returns; the pipeline itself
never writes anything.
"""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from payverify.config import settings
from payverify.models.verification import VerificationResult
from payverify.utils.supabase import get_supabase_client

logger = logging.getLogger(__name__)


def _decimal_to_str(value) -> Optional[str]:
    """Convert Decimal to string for database storage."""
    return str(value) if value is not None else None


class VerificationRepository:
    """Stores verification results as audit records."""

    def __init__(self, client=None, table: Optional[str] = None):
        self.supabase = client or get_supabase_client()
        self.table = table or settings.VERIFICATION_TABLE

    @staticmethod
    def calculate_file_hash(file_data: bytes) -> str:
        """SHA-256 hex digest of an uploaded receipt."""
        return hashlib.sha256(file_data).hexdigest()

    def build_record(
        self,
        result: VerificationResult,
        reference: Optional[str] = None,
        file_data: Optional[bytes] = None
    ) -> Dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "provider": result.provider.value if result.provider else None,
            "reference": result.reference or reference,
            "status": "success" if result.success else "failed",
            "payer": result.payer,
            "payer_account": result.payer_account,
            "receiver": result.receiver,
            "receiver_account": result.receiver_account,
            "amount": _decimal_to_str(result.amount),
            "transaction_date": result.date.isoformat() if result.date else None,
            "error": result.error,
            "file_hash": self.calculate_file_hash(file_data) if file_data else None,
            "raw_data": result.to_dict(),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    def save(
        self,
        result: VerificationResult,
        reference: Optional[str] = None,
        file_data: Optional[bytes] = None
    ) -> Optional[str]:
        """
        Insert one verification record.

        Args:
            result: Pipeline outcome (success or failure)
            reference: Caller-supplied reference, used when the result has none
            file_data: Uploaded receipt, hashed for deduplication/audit

        Returns:
            Record id, or None if the insert failed
        """
        record = self.build_record(result, reference, file_data)

        try:
            response = self.supabase.table(self.table).insert(record).execute()
        except Exception as e:
            logger.error("Failed to store verification record", extra={
                "provider": record["provider"],
                "reference": record["reference"],
                "error": str(e),
            }, exc_info=True)
            return None

        if not response.data:
            logger.warning("Verification record insert returned no data", extra={
                "provider": record["provider"],
                "reference": record["reference"],
            })
            return None

        logger.info("Stored verification record", extra={
            "record_id": record["id"],
            "provider": record["provider"],
            "status": record["status"],
        })
        return record["id"]
