"""
Pydantic models for verification requests and results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator, model_validator
from pydantic.alias_generators import to_camel

from payverify.utils.errors import ErrorKind


class Provider(str, Enum):
    """Supported payment providers (closed set)."""
    CBE = "CBE"
    TELEBIRR = "TELEBIRR"
    DASHEN = "DASHEN"
    ABYSSINIA = "ABYSSINIA"
    MPESA = "MPESA"
    AWASH = "AWASH"


class FileKind(str, Enum):
    """Kind of a caller-supplied file."""
    PDF = "pdf"
    IMAGE = "image"


class DocumentKind(str, Enum):
    """Kind of a document retrieved from a provider."""
    PDF = "pdf"
    RENDERED_PAGE = "rendered-page"
    IMAGE = "image"


class VerificationRequest(BaseModel):
    """
    Input to the verification pipeline.

    Build with ``by_reference`` or ``by_file``; either way at least one of
    reference / file_bytes is present and file_kind accompanies any file.
    Mapping payloads may use the camelCase wire names (accountSuffix,
    fileBytes, fileKind) or the field names.
    """
    provider: Provider
    reference: Optional[str] = None
    account_suffix: Optional[str] = None
    file_bytes: Optional[bytes] = None
    file_kind: Optional[FileKind] = None

    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = to_camel

    @field_validator('reference', 'account_suffix', mode='before')
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @model_validator(mode='after')
    def _check_inputs(self) -> 'VerificationRequest':
        if not self.reference and not self.file_bytes:
            raise ValueError("Provide a transaction reference or a receipt file")
        if self.file_bytes and self.file_kind is None:
            raise ValueError("file_kind is required when a file is supplied")
        return self

    @classmethod
    def by_reference(
        cls,
        provider: Provider,
        reference: str,
        account_suffix: Optional[str] = None
    ) -> 'VerificationRequest':
        return cls(provider=provider, reference=reference, account_suffix=account_suffix)

    @classmethod
    def by_file(
        cls,
        provider: Provider,
        file_bytes: bytes,
        file_kind: FileKind,
        account_suffix: Optional[str] = None,
        reference: Optional[str] = None
    ) -> 'VerificationRequest':
        return cls(
            provider=provider,
            reference=reference,
            account_suffix=account_suffix,
            file_bytes=file_bytes,
            file_kind=file_kind,
        )

    @property
    def has_file(self) -> bool:
        return bool(self.file_bytes)


@dataclass(frozen=True)
class ExtractedDocument:
    """A provider receipt as retrieved over the provider's transport."""
    content: bytes
    kind: DocumentKind
    source_url: str
    retrieved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Provider-specific fields: omitted from output when the receipt does not report them
OPTIONAL_FIELDS = ('service_charge', 'vat', 'total_amount', 'receipt_number')

CANONICAL_FIELDS = (
    'payer',
    'payer_account',
    'receiver',
    'receiver_account',
    'amount',
    'date',
    'reference',
    'reason',
)


class VerificationResult(BaseModel):
    """Canonical, provider-agnostic verification outcome."""
    success: bool
    provider: Optional[Provider] = None

    payer: Optional[str] = None
    payer_account: Optional[str] = None
    receiver: Optional[str] = None
    receiver_account: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[datetime] = None
    reference: Optional[str] = None
    reason: Optional[str] = None

    service_charge: Optional[Decimal] = None
    vat: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    receipt_number: Optional[str] = None

    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = to_camel

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        provider: Optional[Provider] = None
    ) -> 'VerificationResult':
        return cls(
            success=False,
            provider=provider,
            error=f"{kind.value}: {message}",
            error_kind=kind,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-ready representation with camelCase keys.

        Successful results carry every canonical field (null when not found)
        plus only those provider-specific fields the receipt reported. Failed
        results carry just the classification.
        """
        data = self.model_dump(mode='json', by_alias=True)

        if not self.success:
            keep = {'success', 'provider', 'error', 'errorKind'}
            return {k: v for k, v in data.items() if k in keep}

        for name in OPTIONAL_FIELDS:
            if getattr(self, name) is None:
                data.pop(to_camel(name), None)
        data.pop('error', None)
        data.pop('errorKind', None)
        return data
