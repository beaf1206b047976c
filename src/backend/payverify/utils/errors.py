"""
Classified verification failures.

Every failure that can end a verification is one of the kinds below. Library
exceptions are translated into these where they are raised, so nothing past
the adapter boundary ever sees a raw transport or parser exception.
"""

from enum import Enum
from typing import Iterable


class ErrorKind(str, Enum):
    """Failure classes surfaced to callers."""
    MISSING_INPUT = "MissingInput"
    UNSUPPORTED_PROVIDER = "UnsupportedProvider"
    REFERENCE_NOT_FOUND = "ReferenceNotFound"
    DOCUMENT_NOT_AVAILABLE = "DocumentNotAvailable"
    EXTRACTION_FAILED = "ExtractionFailed"
    FIELDS_INCOMPLETE = "FieldsIncomplete"
    TRANSPORT_ERROR = "TransportError"


class VerificationError(Exception):
    """Base class for all classified verification failures."""

    kind: ErrorKind = ErrorKind.TRANSPORT_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class MissingInput(VerificationError):
    """The request does not satisfy the provider's minimum input contract."""
    kind = ErrorKind.MISSING_INPUT


class UnsupportedProvider(VerificationError):
    kind = ErrorKind.UNSUPPORTED_PROVIDER


class ReferenceNotFound(VerificationError):
    """No reference could be recovered from the supplied file."""
    kind = ErrorKind.REFERENCE_NOT_FOUND


class DocumentNotAvailable(VerificationError):
    """Acquisition timed out or the provider has no receipt for the reference."""
    kind = ErrorKind.DOCUMENT_NOT_AVAILABLE


class ExtractionFailed(VerificationError):
    """Text extraction raised (corrupt PDF, unreadable image, OCR failure)."""
    kind = ErrorKind.EXTRACTION_FAILED


class FieldsIncomplete(VerificationError):
    kind = ErrorKind.FIELDS_INCOMPLETE

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(f"Could not extract: {', '.join(self.missing)}")


class TransportError(VerificationError):
    """Network or TLS failure not otherwise classified."""
    kind = ErrorKind.TRANSPORT_ERROR
