"""
Recover a transaction reference from a caller-supplied receipt file.
"""

import logging
from typing import Optional

from payverify.models.verification import FileKind
from payverify.services.providers import ProviderProfile
from payverify.services.text_extraction import TextExtractionService
from payverify.utils.errors import ReferenceNotFound

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Extracts file text and searches it for the provider's reference shapes."""

    def __init__(self, extractor: Optional[TextExtractionService] = None):
        self.extractor = extractor or TextExtractionService()

    def resolve(self, file_bytes: bytes, file_kind: FileKind, profile: ProviderProfile) -> str:
        """
        Find the transaction reference printed on a receipt file.

        Args:
            file_bytes: Uploaded receipt
            file_kind: pdf or image
            profile: Provider whose reference shapes are searched, in order

        Returns:
            Reference string

        Raises:
            ReferenceNotFound: no reference shape occurs in the file text
            ExtractionFailed: the file could not be read
        """
        text = self.extract_text(file_bytes, file_kind, profile)
        reference = self.find_reference(text, profile)

        if not reference:
            logger.warning("No reference found in uploaded receipt", extra={
                "provider": profile.provider.value,
                "file_kind": FileKind(file_kind).value,
                "text_length": len(text),
            })
            raise ReferenceNotFound(
                f"No {profile.display_name} transaction reference found in the uploaded file"
            )

        logger.info("Resolved reference from file", extra={
            "provider": profile.provider.value,
            "reference": reference,
        })
        return reference

    def extract_text(self, file_bytes: bytes, file_kind: FileKind, profile: ProviderProfile) -> str:
        if FileKind(file_kind) == FileKind.PDF:
            return self.extractor.extract_pdf_text(
                file_bytes,
                languages=profile.ocr_languages,
                ocr_fallback=True,
            )
        return self.extractor.extract_image_text(file_bytes, profile.ocr_languages)

    @staticmethod
    def find_reference(text: str, profile: ProviderProfile) -> Optional[str]:
        for pattern in profile.compiled_references:
            match = pattern.search(text)
            if match:
                return match.group(1).strip()
        return None
