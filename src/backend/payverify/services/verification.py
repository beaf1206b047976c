"""
Verification orchestrator.

Runs one request through the pipeline:

    RECEIVED -> REFERENCE_RESOLVING (file without reference only)
             -> INPUT_VALIDATED -> DOCUMENT_ACQUIRING -> TEXT_EXTRACTING
             -> FIELDS_EXTRACTING -> NORMALIZING -> SUCCEEDED | FAILED

Any error moves straight to FAILED. Every path ends in a VerificationResult;
nothing here raises to the caller and nothing here touches storage.
"""

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from payverify.models.verification import Provider, VerificationRequest, VerificationResult
from payverify.services.normalizer import ResultNormalizer
from payverify.services.registry import AdapterRegistry, to_provider
from payverify.services.resolver import ReferenceResolver
from payverify.services.text_extraction import TextExtractionService
from payverify.utils.errors import (
    ExtractionFailed,
    MissingInput,
    TransportError,
    VerificationError,
)

logger = logging.getLogger(__name__)


class VerificationState(str, Enum):
    RECEIVED = "RECEIVED"
    REFERENCE_RESOLVING = "REFERENCE_RESOLVING"
    INPUT_VALIDATED = "INPUT_VALIDATED"
    DOCUMENT_ACQUIRING = "DOCUMENT_ACQUIRING"
    TEXT_EXTRACTING = "TEXT_EXTRACTING"
    FIELDS_EXTRACTING = "FIELDS_EXTRACTING"
    NORMALIZING = "NORMALIZING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# States in which an unexpected exception means the document could not be read
EXTRACTION_STATES = (
    VerificationState.REFERENCE_RESOLVING,
    VerificationState.TEXT_EXTRACTING,
    VerificationState.FIELDS_EXTRACTING,
)


def _validation_message(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        msg = item.get('msg', '')
        if msg.startswith('Value error, '):
            msg = msg[len('Value error, '):]
        loc = '.'.join(str(part) for part in item.get('loc', ()))
        messages.append(f"{loc}: {msg}" if loc else msg)
    return '; '.join(messages)


class VerificationService:
    """Multi-provider receipt verification."""

    def __init__(
        self,
        registry: Optional[AdapterRegistry] = None,
        extractor: Optional[TextExtractionService] = None,
        resolver: Optional[ReferenceResolver] = None,
        normalizer: Optional[ResultNormalizer] = None
    ):
        self.extractor = extractor or TextExtractionService()
        self.registry = registry or AdapterRegistry()
        self.resolver = resolver or ReferenceResolver(self.extractor)
        self.normalizer = normalizer or ResultNormalizer()

    def verify(
        self,
        provider: Union[str, Provider],
        payload: Union[VerificationRequest, Mapping[str, Any]]
    ) -> VerificationResult:
        """
        Verify a payment with the given provider.

        Args:
            provider: Provider code, e.g. "CBE"
            payload: VerificationRequest, or a mapping with reference /
                account_suffix / file_bytes / file_kind

        Returns:
            VerificationResult; success=False carries the classified error
        """
        state = VerificationState.RECEIVED
        resolved_provider: Optional[Provider] = None
        reference: Optional[str] = None

        try:
            resolved_provider = to_provider(provider)
            adapter = self.registry.get(resolved_provider)
            profile = adapter.profile
            request = self._build_request(resolved_provider, payload)
            reference = request.reference

            self._log_state(state, resolved_provider, reference)

            # Contract first: a request that can never succeed costs no I/O
            self.registry.check_contract(adapter, request)

            if not reference:
                state = VerificationState.REFERENCE_RESOLVING
                self._log_state(state, resolved_provider, reference)
                reference = self.resolver.resolve(request.file_bytes, request.file_kind, profile)

            state = VerificationState.INPUT_VALIDATED
            self._log_state(state, resolved_provider, reference)

            state = VerificationState.DOCUMENT_ACQUIRING
            self._log_state(state, resolved_provider, reference)
            document = adapter.acquire_document(reference, request.account_suffix)

            state = VerificationState.TEXT_EXTRACTING
            self._log_state(state, resolved_provider, reference)
            text = self.extractor.extract(document, profile.ocr_languages)

            state = VerificationState.FIELDS_EXTRACTING
            self._log_state(state, resolved_provider, reference)
            fields = adapter.extract_fields(text)

            state = VerificationState.NORMALIZING
            self._log_state(state, resolved_provider, reference)
            result = self.normalizer.normalize(profile, fields)

        except VerificationError as e:
            return self._fail(state, resolved_provider, reference, e)

        except Exception as e:
            logger.error("Unexpected verification failure", extra={
                "provider": resolved_provider.value if resolved_provider else str(provider),
                "reference": reference,
                "state": state.value,
            }, exc_info=True)
            if state in EXTRACTION_STATES:
                wrapped = ExtractionFailed(f"Unexpected error reading receipt: {e}")
            else:
                wrapped = TransportError(f"Unexpected error: {e}")
            return self._fail(state, resolved_provider, reference, wrapped)

        self._log_state(VerificationState.SUCCEEDED, resolved_provider, reference)
        logger.info("Verification succeeded", extra={
            "provider": resolved_provider.value,
            "reference": result.reference,
            "amount": str(result.amount),
        })
        return result

    def verify_text(self, provider: Union[str, Provider], text: str) -> VerificationResult:
        """
        Run field extraction and normalization on already-extracted text.

        Useful for replaying a receipt whose text was captured earlier.
        """
        resolved_provider: Optional[Provider] = None
        try:
            resolved_provider = to_provider(provider)
            adapter = self.registry.get(resolved_provider)
            fields = adapter.extract_fields(text)
            return self.normalizer.normalize(adapter.profile, fields)
        except VerificationError as e:
            return self._fail(VerificationState.FIELDS_EXTRACTING, resolved_provider, None, e)

    def _build_request(
        self,
        provider: Provider,
        payload: Union[VerificationRequest, Mapping[str, Any]]
    ) -> VerificationRequest:
        if isinstance(payload, VerificationRequest):
            if payload.provider != provider:
                raise MissingInput(
                    f"Request is for {payload.provider.value}, not {provider.value}"
                )
            return payload

        data = dict(payload or {})
        data['provider'] = provider
        try:
            return VerificationRequest(**data)
        except ValidationError as e:
            raise MissingInput(_validation_message(e)) from e

    def _fail(
        self,
        state: VerificationState,
        provider: Optional[Provider],
        reference: Optional[str],
        error: VerificationError
    ) -> VerificationResult:
        logger.warning("Verification failed", extra={
            "provider": provider.value if provider else None,
            "reference": reference,
            "state": state.value,
            "error_kind": error.kind.value,
            "error": error.message,
        })
        self._log_state(VerificationState.FAILED, provider, reference)
        return VerificationResult.failure(error.kind, error.message, provider=provider)

    @staticmethod
    def _log_state(state: VerificationState, provider: Optional[Provider], reference: Optional[str]):
        logger.debug("Verification state", extra={
            "state": state.value,
            "provider": provider.value if provider else None,
            "reference": reference,
        })

