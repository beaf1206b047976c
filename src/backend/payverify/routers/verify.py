"""
Verification API router.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

from payverify.config import settings
from payverify.models.verification import FileKind, VerificationResult
from payverify.services.providers import PROVIDERS
from payverify.services.repository import VerificationRepository
from payverify.services.verification import VerificationService
from payverify.utils.errors import ErrorKind

router = APIRouter(tags=["verification"])
logger = logging.getLogger(__name__)

STATUS_CODES = {
    ErrorKind.MISSING_INPUT: 400,
    ErrorKind.UNSUPPORTED_PROVIDER: 400,
    ErrorKind.REFERENCE_NOT_FOUND: 400,
    ErrorKind.DOCUMENT_NOT_AVAILABLE: 404,
    ErrorKind.FIELDS_INCOMPLETE: 422,
    ErrorKind.EXTRACTION_FAILED: 422,
    ErrorKind.TRANSPORT_ERROR: 502,
}


@lru_cache()
def get_verification_service() -> VerificationService:
    return VerificationService()


def get_repository() -> Optional[VerificationRepository]:
    """Persistence is best-effort; an unconfigured store disables it."""
    try:
        return VerificationRepository()
    except Exception as e:
        logger.warning("Verification store unavailable", extra={"error": str(e)})
        return None


def envelope(success: bool, message: str, data: Any = None) -> Dict[str, Any]:
    return {
        "success": success,
        "message": message,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _file_kind(content_type: Optional[str]) -> FileKind:
    return FileKind.PDF if content_type == "application/pdf" else FileKind.IMAGE


def _read_upload(file: UploadFile) -> bytes:
    if file.content_type not in settings.ALLOWED_UPLOAD_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Allowed: PDF, JPG, PNG"
        )

    file_data = file.file.read()
    file_size_mb = len(file_data) / (1024 * 1024)

    if file_size_mb > settings.MAX_UPLOAD_MB:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB:g}MB"
        )

    if not file_data:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    return file_data


@router.post("/verify")
def verify_payment(
    provider: str = Form(...),
    reference: Optional[str] = Form(None),
    account_suffix: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    service: VerificationService = Depends(get_verification_service),
    repository: Optional[VerificationRepository] = Depends(get_repository),
):
    """
    Verify a payment against the provider's published receipt.

    Args:
        provider: Provider code (CBE, TELEBIRR, DASHEN, ABYSSINIA, MPESA, AWASH)
        reference: Transaction reference
        account_suffix: Account digits some providers append to the reference
        file: Receipt PDF or screenshot, used to recover the reference

    Returns:
        Envelope with the canonical verification result
    """
    payload: Dict[str, Any] = {
        "reference": reference,
        "account_suffix": account_suffix,
    }

    file_data = None
    if file is not None and file.filename:
        file_data = _read_upload(file)
        payload["file_bytes"] = file_data
        payload["file_kind"] = _file_kind(file.content_type)

    result: VerificationResult = service.verify(provider, payload)

    if repository is not None:
        repository.save(result, reference=reference, file_data=file_data)

    if result.success:
        return envelope(True, "Payment verified", result.to_dict())

    logger.info("Verification rejected", extra={
        "provider": provider,
        "error_kind": result.error_kind.value if result.error_kind else None,
    })
    status_code = STATUS_CODES.get(result.error_kind, 400)
    return JSONResponse(
        status_code=status_code,
        content=envelope(False, result.error, result.to_dict()),
    )


@router.get("/providers")
def list_providers():
    """Supported providers with their input requirements."""
    providers = []
    for provider, profile in PROVIDERS.items():
        providers.append({
            "code": provider.value,
            "name": profile.display_name,
            "requires": profile.contract.describe(),
            "requiresAccountSuffix": profile.contract.requires_suffix,
            "acceptsFile": profile.contract.accepts_file,
            "mandatoryFields": [to_camel(name) for name in profile.mandatory_fields],
        })
    return envelope(True, f"{len(providers)} providers supported", providers)
