"""
Tests for the HTTP surface.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from payverify.main import app
from payverify.models.verification import FileKind, Provider, VerificationResult
from payverify.routers.verify import get_repository, get_verification_service
from payverify.utils.errors import ErrorKind


VERIFIED = VerificationResult(
    success=True,
    provider=Provider.ABYSSINIA,
    payer="Abebe Kebede",
    receiver="Almaz Tadesse",
    receiver_account="9876****4321",
    amount=Decimal("1000.00"),
    date=datetime(2024, 2, 1, 10, 30),
    reference="FT24032ABCDE",
)


@pytest.fixture
def service():
    return Mock()


@pytest.fixture
def repository():
    return Mock()


@pytest.fixture
def client(service, repository):
    app.dependency_overrides[get_verification_service] = lambda: service
    app.dependency_overrides[get_repository] = lambda: repository
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_root_and_health(self, client):
        """Root and health endpoints respond."""
        assert client.get("/").json()["status"] == "running"
        assert client.get("/health").json() == {"status": "healthy"}


class TestVerifyEndpoint:

    def test_verified(self, client, service, repository):
        """A verified payment returns 200 with the result envelope."""
        service.verify.return_value = VERIFIED

        response = client.post("/verify", data={
            "provider": "ABYSSINIA",
            "reference": "FT24032ABCDE",
            "account_suffix": "9999",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["reference"] == "FT24032ABCDE"
        assert body["data"]["date"] == "2024-02-01T10:30:00"
        assert body["timestamp"].endswith("+00:00")

        provider, payload = service.verify.call_args.args
        assert provider == "ABYSSINIA"
        assert payload == {"reference": "FT24032ABCDE", "account_suffix": "9999"}
        repository.save.assert_called_once_with(VERIFIED, reference="FT24032ABCDE", file_data=None)

    def test_file_upload_forwarded(self, client, service, repository):
        """Uploaded PDFs are forwarded and hashed for storage."""
        service.verify.return_value = VERIFIED

        response = client.post(
            "/verify",
            data={"provider": "MPESA"},
            files={"file": ("receipt.pdf", b"%PDF-1.4 receipt", "application/pdf")},
        )

        assert response.status_code == 200
        _, payload = service.verify.call_args.args
        assert payload["file_bytes"] == b"%PDF-1.4 receipt"
        assert payload["file_kind"] == FileKind.PDF
        assert repository.save.call_args.kwargs["file_data"] == b"%PDF-1.4 receipt"

    def test_image_upload_kind(self, client, service):
        """Image uploads are marked as images."""
        service.verify.return_value = VERIFIED

        client.post(
            "/verify",
            data={"provider": "MPESA"},
            files={"file": ("receipt.png", b"\x89PNG", "image/png")},
        )

        _, payload = service.verify.call_args.args
        assert payload["file_kind"] == FileKind.IMAGE

    def test_rejects_unsupported_upload_type(self, client, service):
        """Unsupported upload types are rejected before verification."""
        response = client.post(
            "/verify",
            data={"provider": "MPESA"},
            files={"file": ("receipt.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        service.verify.assert_not_called()

    @pytest.mark.parametrize("kind,status_code", [
        (ErrorKind.MISSING_INPUT, 400),
        (ErrorKind.UNSUPPORTED_PROVIDER, 400),
        (ErrorKind.REFERENCE_NOT_FOUND, 400),
        (ErrorKind.DOCUMENT_NOT_AVAILABLE, 404),
        (ErrorKind.FIELDS_INCOMPLETE, 422),
        (ErrorKind.EXTRACTION_FAILED, 422),
        (ErrorKind.TRANSPORT_ERROR, 502),
    ])
    def test_failure_status_codes(self, client, service, kind, status_code):
        """Each error kind maps to its HTTP status."""
        service.verify.return_value = VerificationResult.failure(kind, "details", provider=Provider.CBE)

        response = client.post("/verify", data={"provider": "CBE", "reference": "FT26036ABCDE"})

        assert response.status_code == status_code
        body = response.json()
        assert body["success"] is False
        assert body["message"] == f"{kind.value}: details"
        assert body["data"]["errorKind"] == kind.value

    def test_failures_are_persisted_too(self, client, service, repository):
        """Failed verifications are stored as well."""
        failed = VerificationResult.failure(ErrorKind.DOCUMENT_NOT_AVAILABLE, "no receipt", provider=Provider.DASHEN)
        service.verify.return_value = failed

        client.post("/verify", data={"provider": "DASHEN", "reference": "091DSTR2502100ABC"})

        repository.save.assert_called_once_with(failed, reference="091DSTR2502100ABC", file_data=None)

    def test_works_without_store(self, service):
        """Verification works when no store is configured."""
        service.verify.return_value = VERIFIED
        app.dependency_overrides[get_verification_service] = lambda: service
        app.dependency_overrides[get_repository] = lambda: None
        try:
            response = TestClient(app).post("/verify", data={"provider": "ABYSSINIA", "reference": "FT24032ABCDE"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200


class TestProvidersEndpoint:

    def test_lists_catalogue(self, client):
        """The provider catalogue lists every provider's requirements."""
        response = client.get("/providers")

        assert response.status_code == 200
        providers = {item["code"]: item for item in response.json()["data"]}
        assert set(providers) == {p.value for p in Provider}
        assert providers["CBE"]["requiresAccountSuffix"] is True
        assert providers["TELEBIRR"]["acceptsFile"] is False
        assert providers["ABYSSINIA"]["mandatoryFields"] == [
            "receiver", "receiverAccount", "reference", "amount", "date",
        ]
