"""Tests for presigned download/upload URLs and the entitlement gate."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from bson import ObjectId

from app.models.entitlement import EntitlementKind
from app.services import entitlements
from app.storage.r2 import StorageNotConfiguredError

SIGNED = "https://r2.example.com/signed?X-Amz-Signature=abc"


@pytest.fixture
def paid_pdf(pdf_collection):
    pdf = {"_id": ObjectId(), "r2Key": "pdfs/paid.pdf", "isPaid": True, "price": 99}
    pdf_collection.find_one.return_value = pdf
    return pdf


@pytest.fixture
def free_pdf(pdf_collection):
    pdf = {"_id": ObjectId(), "r2Key": "pdfs/free.pdf", "isPaid": False, "price": 0}
    pdf_collection.find_one.return_value = pdf
    return pdf


@pytest.fixture
def mock_download():
    with patch("app.storage.r2.get_download_signed_url", return_value=SIGNED) as mocked:
        yield mocked


@pytest.fixture
def mock_upload():
    with patch("app.storage.r2.get_upload_signed_url", return_value=SIGNED) as mocked:
        yield mocked


def _download(client, headers, r2_key):
    return client.post(
        "/v1/pdfs/signed-url", json={"type": "download", "r2Key": r2_key}, headers=headers
    )


class TestDownload:
    def test_free_pdf(self, client, pdf_collection, free_pdf, mock_download, auth_headers_user):
        response = _download(client, auth_headers_user, "pdfs/free.pdf")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "type": "download",
            "url": SIGNED,
            "expiresIn": 300,
        }
        mock_download.assert_called_once_with("pdfs/free.pdf", 300)
        pdf_collection.find_one.assert_called_once()
        assert pdf_collection.find_one.call_args.args[0] == {"r2Key": "pdfs/free.pdf"}
        pdf_collection.update_one.assert_called_once_with(
            {"_id": free_pdf["_id"]}, {"$inc": {"downloads": 1}}
        )

    def test_paid_pdf_without_entitlement(
        self, client, pdf_collection, paid_pdf, mock_download, auth_headers_user
    ):
        response = _download(client, auth_headers_user, "pdfs/paid.pdf")

        assert response.status_code == 403
        data = response.json()
        assert data["error_code"] == "FORBIDDEN"
        assert data["error"] == "Access denied. Purchase required."
        mock_download.assert_not_called()
        pdf_collection.update_one.assert_not_called()

    def test_paid_pdf_with_entitlement(
        self, client, db, paid_pdf, mock_download, test_user, auth_headers_user
    ):
        entitlements.grant(db, test_user.id, EntitlementKind.PDF, str(paid_pdf["_id"]))

        response = _download(client, auth_headers_user, "pdfs/paid.pdf")

        assert response.status_code == 200
        assert response.json()["url"] == SIGNED

    def test_entitlement_for_other_pdf_does_not_unlock(
        self, client, db, paid_pdf, mock_download, test_user, auth_headers_user
    ):
        entitlements.grant(db, test_user.id, EntitlementKind.PDF, str(ObjectId()))

        response = _download(client, auth_headers_user, "pdfs/paid.pdf")

        assert response.status_code == 403

    def test_expired_entitlement(
        self, client, db, paid_pdf, mock_download, test_user, auth_headers_user
    ):
        entitlements.grant(
            db,
            test_user.id,
            EntitlementKind.PDF,
            str(paid_pdf["_id"]),
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )

        response = _download(client, auth_headers_user, "pdfs/paid.pdf")

        assert response.status_code == 403

    def test_revoked_entitlement(
        self, client, db, paid_pdf, mock_download, test_user, auth_headers_user
    ):
        ref_id = str(paid_pdf["_id"])
        entitlements.grant(db, test_user.id, EntitlementKind.PDF, ref_id)
        entitlements.revoke(db, test_user.id, EntitlementKind.PDF, ref_id)

        response = _download(client, auth_headers_user, "pdfs/paid.pdf")

        assert response.status_code == 403

    def test_unknown_key(self, client, pdf_collection, mock_download, auth_headers_user):
        pdf_collection.find_one.return_value = None

        response = _download(client, auth_headers_user, "pdfs/nope.pdf")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"
        mock_download.assert_not_called()

    def test_requires_login(self, client, free_pdf, mock_download):
        response = client.post(
            "/v1/pdfs/signed-url", json={"type": "download", "r2Key": "pdfs/free.pdf"}
        )

        assert response.status_code == 401
        mock_download.assert_not_called()

    def test_storage_not_configured(self, client, free_pdf, auth_headers_user):
        with patch(
            "app.storage.r2.get_download_signed_url",
            side_effect=StorageNotConfiguredError("R2 credentials are not configured"),
        ):
            response = _download(client, auth_headers_user, "pdfs/free.pdf")

        assert response.status_code == 503
        assert response.json()["error_code"] == "STORAGE_UNAVAILABLE"


class TestUpload:
    def test_admin_upload(self, client, pdf_collection, mock_upload, auth_headers_admin):
        response = client.post(
            "/v1/pdfs/signed-url",
            json={"type": "upload", "r2Key": "pdfs/new.pdf"},
            headers=auth_headers_admin,
        )

        assert response.status_code == 200
        assert response.json()["type"] == "upload"
        mock_upload.assert_called_once_with("pdfs/new.pdf", 300, content_type="application/pdf")
        pdf_collection.find_one.assert_not_called()

    def test_custom_content_type(self, client, mock_upload, auth_headers_admin):
        client.post(
            "/v1/pdfs/signed-url",
            json={"type": "upload", "r2Key": "covers/a.png", "contentType": "image/png"},
            headers=auth_headers_admin,
        )
        assert mock_upload.call_args.kwargs["content_type"] == "image/png"

    def test_user_cannot_upload(self, client, mock_upload, auth_headers_user):
        response = client.post(
            "/v1/pdfs/signed-url",
            json={"type": "upload", "r2Key": "pdfs/new.pdf"},
            headers=auth_headers_user,
        )

        assert response.status_code == 403
        mock_upload.assert_not_called()


class TestRequestValidation:
    @pytest.mark.parametrize(
        "body",
        [{}, {"type": "download"}, {"r2Key": "pdfs/a.pdf"}, {"type": "", "r2Key": "pdfs/a.pdf"}],
    )
    def test_missing_fields(self, client, auth_headers_user, body):
        response = client.post("/v1/pdfs/signed-url", json=body, headers=auth_headers_user)

        assert response.status_code == 400
        assert response.json()["error_code"] == "MISSING_FIELDS"

    def test_invalid_type(self, client, auth_headers_user):
        response = client.post(
            "/v1/pdfs/signed-url",
            json={"type": "delete", "r2Key": "pdfs/a.pdf"},
            headers=auth_headers_user,
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_TYPE"
