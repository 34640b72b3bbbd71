"""Tests for API routes."""

import io
import zipfile
from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from ectd_packager.models import DocumentStatus, Study
from ectd_packager.routers.packages import download_file_name
from ectd_packager.validation.rules import DEFAULT_VALIDATION_RULES, seed_validation_rules

UNKNOWN_ID = "00000000-0000-0000-0000-000000000000"


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_check(self, client: TestClient):
        """Test GET /health returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "connected"}


class TestReadinessEndpoints:
    """Test readiness and summary endpoints."""

    def test_readiness_not_ready(self, client: TestClient, sample_study: Study):
        """Test GET /studies/{id}/package lists the missing required slot."""
        response = client.get(f"/studies/{sample_study.id}/package")

        assert response.status_code == 200
        data = response.json()
        assert data["studyNumber"] == "ABC-123"
        assert data["sponsor"] == "Acme Pharma"
        assert data["readiness"]["ready"] is False
        assert data["readiness"]["missingRequired"][0]["code"] == "16.1"

    def test_readiness_ready(self, client: TestClient, approved_protocol):
        """Test a study with its required document approved is ready."""
        response = client.get(f"/studies/{approved_protocol.study_id}/package")

        assert response.status_code == 200
        assert response.json()["readiness"]["ready"] is True
        assert response.json()["readiness"]["totalFiles"] == 1

    def test_summary(self, client: TestClient, approved_protocol):
        """Test GET /studies/{id}/package/summary counts nodes and documents."""
        response = client.get(f"/studies/{approved_protocol.study_id}/package/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["totalNodes"] == 3
        assert data["requiredNodes"] == 1
        assert data["documentsReady"] == 1

    def test_invalid_study_id(self, client: TestClient):
        """Test a malformed study id is a 400."""
        response = client.get("/studies/not-a-uuid/package")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid study ID format"
        assert response.json()["error_type"] == "validation"

    def test_unknown_study(self, client: TestClient):
        """Test an unknown study is a 404."""
        response = client.get(f"/studies/{UNKNOWN_ID}/package")

        assert response.status_code == 404
        assert response.json()["detail"] == "Study not found"
        assert response.json()["error_type"] == "not_found"
        assert "error_id" in response.json()

    def test_study_without_template(self, client: TestClient, session: Session):
        """Test a study with no active template is a 400."""
        study = Study(study_number="NO-TPL", sponsor="Acme Pharma")
        session.add(study)
        session.commit()

        response = client.get(f"/studies/{study.id}/package")

        assert response.status_code == 400
        assert response.json()["detail"] == "Study has no active template"


class TestExportEndpoints:
    """Test export and download."""

    def test_export_and_download(self, client: TestClient, approved_protocol):
        """Test POST then GET of the returned download URL yields the zip."""
        response = client.post(
            f"/studies/{approved_protocol.study_id}/package",
            json={"applicationNumber": "IND-123456", "productName": "Examplinib"},
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["fileCount"] == 1
        assert data["sequenceNumber"] == "0000"
        assert data["downloadUrl"] == f"/studies/{approved_protocol.study_id}/package/{data['packageId']}"
        assert data["validation"]["xmlValid"] is True
        assert data["validation"]["packageReport"]["valid"] is True

        download = client.get(data["downloadUrl"])

        assert download.status_code == 200
        assert download.headers["content-type"] == "application/zip"
        assert "ABC-123_ectd_package_" in download.headers["content-disposition"]
        assert download.headers["cache-control"] == "private, no-cache, no-store, must-revalidate"
        with zipfile.ZipFile(io.BytesIO(download.content)) as archive:
            assert "index.xml" in archive.namelist()
            assert "IND-123456" in archive.read("us-regional.xml").decode("utf-8")

    def test_export_without_body(self, client: TestClient, approved_protocol):
        """Test the request body is optional."""
        response = client.post(f"/studies/{approved_protocol.study_id}/package")
        assert response.status_code == 200

    def test_export_not_ready(self, client: TestClient, sample_study: Study):
        """Test a failed export answers 422 with its message and package id."""
        response = client.post(f"/studies/{sample_study.id}/package", json={})

        assert response.status_code == 422
        data = response.json()
        assert data["detail"] == "Package not ready: 1 required document(s) missing"
        assert data["error_type"] == "export_failed"
        assert "packageId" in data
        assert "error_id" in data

    def test_export_rejects_bad_submission_type(self, client: TestClient, approved_protocol):
        """Test request validation errors list the offending field."""
        response = client.post(
            f"/studies/{approved_protocol.study_id}/package",
            json={"submissionType": "resubmission"},
        )

        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"
        assert response.json()["errors"][0]["field"].endswith("submissionType")

    def test_download_unknown_package(self, client: TestClient, approved_protocol):
        """Test an unknown package id is a 404."""
        response = client.get(f"/studies/{approved_protocol.study_id}/package/{UNKNOWN_ID}")

        assert response.status_code == 404
        assert response.json()["detail"] == "Package not found or has expired"

    def test_download_invalid_package_id(self, client: TestClient, approved_protocol):
        """Test a malformed package id is a 400."""
        response = client.get(f"/studies/{approved_protocol.study_id}/package/latest")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid package ID format"

    def test_download_file_name(self):
        """Test unsafe characters are replaced and the date appended."""
        assert download_file_name("ABC/123 v2", datetime(2026, 1, 31)) == "ABC_123_v2_ectd_package_20260131.zip"


class TestValidationEndpoints:
    """Test package and document validation."""

    def test_validate_study_package(self, client: TestClient, approved_protocol):
        """Test POST /studies/{id}/validation returns a camelCase report."""
        response = client.post(f"/studies/{approved_protocol.study_id}/validation")

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["ready"] is True
        assert data["summary"]["totalFiles"] == 1
        assert data["issueCount"]["errors"] == 0

    def test_validate_study_package_with_drafts(self, client: TestClient, approved_protocol, add_document):
        """Test drafts are validated on request and missing files reported."""
        add_document("16.2", "source/missing.pdf", file_name="Missing.pdf", status=DocumentStatus.DRAFT)

        response = client.post(
            f"/studies/{approved_protocol.study_id}/validation",
            json={"includeDrafts": True},
        )

        data = response.json()
        assert data["valid"] is False
        assert data["summary"]["inaccessibleFiles"] == 1

    def test_validate_document(self, client: TestClient, session: Session, add_document, write_pdf):
        """Test POST /documents/{id}/validation runs every active rule."""
        seed_validation_rules(session)
        path = write_pdf("source/listing.pdf", toc=[[1, "Listing", 1]])
        document = add_document("16.2", path, status=DocumentStatus.DRAFT)

        response = client.post(f"/documents/{document.id}/validation")

        assert response.status_code == 200
        data = response.json()
        assert len(data["results"]) == len(DEFAULT_VALIDATION_RULES)
        assert data["errors"] == 0
        assert data["metadata"]["pdfVersion"] == "1.7"

        session.expire_all()
        session.refresh(document)
        assert document.status == DocumentStatus.PROCESSED

    def test_validate_unknown_document(self, client: TestClient):
        """Test an unknown document is a 404."""
        response = client.post(f"/documents/{UNKNOWN_ID}/validation")

        assert response.status_code == 404
        assert response.json()["detail"] == "Document not found"
