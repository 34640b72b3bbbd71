"""Tests for whole-package validation."""

import asyncio

from sqlalchemy.orm import Session

from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.packaging.assembler import assemble_package
from ectd_packager.packaging.types import (
    MissingRequiredNode,
    PackageFile,
    PackageManifest,
    PendingDocument,
    ReadinessCheck,
)
from ectd_packager.validation.package_validator import (
    DEFAULT_FILE_CHECKS,
    build_checks_list,
    format_validation_report,
    get_check_params,
    get_severity_for_check,
    serialize_validation_report,
    validate_package,
    validate_package_level,
)
from ectd_packager.validation.types import PackageValidationOptions


def _file(source_path: str, file_name: str, code: str = "16.1") -> PackageFile:
    return PackageFile(
        source_document_id=f"doc-{file_name}",
        source_path=source_path,
        target_path=f"m5/abc-123/{code.replace('.', '-')}/{file_name}",
        node_code=code,
        node_title="Protocol",
        file_name=file_name,
        version=1,
    )


def _checks(issues) -> list[str]:
    return [issue.check for issue in issues]


class TestChecksList:
    """Test check selection."""

    def test_additional_and_skipped_checks(self):
        """Test additions are appended once and skips are removed."""
        options = PackageValidationOptions(
            additional_checks=["checkPageSize", "checkFileSize"],
            skip_checks=["checkFileNaming"],
        )
        checks = build_checks_list(options)

        assert checks[-1] == "checkPageSize"
        assert checks.count("checkFileSize") == 1
        assert "checkFileNaming" not in checks
        assert len(checks) == len(DEFAULT_FILE_CHECKS)

    def test_severity_mapping(self):
        """Test advisory checks map to warnings and the rest to errors."""
        assert get_severity_for_check("checkPageSize") == ValidationSeverity.WARNING
        assert get_severity_for_check("checkPdfVersion") == ValidationSeverity.ERROR


class TestPackageLevel:
    """Test findings that concern the package as a whole."""

    def test_empty_package(self):
        """Test an empty manifest is an error and a blank study number a warning."""
        manifest = PackageManifest(study_id="s", study_number=" ", files=[], readiness=ReadinessCheck(ready=False))
        issues = validate_package_level(manifest)

        assert _checks(issues) == ["package-empty", "study-number"]
        assert issues[0].severity == ValidationSeverity.ERROR
        assert issues[1].severity == ValidationSeverity.WARNING

    def test_readiness_findings(self):
        """Test missing slots, pending documents and annotations become issues."""
        readiness = ReadinessCheck(
            ready=False,
            missing_required=[MissingRequiredNode(node_id="n1", code="16.1", title="Protocol")],
            pending_approval=[
                PendingDocument(
                    document_id="d2",
                    file_name="Listing.pdf",
                    status="IN_REVIEW",
                    node_code="16.2",
                    node_title="Patient Data Listings",
                )
            ],
            validation_errors=2,
            unresolved_annotations=1,
        )
        manifest = PackageManifest(
            study_id="s",
            study_number="ABC-123",
            files=[_file("a.pdf", "Report.pdf", "16.2"), _file("b.pdf", "report.pdf", "16.3")],
            readiness=readiness,
        )

        issues = {issue.check: issue for issue in validate_package_level(manifest)}

        assert issues["missing-required"].message == "Required document missing: 16.1 - Protocol"
        assert issues["pending-documents"].severity == ValidationSeverity.INFO
        assert issues["document-validation-errors"].message == "2 document validation error(s) exist"
        assert issues["unresolved-annotations"].severity == ValidationSeverity.WARNING
        assert issues["duplicate-filenames"].details == {"duplicates": ["report.pdf"]}


class TestValidatePackage:
    """Test end-to-end package validation."""

    def test_approved_package_is_valid(self, session: Session, storage, approved_protocol):
        """Test a package of generated PDFs passes every default check."""
        manifest = assemble_package(session, approved_protocol.study_id)

        report = asyncio.run(validate_package(manifest, storage=storage))

        assert report.valid is True
        assert report.ready is True
        assert report.summary.total_files == 1
        assert report.summary.error_count == 0
        assert report.file_results[0].file_path == "m5/abc-123/16-1/study-protocol.pdf"

    def test_file_size_limit_follows_settings(self, session: Session, storage, approved_protocol, monkeypatch):
        """Test the configured maximum file size drives the size check."""
        from ectd_packager.config import get_settings

        monkeypatch.setenv("MAX_FILE_SIZE_MB", "0")
        get_settings.cache_clear()
        assert get_check_params("checkFileSize") == {"maxMB": 0}

        manifest = assemble_package(session, approved_protocol.study_id)
        report = asyncio.run(validate_package(manifest, storage=storage))

        assert report.valid is False
        assert _checks(report.file_results[0].issues) == ["checkFileSize"]
        assert "exceeds maximum of 0MB" in report.file_results[0].issues[0].message

    def test_missing_file(self, storage):
        """Test an unreadable source file is reported and its checks skipped."""
        manifest = PackageManifest(
            study_id="s",
            study_number="ABC-123",
            files=[_file("source/missing.pdf", "protocol.pdf")],
            readiness=ReadinessCheck(ready=True),
        )

        report = asyncio.run(validate_package(manifest, storage=storage))

        assert report.valid is False
        assert report.ready is False
        assert report.summary.inaccessible_files == 1
        assert _checks(report.file_results[0].issues) == ["file-access"]

    def test_bad_file_name_is_an_error(self, storage, write_pdf):
        """Test naming violations in the stored file fail the package."""
        path = write_pdf("source/Study Protocol.pdf")
        manifest = PackageManifest(
            study_id="s",
            study_number="ABC-123",
            files=[_file(path, "study-protocol.pdf")],
            readiness=ReadinessCheck(ready=True),
        )

        report = asyncio.run(validate_package(manifest, storage=storage))

        assert report.valid is False
        assert _checks(report.all_issues) == ["checkFileNaming"]

    def test_skip_file_access_still_fails_checks(self, storage):
        """Test skipping the access check lets the individual checks report."""
        manifest = PackageManifest(
            study_id="s",
            study_number="ABC-123",
            files=[_file("source/missing.pdf", "protocol.pdf")],
            readiness=ReadinessCheck(ready=True),
        )

        report = asyncio.run(
            validate_package(manifest, PackageValidationOptions(skip_file_access=True), storage)
        )

        assert "file-access" not in _checks(report.all_issues)
        assert "checkFileSize" in _checks(report.all_issues)

    def test_serialization_and_text_report(self, session: Session, storage, approved_protocol):
        """Test the JSON body uses camelCase keys and the text report has a status line."""
        manifest = assemble_package(session, approved_protocol.study_id)
        report = asyncio.run(validate_package(manifest, storage=storage))

        data = serialize_validation_report(report)
        assert data["studyNumber"] == "ABC-123"
        assert data["issueCount"] == {"total": 0, "errors": 0, "warnings": 0, "info": 0}
        assert "sourcePath" not in data["fileResults"][0]
        assert data["fileResults"][0]["filePath"] == "m5/abc-123/16-1/study-protocol.pdf"

        text = format_validation_report(report)
        assert "Status: VALID | READY" in text
        assert "No issues found." in text
