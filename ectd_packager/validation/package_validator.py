"""
Package-level validation.

Runs the per-file compliance checks over every manifest entry and adds the
package-wide findings (missing required slots, duplicates, pending
approvals, ...). Nothing here raises for a bad file: every problem becomes
a ValidationIssue.
"""

import logging
from collections import Counter
from typing import Any

from ectd_packager.config import get_settings
from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.packaging.types import PackageFile, PackageManifest
from ectd_packager.services.storage import LocalStorage, get_storage
from ectd_packager.validation.checks import get_check_function
from ectd_packager.validation.types import (
    CrossReferenceResult,
    FileValidationResult,
    PackageValidationOptions,
    PackageValidationReport,
    PackageValidationSummary,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

DEFAULT_FILE_CHECKS = [
    "checkFileSize",
    "checkPdfParseable",
    "checkPdfVersion",
    "checkNotEncrypted",
    "checkFileNaming",
    "checkNoJavaScript",
]

DEFAULT_CHECK_PARAMS: dict[str, dict[str, Any]] = {
    "checkPdfParseable": {},
    "checkPdfVersion": {"allowedVersions": ["1.4", "1.5", "1.6", "1.7"]},
    "checkNotEncrypted": {},
    "checkFileNaming": {"maxLength": 64, "requireLowercase": True},
    "checkNoJavaScript": {},
    "checkPageSize": {"allowedSizes": ["Letter", "A4", "Letter-Landscape", "A4-Landscape"]},
    "checkBookmarkDepth": {"maxDepth": 4},
    "checkBookmarksExist": {"required": False},
    "checkExternalHyperlinks": {"allowExternal": False},
    "checkFontsEmbedded": {},
}

# Advisory checks; everything else fails as an ERROR
WARNING_CHECKS = {
    "checkBookmarksExist",
    "checkPageSize",
    "checkExternalHyperlinks",
    "checkPdfACompliance",
}


def get_check_params(check_name: str) -> dict[str, Any]:
    """Default parameters for a check; the file-size ceiling comes from settings."""
    params = dict(DEFAULT_CHECK_PARAMS.get(check_name, {}))
    if check_name == "checkFileSize":
        params["maxMB"] = get_settings().max_file_size_mb
    return params


def get_severity_for_check(check_name: str) -> ValidationSeverity:
    return ValidationSeverity.WARNING if check_name in WARNING_CHECKS else ValidationSeverity.ERROR


def build_checks_list(options: PackageValidationOptions) -> list[str]:
    checks = list(DEFAULT_FILE_CHECKS)
    for check in options.additional_checks:
        if check not in checks:
            checks.append(check)
    return [check for check in checks if check not in options.skip_checks]


def _count(issues: list[ValidationIssue], severity: ValidationSeverity) -> int:
    return sum(1 for issue in issues if issue.severity == severity)


async def validate_file(
    file: PackageFile,
    checks: list[str],
    options: PackageValidationOptions,
    storage: LocalStorage,
) -> FileValidationResult:
    issues: list[ValidationIssue] = []
    accessible = True
    full_path = storage.get_full_path(file.source_path)

    if not options.skip_file_access and not full_path.is_file():
        accessible = False
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                check="file-access",
                message=f"File not accessible: {file.source_path}",
                file_path=file.target_path,
                document_id=file.source_document_id,
            )
        )

    if accessible:
        for check_name in checks:
            check_fn = get_check_function(check_name)
            if check_fn is None:
                logger.warning(f"[PackageValidator] Unknown check function: {check_name}")
                continue

            try:
                result = await check_fn(str(full_path), get_check_params(check_name))
            except Exception as e:
                logger.error(f"[PackageValidator] {check_name} raised for {file.target_path}: {e}")
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.ERROR,
                        check=check_name,
                        message=f"Check failed: {e}",
                        file_path=file.target_path,
                        document_id=file.source_document_id,
                    )
                )
                continue

            if not result.passed:
                issues.append(
                    ValidationIssue(
                        severity=get_severity_for_check(check_name),
                        check=check_name,
                        message=result.message,
                        file_path=file.target_path,
                        document_id=file.source_document_id,
                        details=result.details,
                    )
                )

    return FileValidationResult(
        file_path=file.target_path,
        document_id=file.source_document_id,
        source_path=file.source_path,
        accessible=accessible,
        issues=issues,
        error_count=_count(issues, ValidationSeverity.ERROR),
        warning_count=_count(issues, ValidationSeverity.WARNING),
    )


async def validate_cross_references(manifest: PackageManifest) -> CrossReferenceResult:
    """
    Placeholder that always reports zero links.

    Link resolution across the package lives in the hyperlink report
    (packaging.hyperlinks.generate_hyperlink_report), which the exporter
    writes next to every package.
    """
    return CrossReferenceResult()


def validate_package_level(manifest: PackageManifest) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    readiness = manifest.readiness

    if not manifest.files:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                check="package-empty",
                message="Package contains no files",
            )
        )

    for missing in readiness.missing_required:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                check="missing-required",
                message=f"Required document missing: {missing.code} - {missing.title}",
                details={"nodeCode": missing.code, "nodeTitle": missing.title, "nodeId": missing.node_id},
            )
        )

    if readiness.pending_approval:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.INFO,
                check="pending-documents",
                message=f"{len(readiness.pending_approval)} document(s) pending approval",
                details={
                    "pending": [
                        {"fileName": p.file_name, "status": p.status, "nodeCode": p.node_code}
                        for p in readiness.pending_approval
                    ]
                },
            )
        )

    if readiness.validation_errors > 0:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.ERROR,
                check="document-validation-errors",
                message=f"{readiness.validation_errors} document validation error(s) exist",
            )
        )

    if readiness.unresolved_annotations > 0:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                check="unresolved-annotations",
                message=f"{readiness.unresolved_annotations} unresolved correction annotation(s)",
            )
        )

    name_counts = Counter(file.file_name.lower() for file in manifest.files)
    duplicates = [name for name, count in name_counts.items() if count > 1]
    if duplicates:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                check="duplicate-filenames",
                message=f"Duplicate file names detected: {', '.join(duplicates)}",
                details={"duplicates": duplicates},
            )
        )

    if not manifest.study_number or not manifest.study_number.strip():
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                check="study-number",
                message="Study number is missing or empty",
            )
        )

    return issues


def _summarize(file_results: list[FileValidationResult], all_issues: list[ValidationIssue]) -> PackageValidationSummary:
    inaccessible = sum(1 for result in file_results if not result.accessible)
    return PackageValidationSummary(
        total_files=len(file_results),
        validated_files=len(file_results) - inaccessible,
        inaccessible_files=inaccessible,
        error_count=_count(all_issues, ValidationSeverity.ERROR),
        warning_count=_count(all_issues, ValidationSeverity.WARNING),
        info_count=_count(all_issues, ValidationSeverity.INFO),
    )


async def validate_package(
    manifest: PackageManifest,
    options: PackageValidationOptions | None = None,
    storage: LocalStorage | None = None,
) -> PackageValidationReport:
    """
    Validate every file plus the package as a whole.

    `valid` means no ERROR issues; `ready` additionally requires the
    manifest's own readiness check to have passed.
    """
    options = options or PackageValidationOptions()
    storage = storage or get_storage()
    checks = build_checks_list(options)

    file_results: list[FileValidationResult] = []
    all_issues: list[ValidationIssue] = []

    # Files run one after another to bound open PDF handles
    for file in manifest.files:
        result = await validate_file(file, checks, options, storage)
        file_results.append(result)
        all_issues.extend(result.issues)

    if options.skip_cross_references:
        cross_references = CrossReferenceResult()
    else:
        cross_references = await validate_cross_references(manifest)
    all_issues.extend(cross_references.issues)

    package_issues = validate_package_level(manifest)
    all_issues.extend(package_issues)

    summary = _summarize(file_results, all_issues)
    valid = summary.error_count == 0

    logger.info(
        f"[PackageValidator] Study {manifest.study_number}: {summary.error_count} error(s), "
        f"{summary.warning_count} warning(s) across {summary.total_files} file(s)"
    )

    return PackageValidationReport(
        valid=valid,
        ready=valid and manifest.readiness.ready,
        study_id=manifest.study_id,
        study_number=manifest.study_number,
        summary=summary,
        file_results=file_results,
        cross_references=cross_references,
        package_issues=package_issues,
        all_issues=all_issues,
    )


def format_validation_report(report: PackageValidationReport) -> str:
    """Plain-text report for logs and QC sign-off."""
    lines = [
        "=" * 60,
        "eCTD Package Validation Report",
        "=" * 60,
        "",
        f"Study: {report.study_number}",
        f"Validated: {report.validated_at.isoformat()}",
        f"Status: {'VALID' if report.valid else 'INVALID'} | {'READY' if report.ready else 'NOT READY'}",
        "",
        "-" * 40,
        "Summary",
        "-" * 40,
        f"Total Files: {report.summary.total_files}",
        f"Validated: {report.summary.validated_files}",
        f"Inaccessible: {report.summary.inaccessible_files}",
        f"Errors: {report.summary.error_count}",
        f"Warnings: {report.summary.warning_count}",
        f"Info: {report.summary.info_count}",
        "",
    ]

    if report.all_issues:
        lines += ["-" * 40, "Issues", "-" * 40]
        sections = (
            (ValidationSeverity.ERROR, "ERRORS:", "✗"),
            (ValidationSeverity.WARNING, "WARNINGS:", "⚠"),
            (ValidationSeverity.INFO, "INFO:", "ℹ"),
        )
        for severity, heading, marker in sections:
            issues = [issue for issue in report.all_issues if issue.severity == severity]
            if not issues:
                continue
            lines += ["", heading]
            for issue in issues:
                location = ""
                if issue.file_path and severity != ValidationSeverity.INFO:
                    location = f" [{issue.file_path}]"
                lines.append(f"  {marker} {issue.message}{location}")
    else:
        lines.append("No issues found.")

    lines += ["", "=" * 60]
    return "\n".join(lines)


def serialize_validation_report(report: PackageValidationReport) -> dict[str, Any]:
    """JSON body for API responses; file results leave out the store path."""
    data = report.model_dump(
        by_alias=True,
        mode="json",
        include={"valid", "ready", "validated_at", "study_id", "study_number", "summary", "cross_references", "package_issues"},
    )
    data["fileResults"] = [
        result.model_dump(by_alias=True, mode="json", exclude={"source_path"}) for result in report.file_results
    ]
    data["issueCount"] = {
        "total": len(report.all_issues),
        "errors": report.summary.error_count,
        "warnings": report.summary.warning_count,
        "info": report.summary.info_count,
    }
    return data
