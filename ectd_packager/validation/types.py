"""
Validation types.

Check functions return plain `CheckResult` dataclasses; everything that ends
up in a report or API response is a CamelModel.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import Field

from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.packaging.types import LeafEntry, PackageFile
from ectd_packager.schemas.common import CamelModel


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CheckResult:
    passed: bool
    message: str
    details: dict[str, Any] | None = None


# (absolute file path, params) -> CheckResult
CheckFunction = Callable[[str, dict[str, Any]], Awaitable[CheckResult]]


# ============ Package validation ============


class ValidationIssue(CamelModel):
    severity: ValidationSeverity
    check: str
    message: str
    file_path: str | None = None
    document_id: str | None = None
    details: dict[str, Any] | None = None


class FileValidationResult(CamelModel):
    file_path: str  # package target path
    document_id: str
    source_path: str
    accessible: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0


class CrossReferenceResult(CamelModel):
    total_links: int = 0
    internal_links: int = 0
    external_links: int = 0
    broken_links: list[str] = Field(default_factory=list)
    issues: list[ValidationIssue] = Field(default_factory=list)


class PackageValidationSummary(CamelModel):
    total_files: int = 0
    validated_files: int = 0
    inaccessible_files: int = 0
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0


class PackageValidationReport(CamelModel):
    valid: bool
    ready: bool
    validated_at: datetime = Field(default_factory=_now)
    study_id: str
    study_number: str
    summary: PackageValidationSummary
    file_results: list[FileValidationResult] = Field(default_factory=list)
    cross_references: CrossReferenceResult | None = None
    package_issues: list[ValidationIssue] = Field(default_factory=list)
    all_issues: list[ValidationIssue] = Field(default_factory=list)


@dataclass
class PackageValidationOptions:
    # Skip per-file existence and content checks
    skip_file_access: bool = False
    skip_cross_references: bool = False
    # Check names run on top of the defaults
    additional_checks: list[str] = field(default_factory=list)
    # Check names removed from the defaults
    skip_checks: list[str] = field(default_factory=list)


# ============ XML validation ============

XmlType = Literal["index", "us-regional", "unknown"]


class XmlValidationIssue(CamelModel):
    severity: ValidationSeverity
    rule: str
    message: str
    element_path: str | None = None
    line_number: int | None = None


class XmlMetadata(CamelModel):
    sequence: str | None = None
    submission_type: str | None = None
    study_number: str | None = None
    sponsor: str | None = None
    leaf_count: int | None = None


class XmlValidationResult(CamelModel):
    valid: bool
    xml_type: XmlType
    issues: list[XmlValidationIssue] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    metadata: XmlMetadata | None = None


class EctdXmlValidationResult(CamelModel):
    index_result: XmlValidationResult
    regional_result: XmlValidationResult
    combined_valid: bool
    total_errors: int
    total_warnings: int


@dataclass
class XmlValidationOptions:
    # When given, every leaf href must resolve to one of these target paths
    package_files: list[PackageFile] | None = None
    leaf_entries: list[LeafEntry] | None = None
    skip_checksum_validation: bool = False
    allow_empty_modules: bool = True


# ============ Document validation runs ============


class ValidationResultItem(CamelModel):
    rule_id: str
    rule_name: str
    passed: bool
    message: str
    severity: ValidationSeverity
    details: dict[str, Any] | None = None


class DocumentMetadata(CamelModel):
    """PDF facts picked up from check details while validating."""

    page_count: int | None = None
    pdf_version: str | None = None
    is_pdf_a: bool | None = None
    file_size: int | None = None


class ValidationSummary(CamelModel):
    passed: int = 0
    failed: int = 0
    warnings: int = 0
    errors: int = 0
    results: list[ValidationResultItem] = Field(default_factory=list)
    metadata: DocumentMetadata | None = None
