"""Package readiness, export and validation request/response schemas."""

from typing import Any

from ectd_packager.packaging.types import ReadinessCheck, SubmissionType
from ectd_packager.schemas.common import CamelModel


class ReadinessResponse(CamelModel):
    study_id: str
    study_number: str
    sponsor: str
    readiness: ReadinessCheck


class ExportRequest(CamelModel):
    """Body of POST /studies/{study_id}/package. Every field is optional."""

    force: bool = False
    include_artifacts: bool = True
    sequence_number: str | None = None
    submission_type: SubmissionType | None = None
    sponsor: str | None = None
    application_number: str | None = None
    application_type: str | None = None
    product_name: str | None = None
    run_validation: bool = True
    fail_on_validation_error: bool = False
    include_cover_page: bool = True


class ExportValidationResponse(CamelModel):
    xml_valid: bool
    error_count: int
    warning_count: int
    package_report: dict[str, Any]


class ExportResponse(CamelModel):
    package_id: str
    study_id: str
    study_number: str
    sponsor: str
    zip_size: int | None = None
    file_count: int = 0
    sequence_number: str | None = None
    download_url: str
    validation: ExportValidationResponse | None = None


class PackageValidationRequest(CamelModel):
    """Body of POST /studies/{study_id}/validation."""

    include_drafts: bool = False
    skip_file_access: bool = False
    skip_cross_references: bool = False
    additional_checks: list[str] = []
    skip_checks: list[str] = []
