"""
Package export orchestration.

export_package runs the whole pipeline for one study:

1. Readiness check (abort unless forced)
2. Manifest assembly
3. Bookmark manifest and hyperlink report
4. Cover page
5. ectd/ tree, XML backbone, sidecars and package.zip
6. Package and XML validation

Exports land in {exports_dir}/{study_id}/{package_id}/. Any unexpected
failure removes the partial export directory and comes back as
ExportResult(success=False).
"""

import asyncio
import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.orm import Session

from ectd_packager.config import get_settings
from ectd_packager.models import Study
from ectd_packager.packaging.assembler import assemble_package, check_readiness
from ectd_packager.packaging.bookmarks import BookmarkConfig, generate_bookmark_manifest
from ectd_packager.packaging.cover_page import CoverPageResult, generate_cover_page
from ectd_packager.packaging.errors import ExportCleanupError, InvalidSequenceNumberError
from ectd_packager.packaging.hyperlinks import generate_hyperlink_report
from ectd_packager.packaging.types import (
    AssemblyOptions,
    CoverPageMetadata,
    PackageManifest,
    ReadinessCheck,
    SequenceInfo,
    SubmissionType,
    XmlGenerationResult,
)
from ectd_packager.packaging.xml_generator import XmlGenerationOptions, determine_submission_type, is_valid_sequence
from ectd_packager.packaging.zip_generator import PACKAGE_ZIP, generate_export_artifacts
from ectd_packager.services.storage import LocalStorage, get_storage
from ectd_packager.validation.package_validator import validate_package
from ectd_packager.validation.types import PackageValidationOptions, PackageValidationReport, XmlValidationOptions
from ectd_packager.validation.xml_validator import validate_ectd_xml

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE = "0000"


@dataclass
class ExportOptions:
    # Export even if the readiness check fails (also pulls in drafts)
    force: bool = False
    # Write bookmark-manifest.json, hyperlink-report.csv and qc-summary.json
    include_artifacts: bool = True
    sequence_number: str | None = None
    submission_type: SubmissionType | None = None
    sponsor: str | None = None
    application_number: str | None = None
    application_type: str | None = None
    product_name: str | None = None
    run_validation: bool = True
    # Otherwise validation errors are only reported
    fail_on_validation_error: bool = False
    include_cover_page: bool = True


@dataclass
class ExportValidation:
    package_report: PackageValidationReport
    xml_valid: bool
    error_count: int
    warning_count: int


@dataclass
class ExportResult:
    success: bool
    package_id: str
    zip_path: Path | None = None
    zip_size: int | None = None
    manifest: PackageManifest | None = None
    xml_result: XmlGenerationResult | None = None
    sequence_number: str | None = None
    validation: ExportValidation | None = None
    error: str | None = None


def get_exports_root() -> Path:
    return Path(get_settings().exports_dir)


def get_export_dir(study_id: str, package_id: str) -> Path:
    return get_exports_root() / study_id / package_id


def get_package_zip_path(study_id: str, package_id: str) -> Path:
    return get_export_dir(study_id, package_id) / PACKAGE_ZIP


def export_exists(study_id: str, package_id: str) -> bool:
    return get_package_zip_path(study_id, package_id).is_file()


async def cleanup_export(export_dir: Path) -> None:
    """
    Remove an export directory and everything in it.

    Raises:
        ExportCleanupError: If export_dir is not inside the exports root
    """
    root = get_exports_root().resolve()
    target = Path(export_dir).resolve()
    if target == root or not target.is_relative_to(root):
        logger.error(f"[Exporter] Refusing to clean up {target}: outside {root}")
        raise ExportCleanupError(str(export_dir))

    try:
        await asyncio.to_thread(shutil.rmtree, target, ignore_errors=False)
    except FileNotFoundError:
        return
    except OSError as e:
        logger.error(f"[Exporter] Failed to cleanup export directory {target}: {e}")
        raise


def build_readiness_error_message(readiness: ReadinessCheck) -> str:
    issues = []
    if readiness.missing_required:
        issues.append(f"{len(readiness.missing_required)} required document(s) missing")
    if readiness.validation_errors > 0:
        issues.append(f"{readiness.validation_errors} validation error(s)")
    if readiness.unresolved_annotations > 0:
        issues.append(f"{readiness.unresolved_annotations} unresolved correction(s)")

    if not issues:
        return "Package is not ready for export"
    return f"Package not ready: {', '.join(issues)}"


async def _validate_export(
    manifest: PackageManifest,
    xml_result: XmlGenerationResult,
    cover_page: CoverPageResult | None,
    storage: LocalStorage,
) -> ExportValidation:
    package_report = await validate_package(
        manifest,
        PackageValidationOptions(skip_file_access=False, skip_cross_references=False),
        storage,
    )

    package_files = list(manifest.files)
    if cover_page:
        package_files.insert(0, cover_page.as_package_file())
    xml_validation = validate_ectd_xml(
        xml_result.index_xml,
        xml_result.regional_xml,
        XmlValidationOptions(package_files=package_files, leaf_entries=xml_result.leaf_entries),
    )

    return ExportValidation(
        package_report=package_report,
        xml_valid=xml_validation.combined_valid,
        error_count=package_report.summary.error_count + xml_validation.total_errors,
        warning_count=package_report.summary.warning_count + xml_validation.total_warnings,
    )


async def export_package(
    db: Session,
    study_id: str,
    options: ExportOptions | None = None,
    storage: LocalStorage | None = None,
) -> ExportResult:
    """
    Export a study as an eCTD package.

    Never raises: structural failures and unexpected errors are returned
    as ExportResult(success=False, error=...).
    """
    options = options or ExportOptions()
    storage = storage or get_storage()
    package_id = str(uuid.uuid4())
    export_dir = get_export_dir(study_id, package_id)

    try:
        readiness = check_readiness(db, study_id)
        if not readiness.ready and not options.force:
            return ExportResult(
                success=False,
                package_id=package_id,
                error=build_readiness_error_message(readiness),
            )

        study = db.query(Study).filter(Study.id == study_id).first()
        if not study:
            return ExportResult(success=False, package_id=package_id, error=f"Study not found: {study_id}")

        manifest = assemble_package(
            db,
            study_id,
            AssemblyOptions(include_approved=True, include_published=True, include_drafts=options.force),
        )
        if not manifest.files:
            return ExportResult(success=False, package_id=package_id, error="No documents available for export")

        sequence_number = options.sequence_number or DEFAULT_SEQUENCE
        if not is_valid_sequence(sequence_number):
            return ExportResult(
                success=False,
                package_id=package_id,
                error=str(InvalidSequenceNumberError(sequence_number)),
            )

        await asyncio.to_thread(export_dir.mkdir, parents=True, exist_ok=True)
        logger.info(f"[Exporter] Exporting study {study.study_number} as package {package_id}")

        bookmarks = await generate_bookmark_manifest(manifest, BookmarkConfig.from_settings(), storage)
        hyperlinks = await generate_hyperlink_report(manifest, storage)

        submission_type = options.submission_type or determine_submission_type(sequence_number)
        sponsor = options.sponsor or study.sponsor

        xml_options = XmlGenerationOptions(
            sequence=SequenceInfo(number=sequence_number, type=submission_type),
            metadata={
                "sponsor": sponsor,
                "study_number": study.study_number,
                "application_number": options.application_number,
                "application_type": options.application_type,
                "product_name": options.product_name,
                "therapeutic_area": study.therapeutic_area,
            },
        )

        cover_page = None
        if options.include_cover_page:
            cover_page = await asyncio.to_thread(
                generate_cover_page,
                manifest,
                CoverPageMetadata(
                    study_number=study.study_number,
                    sponsor=sponsor,
                    therapeutic_area=study.therapeutic_area,
                    phase=study.phase,
                    application_number=options.application_number,
                    application_type=options.application_type,
                    product_name=options.product_name,
                    submission_type=submission_type.capitalize(),
                    sequence_number=sequence_number,
                ),
            )

        artifacts = await generate_export_artifacts(
            manifest,
            bookmarks,
            hyperlinks,
            export_dir,
            xml_options,
            cover_page,
            storage,
            include_artifacts=options.include_artifacts,
        )

        validation = None
        if options.run_validation:
            validation = await _validate_export(manifest, artifacts.xml_result, cover_page, storage)
            logger.info(
                f"[Exporter] Package {package_id}: {validation.error_count} validation error(s), "
                f"{validation.warning_count} warning(s)"
            )
            if options.fail_on_validation_error and validation.error_count > 0:
                return ExportResult(
                    success=False,
                    package_id=package_id,
                    manifest=manifest,
                    xml_result=artifacts.xml_result,
                    validation=validation,
                    error=f"Export blocked: {validation.error_count} validation error(s)",
                )

        return ExportResult(
            success=True,
            package_id=package_id,
            zip_path=artifacts.package_zip_path,
            zip_size=artifacts.zip_size,
            manifest=manifest,
            xml_result=artifacts.xml_result,
            sequence_number=sequence_number,
            validation=validation,
        )

    except Exception as e:
        logger.error(f"[Exporter] Export failed for study {study_id}: {e}", exc_info=True)
        try:
            await cleanup_export(export_dir)
        except Exception as cleanup_error:
            logger.warning(f"[Exporter] Cleanup after failed export did not complete: {cleanup_error}")
        return ExportResult(success=False, package_id=package_id, error=str(e) or "Unknown export error")
