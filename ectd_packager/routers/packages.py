"""Package readiness, export and download endpoints."""

import logging
import re
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ectd_packager.database.session import get_db
from ectd_packager.models import Study
from ectd_packager.packaging.assembler import check_readiness, get_package_summary
from ectd_packager.packaging.exporter import (
    ExportOptions,
    export_exists,
    export_package,
    get_package_zip_path,
)
from ectd_packager.packaging.types import PackageSummary
from ectd_packager.schemas.common import ErrorResponse
from ectd_packager.schemas.package import (
    ExportRequest,
    ExportResponse,
    ExportValidationResponse,
    ReadinessResponse,
)
from ectd_packager.services.storage import LocalStorage, get_storage
from ectd_packager.validation.package_validator import serialize_validation_report

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/studies",
    tags=["packages"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)

ZIP_CHUNK_SIZE = 64 * 1024


def validate_uuid(value: str, label: str) -> str:
    try:
        uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
    return value


def get_study_with_template(study_id: str, db: Session) -> Study:
    """Load a study that can be packaged, or raise 400/404."""
    validate_uuid(study_id, "study")
    study = db.query(Study).filter(Study.id == study_id).first()
    if not study:
        raise HTTPException(status_code=404, detail="Study not found")
    if not study.active_template_id:
        raise HTTPException(status_code=400, detail="Study has no active template")
    return study


def download_file_name(study_number: str, now: datetime | None = None) -> str:
    """`ABC/123` exported on 2026-01-31 gives `ABC_123_ectd_package_20260131.zip`."""
    now = now or datetime.now(timezone.utc)
    safe_study_number = re.sub(r"[^a-zA-Z0-9_-]", "_", study_number)
    return f"{safe_study_number}_ectd_package_{now.strftime('%Y%m%d')}.zip"


@router.get("/{study_id}/package", response_model=ReadinessResponse)
def get_package_readiness(
    study_id: str,
    db: Session = Depends(get_db),
) -> ReadinessResponse:
    """Readiness of a study for export, with everything that blocks it."""
    study = get_study_with_template(study_id, db)
    return ReadinessResponse(
        study_id=study.id,
        study_number=study.study_number,
        sponsor=study.sponsor,
        readiness=check_readiness(db, study.id),
    )


@router.get("/{study_id}/package/summary", response_model=PackageSummary)
def get_summary(
    study_id: str,
    db: Session = Depends(get_db),
) -> PackageSummary:
    study = get_study_with_template(study_id, db)
    return get_package_summary(db, study.id)


@router.post("/{study_id}/package", response_model=ExportResponse)
async def create_package(
    study_id: str,
    data: ExportRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
) -> ExportResponse:
    """
    Export the study as an eCTD package.

    A failed export (not ready, no documents, validation gate, or an
    unexpected error) answers 422 with the failure message and package id.
    """
    study = get_study_with_template(study_id, db)
    data = data or ExportRequest()

    result = await export_package(db, study.id, ExportOptions(**data.model_dump()), storage)

    if not result.success:
        logger.warning(f"[Packages] Export failed for study {study.study_number}: {result.error}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "detail": result.error or "Export failed",
                "error_type": "export_failed",
                "packageId": result.package_id,
            },
        )

    validation = None
    if result.validation:
        validation = ExportValidationResponse(
            xml_valid=result.validation.xml_valid,
            error_count=result.validation.error_count,
            warning_count=result.validation.warning_count,
            package_report=serialize_validation_report(result.validation.package_report),
        )

    return ExportResponse(
        package_id=result.package_id,
        study_id=study.id,
        study_number=study.study_number,
        sponsor=study.sponsor,
        zip_size=result.zip_size,
        file_count=len(result.manifest.files) if result.manifest else 0,
        sequence_number=result.sequence_number,
        download_url=f"/studies/{study.id}/package/{result.package_id}",
        validation=validation,
    )


@router.get("/{study_id}/package/{package_id}")
def download_package(
    study_id: str,
    package_id: str,
    db: Session = Depends(get_db),
) -> StreamingResponse:
    """Stream package.zip for a completed export."""
    validate_uuid(study_id, "study")
    validate_uuid(package_id, "package")

    study = db.query(Study).filter(Study.id == study_id).first()
    if not study:
        raise HTTPException(status_code=404, detail="Study not found")

    if not export_exists(study_id, package_id):
        raise HTTPException(status_code=404, detail="Package not found or has expired")

    zip_path = get_package_zip_path(study_id, package_id)
    exports = LocalStorage(zip_path.parent)

    return StreamingResponse(
        exports.iter_chunks(zip_path.name, ZIP_CHUNK_SIZE),
        media_type="application/zip",
        headers={
            "Content-Length": str(zip_path.stat().st_size),
            "Content-Disposition": f'attachment; filename="{download_file_name(study.study_number)}"',
            "Cache-Control": "private, no-cache, no-store, must-revalidate",
        },
    )
