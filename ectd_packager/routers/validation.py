"""Package and document validation endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from ectd_packager.database.session import get_db
from ectd_packager.packaging.assembler import assemble_package
from ectd_packager.packaging.errors import DocumentNotFoundError
from ectd_packager.packaging.types import AssemblyOptions
from ectd_packager.routers.packages import get_study_with_template, validate_uuid
from ectd_packager.schemas.package import PackageValidationRequest
from ectd_packager.services.storage import LocalStorage, get_storage
from ectd_packager.validation.package_validator import serialize_validation_report, validate_package
from ectd_packager.validation.runner import run_validation_and_update_status
from ectd_packager.validation.types import PackageValidationOptions, ValidationSummary

logger = logging.getLogger(__name__)

router = APIRouter(tags=["validation"])


@router.post("/studies/{study_id}/validation")
async def validate_study_package(
    study_id: str,
    data: PackageValidationRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
) -> dict[str, Any]:
    """Assemble the study's package and run the pre-export validation over it."""
    study = get_study_with_template(study_id, db)
    data = data or PackageValidationRequest()

    manifest = assemble_package(db, study.id, AssemblyOptions(include_drafts=data.include_drafts))
    report = await validate_package(
        manifest,
        PackageValidationOptions(
            skip_file_access=data.skip_file_access,
            skip_cross_references=data.skip_cross_references,
            additional_checks=data.additional_checks,
            skip_checks=data.skip_checks,
        ),
        storage,
    )
    return serialize_validation_report(report)


@router.post("/documents/{document_id}/validation", response_model=ValidationSummary)
async def validate_document(
    document_id: str,
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
) -> ValidationSummary:
    """Run the active validation rules against one document and update its status."""
    validate_uuid(document_id, "document")
    try:
        return await run_validation_and_update_status(db, document_id, storage)
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail="Document not found")
