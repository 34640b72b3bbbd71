"""
Document validation runs.

Executes every active ValidationRule against one uploaded document through
the check registry, replaces the stored ValidationResults, and (for the
processing pipeline) moves the document to PROCESSED or PROCESSING_FAILED.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session, joinedload

from ectd_packager.models import Document, DocumentStatus, DocumentStatusHistory, ValidationResult, ValidationRule
from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.packaging.errors import DocumentNotFoundError
from ectd_packager.services.storage import LocalStorage, get_storage
from ectd_packager.validation.checks import get_check_function
from ectd_packager.validation.types import CheckResult, DocumentMetadata, ValidationResultItem, ValidationSummary

logger = logging.getLogger(__name__)


def _collect_metadata(details: dict[str, Any], metadata: DocumentMetadata) -> None:
    """Pick PDF facts out of check details as a side effect of validation."""
    if isinstance(details.get("pageCount"), int):
        metadata.page_count = details["pageCount"]
    if isinstance(details.get("version"), str) and details["version"] != "unknown":
        metadata.pdf_version = details["version"]
    if isinstance(details.get("isPdfA"), bool):
        metadata.is_pdf_a = details["isPdfA"]
    if isinstance(details.get("fileSize"), int):
        metadata.file_size = details["fileSize"]


async def _run_rule(rule: ValidationRule, file_path: str) -> CheckResult:
    check_fn = get_check_function(rule.check_fn)
    if check_fn is None:
        return CheckResult(
            passed=False,
            message=f"Unknown check function: {rule.check_fn}",
            details={"checkFn": rule.check_fn},
        )
    try:
        return await check_fn(file_path, rule.params or {})
    except Exception as e:
        logger.error(f"[Validation] Rule {rule.name} raised: {e}")
        return CheckResult(
            passed=False,
            message=f"Check failed with error: {e}",
            details={"error": str(e)},
        )


async def run_validation(
    db: Session,
    document_id: str,
    storage: LocalStorage | None = None,
) -> ValidationSummary:
    """
    Run all active rules (ordered by category, then name) against a document.

    Raises:
        DocumentNotFoundError: If the document does not exist
    """
    storage = storage or get_storage()
    document = (
        db.query(Document)
        .options(joinedload(Document.slot))
        .filter(Document.id == document_id)
        .first()
    )
    if not document:
        raise DocumentNotFoundError(document_id)

    file_path = str(storage.get_full_path(document.source_path))
    rules = (
        db.query(ValidationRule)
        .filter(ValidationRule.is_active.is_(True))
        .order_by(ValidationRule.category, ValidationRule.name)
        .all()
    )

    summary = ValidationSummary()
    metadata = DocumentMetadata()

    for rule in rules:
        result = await _run_rule(rule, file_path)
        if result.details:
            _collect_metadata(result.details, metadata)

        summary.results.append(
            ValidationResultItem(
                rule_id=rule.id,
                rule_name=rule.name,
                passed=result.passed,
                message=result.message,
                severity=rule.severity,
                details=result.details,
            )
        )
        if result.passed:
            summary.passed += 1
        else:
            summary.failed += 1
            if rule.severity == ValidationSeverity.WARNING:
                summary.warnings += 1
            elif rule.severity == ValidationSeverity.ERROR:
                summary.errors += 1

    # Replace previous results in one transaction
    try:
        db.query(ValidationResult).filter(ValidationResult.document_id == document_id).delete()
        db.add_all(
            ValidationResult(
                document_id=document_id,
                rule_id=item.rule_id,
                rule_name=item.rule_name,
                passed=item.passed,
                message=item.message,
                details=item.details,
            )
            for item in summary.results
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    if metadata.model_dump(exclude_none=True):
        summary.metadata = metadata

    logger.info(
        f"[Validation] Document {document_id}: {summary.passed} passed, "
        f"{summary.errors} error(s), {summary.warnings} warning(s)"
    )
    return summary


def _processing_error(summary: ValidationSummary) -> str | None:
    if summary.failed == 0:
        return None
    errors = [r.message for r in summary.results if not r.passed and r.severity == ValidationSeverity.ERROR]
    warnings = [r.message for r in summary.results if not r.passed and r.severity == ValidationSeverity.WARNING]
    parts = []
    if errors:
        parts.append("; ".join(errors))
    if warnings:
        parts.append(f"Warnings: {'; '.join(warnings)}")
    return " | ".join(parts)


def _set_status(db: Session, document: Document, status: DocumentStatus, comment: str | None = None) -> None:
    if document.status != status:
        db.add(
            DocumentStatusHistory(
                document_id=document.id,
                from_status=document.status,
                to_status=status,
                comment=comment,
            )
        )
    document.status = status


async def run_validation_and_update_status(
    db: Session,
    document_id: str,
    storage: LocalStorage | None = None,
) -> ValidationSummary:
    """
    Validate a document and record the outcome on it.

    The document passes through PROCESSING and ends PROCESSED, or
    PROCESSING_FAILED when any ERROR rule fails or validation itself
    raises (the exception is re-raised after the status is stored).
    """
    document = db.query(Document).filter(Document.id == document_id).first()
    if not document:
        raise DocumentNotFoundError(document_id)

    _set_status(db, document, DocumentStatus.PROCESSING)
    db.commit()

    try:
        summary = await run_validation(db, document_id, storage)
    except Exception as e:
        db.rollback()
        logger.error(f"[Validation] Validation failed for document {document_id}: {e}")
        _set_status(db, document, DocumentStatus.PROCESSING_FAILED, comment="Validation failed")
        document.processing_error = str(e) or "Unknown error during validation"
        db.commit()
        raise

    new_status = DocumentStatus.PROCESSING_FAILED if summary.errors > 0 else DocumentStatus.PROCESSED
    _set_status(db, document, new_status, comment=f"Validation: {summary.passed} passed, {summary.failed} failed")
    document.processing_error = _processing_error(summary)

    if summary.metadata:
        if summary.metadata.page_count is not None:
            document.page_count = summary.metadata.page_count
        if summary.metadata.pdf_version is not None:
            document.pdf_version = summary.metadata.pdf_version
        if summary.metadata.is_pdf_a is not None:
            document.is_pdf_a = summary.metadata.is_pdf_a
        if summary.metadata.file_size is not None:
            document.file_size = summary.metadata.file_size

    db.commit()
    return summary
