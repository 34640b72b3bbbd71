"""
Package assembly.

Walks a study's active structure template, picks the authoritative document
for each slot and produces the package manifest: ordered files with their
eCTD target paths plus the folder tree.

Selection priority per slot is PUBLISHED > APPROVED > DRAFT/PROCESSED (the
last only when drafts are explicitly included); within a tier the highest
version wins.
"""

import logging
from collections import defaultdict

from sqlalchemy.orm import Session, selectinload

from ectd_packager.models import (
    Annotation,
    AnnotationStatus,
    AnnotationType,
    Document,
    DocumentStatus,
    StructureNode,
    StructureTemplate,
    Study,
    ValidationResult,
)
from ectd_packager.packaging.errors import NoActiveTemplateError, StudyNotFoundError
from ectd_packager.packaging.folder_structure import (
    build_folder_tree,
    code_to_folder_path,
    sanitize_file_name,
)
from ectd_packager.packaging.hierarchy import code_sort_key
from ectd_packager.packaging.types import (
    AssemblyOptions,
    MissingRequiredNode,
    PackageFile,
    PackageManifest,
    PackageSummary,
    PendingDocument,
    ReadinessCheck,
)

logger = logging.getLogger(__name__)

PENDING_STATUSES = (
    DocumentStatus.DRAFT,
    DocumentStatus.PROCESSED,
    DocumentStatus.IN_REVIEW,
    DocumentStatus.CORRECTIONS_NEEDED,
)


def _load_study(db: Session, study_id: str) -> tuple[Study, list[StructureNode]]:
    study = (
        db.query(Study)
        .options(
            selectinload(Study.active_template).selectinload(StructureTemplate.nodes),
            selectinload(Study.documents).selectinload(Document.slot),
        )
        .filter(Study.id == study_id)
        .first()
    )
    if not study:
        raise StudyNotFoundError(study_id)
    if not study.active_template:
        raise NoActiveTemplateError(study_id)

    nodes = sorted(study.active_template.nodes, key=lambda n: code_sort_key(n.code))
    return study, nodes


def _documents_by_slot(documents: list[Document]) -> dict[str, list[Document]]:
    by_slot: dict[str, list[Document]] = defaultdict(list)
    for doc in documents:
        by_slot[doc.slot_id].append(doc)
    return by_slot


def _selection_tier(status: DocumentStatus, options: AssemblyOptions) -> int | None:
    """Higher is better; None means the document is not eligible."""
    if status == DocumentStatus.PUBLISHED and options.include_published:
        return 3
    if status == DocumentStatus.APPROVED and options.include_approved:
        return 2
    if status in (DocumentStatus.DRAFT, DocumentStatus.PROCESSED) and options.include_drafts:
        return 1
    return None


def select_document(documents: list[Document], options: AssemblyOptions | None = None) -> Document | None:
    """Best qualifying document for one slot, or None."""
    options = options or AssemblyOptions()
    best: Document | None = None
    best_key: tuple[int, int] | None = None

    for doc in documents:
        tier = _selection_tier(doc.status, options)
        if tier is None:
            continue
        key = (tier, doc.version)
        if best_key is None or key > best_key:
            best, best_key = doc, key

    return best


def _count_validation_errors(db: Session, study_id: str) -> int:
    return (
        db.query(ValidationResult)
        .join(Document, ValidationResult.document_id == Document.id)
        .filter(Document.study_id == study_id, ValidationResult.passed.is_(False))
        .count()
    )


def _count_unresolved_corrections(db: Session, study_id: str) -> int:
    return (
        db.query(Annotation)
        .join(Document, Annotation.document_id == Document.id)
        .filter(
            Document.study_id == study_id,
            Annotation.status == AnnotationStatus.OPEN,
            Annotation.type == AnnotationType.CORRECTION_REQUIRED,
        )
        .count()
    )


def check_readiness(db: Session, study_id: str) -> ReadinessCheck:
    """
    Check whether a study can be packaged.

    Readiness requires every required node to have an approved or published
    document, no failed validation results and no open correction requests.
    Documents still pending approval are reported but do not block.
    """
    study, nodes = _load_study(db, study_id)
    by_slot = _documents_by_slot(study.documents)

    def has_final(slot_id: str) -> bool:
        return any(
            d.status in (DocumentStatus.APPROVED, DocumentStatus.PUBLISHED)
            for d in by_slot.get(slot_id, [])
        )

    required_nodes = [n for n in nodes if n.required]
    missing_required = [
        MissingRequiredNode(code=node.code, title=node.title, node_id=node.id)
        for node in required_nodes
        if not has_final(node.id)
    ]

    pending_approval = [
        PendingDocument(
            document_id=doc.id,
            file_name=doc.source_file_name,
            status=doc.status.value,
            node_code=doc.slot.code,
            node_title=doc.slot.title,
        )
        for doc in sorted(study.documents, key=lambda d: (code_sort_key(d.slot.code), -d.version))
        if doc.status in PENDING_STATUSES
    ]

    validation_errors = _count_validation_errors(db, study_id)
    unresolved_annotations = _count_unresolved_corrections(db, study_id)
    total_files = sum(1 for slot_id in by_slot if has_final(slot_id))

    ready = not missing_required and validation_errors == 0 and unresolved_annotations == 0

    return ReadinessCheck(
        ready=ready,
        missing_required=missing_required,
        pending_approval=pending_approval,
        validation_errors=validation_errors,
        unresolved_annotations=unresolved_annotations,
        total_files=total_files,
        total_required_nodes=len(required_nodes),
    )


def assemble_package(
    db: Session,
    study_id: str,
    options: AssemblyOptions | None = None,
) -> PackageManifest:
    """
    Build the package manifest for a study.

    Files come out in numeric node-code order; running this twice on an
    unchanged study gives identical files and target paths.
    """
    options = options or AssemblyOptions()
    study, nodes = _load_study(db, study_id)
    by_slot = _documents_by_slot(study.documents)

    files: list[PackageFile] = []
    for node in nodes:
        selected = select_document(by_slot.get(node.id, []), options)
        if selected is None:
            continue

        file_name = sanitize_file_name(selected.source_file_name)
        folder_path = code_to_folder_path(node.code, study.study_number)
        files.append(
            PackageFile(
                source_document_id=selected.id,
                source_path=selected.source_path,
                target_path=f"{folder_path}/{file_name}",
                node_code=node.code,
                node_title=node.title,
                file_name=file_name,
                version=selected.version,
                page_count=selected.page_count,
                file_size=selected.file_size or 0,
            )
        )

    files.sort(key=lambda f: code_sort_key(f.node_code))
    readiness = check_readiness(db, study_id)

    logger.info(
        f"[Assembler] Study {study.study_number}: {len(files)} file(s) selected, "
        f"ready={readiness.ready}"
    )

    return PackageManifest(
        study_id=study.id,
        study_number=study.study_number,
        files=files,
        readiness=readiness,
        folder_structure=build_folder_tree(files),
    )


def get_package_summary(db: Session, study_id: str) -> PackageSummary:
    """Lighter-weight view for dashboards; no file selection."""
    study, nodes = _load_study(db, study_id)
    readiness = check_readiness(db, study_id)

    return PackageSummary(
        study_number=study.study_number,
        total_nodes=len(nodes),
        required_nodes=sum(1 for n in nodes if n.required),
        documents_ready=readiness.total_files,
        readiness=readiness,
    )
