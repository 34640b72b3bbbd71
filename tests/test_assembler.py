"""Tests for package assembly and readiness."""

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from ectd_packager.models import (
    Annotation,
    AnnotationStatus,
    AnnotationType,
    DocumentStatus,
    StructureTemplate,
    Study,
    ValidationResult,
)
from ectd_packager.packaging.assembler import (
    assemble_package,
    check_readiness,
    get_package_summary,
    select_document,
)
from ectd_packager.packaging.errors import NoActiveTemplateError, StudyNotFoundError
from ectd_packager.packaging.types import AssemblyOptions


def _doc(status: DocumentStatus, version: int) -> SimpleNamespace:
    return SimpleNamespace(status=status, version=version)


class TestSelectDocument:
    """Test per-slot document selection."""

    def test_published_beats_newer_approved(self):
        """Test the status tier outranks the version number."""
        published = _doc(DocumentStatus.PUBLISHED, 1)
        approved = _doc(DocumentStatus.APPROVED, 3)
        assert select_document([approved, published]) is published

    def test_highest_version_within_tier(self):
        """Test the newest version wins among equals."""
        v1 = _doc(DocumentStatus.APPROVED, 1)
        v2 = _doc(DocumentStatus.APPROVED, 2)
        assert select_document([v2, v1]) is v2

    def test_drafts_only_when_included(self):
        """Test drafts are ignored unless explicitly allowed."""
        draft = _doc(DocumentStatus.DRAFT, 1)
        in_review = _doc(DocumentStatus.IN_REVIEW, 2)
        assert select_document([draft, in_review]) is None
        assert select_document([draft, in_review], AssemblyOptions(include_drafts=True)) is draft

    def test_nothing_eligible(self):
        """Test an empty slot selects nothing."""
        assert select_document([]) is None


class TestReadiness:
    """Test readiness checks against the database."""

    def test_missing_required_blocks(self, session: Session, sample_study: Study):
        """Test a required node without an approved document blocks export."""
        readiness = check_readiness(session, sample_study.id)

        assert readiness.ready is False
        assert [m.code for m in readiness.missing_required] == ["16.1"]
        assert readiness.total_required_nodes == 1
        assert readiness.total_files == 0

    def test_ready_with_approved_required(self, session: Session, approved_protocol):
        """Test an approved document in every required slot makes the study ready."""
        readiness = check_readiness(session, approved_protocol.study_id)

        assert readiness.ready is True
        assert readiness.missing_required == []
        assert readiness.total_files == 1

    def test_pending_documents_do_not_block(self, session: Session, approved_protocol, add_document):
        """Test drafts and documents in review are reported but ready stays true."""
        add_document("16.2", "source/listing.pdf", file_name="Listing.pdf", status=DocumentStatus.IN_REVIEW)

        readiness = check_readiness(session, approved_protocol.study_id)

        assert readiness.ready is True
        assert [(p.node_code, p.status) for p in readiness.pending_approval] == [("16.2", "IN_REVIEW")]

    def test_failed_validation_blocks(self, session: Session, approved_protocol):
        """Test a failed validation result on any document blocks export."""
        session.add(
            ValidationResult(
                document_id=approved_protocol.id,
                rule_id="rule-1",
                rule_name="PDF Version",
                passed=False,
                message="Unsupported version",
            )
        )
        session.commit()

        readiness = check_readiness(session, approved_protocol.study_id)

        assert readiness.ready is False
        assert readiness.validation_errors == 1

    def test_open_correction_blocks(self, session: Session, approved_protocol):
        """Test open correction-required annotations block; other annotation types do not."""
        session.add_all(
            [
                Annotation(
                    document_id=approved_protocol.id,
                    author_id="reviewer-1",
                    type=AnnotationType.QUESTION,
                    page_number=1,
                    content="Is this the final version?",
                ),
                Annotation(
                    document_id=approved_protocol.id,
                    author_id="reviewer-1",
                    type=AnnotationType.CORRECTION_REQUIRED,
                    status=AnnotationStatus.OPEN,
                    page_number=2,
                    content="Fix the dosing table",
                ),
            ]
        )
        session.commit()

        readiness = check_readiness(session, approved_protocol.study_id)

        assert readiness.ready is False
        assert readiness.unresolved_annotations == 1

    def test_unknown_study(self, session: Session):
        """Test an unknown study id raises StudyNotFoundError."""
        with pytest.raises(StudyNotFoundError):
            check_readiness(session, "00000000-0000-0000-0000-000000000000")

    def test_study_without_template(self, session: Session):
        """Test a study with no active template raises NoActiveTemplateError."""
        study = Study(study_number="NO-TPL", sponsor="Acme Pharma")
        session.add(study)
        session.commit()

        with pytest.raises(NoActiveTemplateError):
            check_readiness(session, study.id)


class TestAssemblePackage:
    """Test manifest construction."""

    def test_manifest_files_and_paths(self, session: Session, approved_protocol, add_document):
        """Test target paths, ordering and the folder tree."""
        add_document("16.2", "source/listing.pdf", file_name="Listing 14.1.pdf", status=DocumentStatus.PUBLISHED)

        manifest = assemble_package(session, approved_protocol.study_id)

        assert [f.node_code for f in manifest.files] == ["16.1", "16.2"]
        assert [f.target_path for f in manifest.files] == [
            "m5/abc-123/16-1/study-protocol.pdf",
            "m5/abc-123/16-2/listing-141.pdf",
        ]
        assert manifest.files[0].page_count == 2
        assert manifest.readiness.ready is True
        assert manifest.folder_structure[0].name == "m5"

    def test_assembly_is_deterministic(self, session: Session, approved_protocol):
        """Test two runs on an unchanged study give the same files."""
        first = assemble_package(session, approved_protocol.study_id)
        second = assemble_package(session, approved_protocol.study_id)

        assert first.files == second.files

    def test_drafts_included_on_request(self, session: Session, approved_protocol, add_document):
        """Test draft documents only appear when include_drafts is set."""
        add_document("16.2", "source/draft.pdf", file_name="Draft.pdf", status=DocumentStatus.DRAFT)

        default = assemble_package(session, approved_protocol.study_id)
        preview = assemble_package(session, approved_protocol.study_id, AssemblyOptions(include_drafts=True))

        assert len(default.files) == 1
        assert len(preview.files) == 2

    def test_package_summary(self, session: Session, approved_protocol, sample_template: StructureTemplate):
        """Test summary counts nodes and ready documents."""
        summary = get_package_summary(session, approved_protocol.study_id)

        assert summary.study_number == "ABC-123"
        assert summary.total_nodes == 3
        assert summary.required_nodes == 1
        assert summary.documents_ready == 1
        assert summary.readiness.ready is True
