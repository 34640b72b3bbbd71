"""Test SQLAlchemy models."""

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ectd_packager.models import (
    Annotation,
    Document,
    DocumentStatusHistory,
    StructureNode,
    StructureTemplate,
    Study,
    ValidationResult,
)
from ectd_packager.models.enums import (
    AnnotationStatus,
    AnnotationType,
    DocumentStatus,
    DocumentType,
    StudyStatus,
)


class TestStudy:
    """Test Study model."""

    def test_create_study(self, session: Session, sample_template: StructureTemplate):
        """Test creating a study with defaults."""
        study = Study(study_number="XYZ-001", sponsor="Acme Pharma", active_template_id=sample_template.id)
        session.add(study)
        session.commit()

        assert study.id is not None
        assert len(study.id) == 36  # UUID format
        assert study.status == StudyStatus.ACTIVE
        assert study.created_at is not None
        assert study.updated_at is not None
        assert study.active_template.name == "CSR Appendices"

    def test_study_number_unique(self, session: Session, sample_study: Study):
        """Test two studies cannot share a study number."""
        session.add(Study(study_number=sample_study.study_number, sponsor="Other"))
        with pytest.raises(IntegrityError):
            session.commit()


class TestStructure:
    """Test template and node models."""

    def test_nodes_ordered_and_linked(self, sample_template: StructureTemplate):
        """Test nodes load in sort order with parent links."""
        codes = [node.code for node in sample_template.nodes]
        assert codes == ["16", "16.1", "16.2"]

        root = sample_template.nodes[0]
        assert sorted(child.code for child in root.children) == ["16.1", "16.2"]
        assert sample_template.nodes[1].parent is root

    def test_node_defaults(self, sample_template: StructureTemplate):
        """Test document type, rules and required flags default sensibly."""
        node = sample_template.nodes[2]
        assert node.document_type == DocumentType.PDF
        assert node.validation_rules == []
        assert node.required is False

    def test_code_unique_per_template(self, session: Session, sample_template: StructureTemplate):
        """Test a code cannot repeat within one template."""
        session.add(StructureNode(template_id=sample_template.id, code="16.1", title="Duplicate"))
        with pytest.raises(IntegrityError):
            session.commit()

    def test_same_code_in_other_template(self, session: Session, sample_template: StructureTemplate):
        """Test codes are only unique per template."""
        other = StructureTemplate(name="Other", version=2)
        session.add(other)
        session.flush()
        session.add(StructureNode(template_id=other.id, code="16.1", title="Protocol"))
        session.commit()

        assert len(other.nodes) == 1


class TestDocument:
    """Test Document and its child rows."""

    def test_document_defaults(self, session: Session, sample_study: Study, node_by_code):
        """Test a new document starts as a draft with no processing error."""
        document = Document(
            study_id=sample_study.id,
            slot_id=node_by_code("16.1").id,
            source_file_name="protocol.pdf",
            source_path="source/protocol.pdf",
            mime_type="application/pdf",
        )
        session.add(document)
        session.commit()

        assert document.status == DocumentStatus.DRAFT
        assert document.version == 1
        assert document.processing_error is None
        assert document.slot.code == "16.1"

    def test_version_unique_per_slot(self, session: Session, add_document):
        """Test the same version cannot be uploaded twice to one slot."""
        add_document("16.1", "source/a.pdf")
        with pytest.raises(IntegrityError):
            add_document("16.1", "source/b.pdf")

    def test_annotation_defaults(self, session: Session, approved_protocol: Document):
        """Test annotations open by default with a generic author name."""
        annotation = Annotation(
            document_id=approved_protocol.id,
            author_id="reviewer-1",
            type=AnnotationType.NOTE,
            page_number=1,
            content="Looks good",
            coordinates={"x": 10, "y": 20},
        )
        session.add(annotation)
        session.commit()

        assert annotation.status == AnnotationStatus.OPEN
        assert annotation.author_name == "Reviewer"
        assert annotation.coordinates == {"x": 10, "y": 20}
        assert annotation.resolved_at is None


class TestCascadeDeletes:
    """Test cascade delete behavior."""

    def test_cascade_delete_document(self, session: Session, approved_protocol: Document):
        """Test deleting a document removes its annotations, results and history."""
        session.add_all(
            [
                Annotation(
                    document_id=approved_protocol.id,
                    author_id="reviewer-1",
                    type=AnnotationType.QUESTION,
                    page_number=1,
                    content="Why?",
                ),
                ValidationResult(
                    document_id=approved_protocol.id,
                    rule_id="rule-1",
                    rule_name="pdf-version",
                    passed=True,
                    details={"version": "1.7"},
                ),
                DocumentStatusHistory(
                    document_id=approved_protocol.id,
                    from_status=DocumentStatus.IN_REVIEW,
                    to_status=DocumentStatus.APPROVED,
                ),
            ]
        )
        session.commit()

        session.delete(approved_protocol)
        session.commit()

        assert session.query(Annotation).count() == 0
        assert session.query(ValidationResult).count() == 0
        assert session.query(DocumentStatusHistory).count() == 0

    def test_cascade_delete_study(self, session: Session, sample_study: Study, approved_protocol: Document):
        """Test deleting a study removes its documents but keeps the template."""
        template_id = sample_study.active_template_id
        session.delete(sample_study)
        session.commit()

        assert session.query(Document).count() == 0
        assert session.get(StructureTemplate, template_id) is not None
