from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ectd_packager.database.base import (
    Base,
    created_at_column,
    id_column,
    updated_at_column,
)
from ectd_packager.models.enums import DocumentStatus

if TYPE_CHECKING:
    from ectd_packager.models.annotation import Annotation
    from ectd_packager.models.structure import StructureNode
    from ectd_packager.models.study import Study
    from ectd_packager.models.validation import ValidationResult


class Document(Base):
    """
    Uploaded artifact filling a structure slot.

    Several versions may target the same slot; documents are never deleted,
    only superseded. `source_path` is relative to the upload byte store.
    """

    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("study_id", "slot_id", "version", name="uq_documents_study_slot_version"),
    )

    id: Mapped[str] = id_column()
    study_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("studies.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    slot_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("structure_nodes.id", ondelete="RESTRICT"),
        index=True,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    source_file_name: Mapped[str] = mapped_column(String(500), index=True, nullable=False)
    source_path: Mapped[str] = mapped_column(String(1000), nullable=False)
    processed_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, native_enum=False),
        default=DocumentStatus.DRAFT,
        index=True,
        nullable=False,
    )
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pdf_version: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_pdf_a: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    # Relationships
    study: Mapped["Study"] = relationship("Study", back_populates="documents")
    slot: Mapped["StructureNode"] = relationship("StructureNode", back_populates="documents")
    annotations: Mapped[list["Annotation"]] = relationship(
        "Annotation",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    validation_results: Mapped[list["ValidationResult"]] = relationship(
        "ValidationResult",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    status_history: Mapped[list["DocumentStatusHistory"]] = relationship(
        "DocumentStatusHistory",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DocumentStatusHistory.created_at",
    )


class DocumentStatusHistory(Base):
    """Audit trail of document status transitions."""

    __tablename__ = "document_status_history"

    id: Mapped[str] = id_column()
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    from_status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, native_enum=False),
        nullable=False,
    )
    to_status: Mapped[DocumentStatus] = mapped_column(
        SAEnum(DocumentStatus, native_enum=False),
        nullable=False,
    )
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    user_name: Mapped[str] = mapped_column(String(255), default="System", nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = created_at_column()

    document: Mapped["Document"] = relationship("Document", back_populates="status_history")
