from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ectd_packager.database.base import (
    Base,
    created_at_column,
    id_column,
    updated_at_column,
)
from ectd_packager.models.enums import DocumentType

if TYPE_CHECKING:
    from ectd_packager.models.document import Document
    from ectd_packager.models.study import Study


class StructureTemplate(Base):
    """Named, versioned eCTD section layout shared by studies."""

    __tablename__ = "structure_templates"

    id: Mapped[str] = id_column()
    name: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    nodes: Mapped[list["StructureNode"]] = relationship(
        "StructureNode",
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StructureNode.sort_order",
    )
    studies: Mapped[list["Study"]] = relationship(
        "Study",
        back_populates="active_template",
    )


class StructureNode(Base):
    """
    One slot in a template's section tree.

    Hierarchy is stored twice: through the self-referential parent_id and
    through the dotted `code` ("16.2.1"). Codes are unique per template.
    """

    __tablename__ = "structure_nodes"
    __table_args__ = (
        UniqueConstraint("template_id", "code", name="uq_structure_nodes_template_code"),
    )

    id: Mapped[str] = id_column()
    template_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("structure_templates.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("structure_nodes.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    code: Mapped[str] = mapped_column(String(50), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    document_type: Mapped[DocumentType] = mapped_column(
        SAEnum(DocumentType, native_enum=False),
        default=DocumentType.PDF,
        nullable=False,
    )
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    validation_rules: Mapped[list[Any]] = mapped_column(default=list, nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    template: Mapped["StructureTemplate"] = relationship(
        "StructureTemplate",
        back_populates="nodes",
    )
    parent: Mapped["StructureNode | None"] = relationship(
        "StructureNode",
        back_populates="children",
        remote_side=[id],
    )
    children: Mapped[list["StructureNode"]] = relationship(
        "StructureNode",
        back_populates="parent",
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="slot",
    )
