from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ectd_packager.database.base import (
    Base,
    created_at_column,
    id_column,
    updated_at_column,
)
from ectd_packager.models.enums import AnnotationStatus, AnnotationType

if TYPE_CHECKING:
    from ectd_packager.models.document import Document


class Annotation(Base):
    """Reviewer comment pinned to a document page."""

    __tablename__ = "annotations"

    id: Mapped[str] = id_column()
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    author_name: Mapped[str] = mapped_column(String(255), default="Reviewer", nullable=False)
    type: Mapped[AnnotationType] = mapped_column(
        SAEnum(AnnotationType, native_enum=False),
        nullable=False,
    )
    status: Mapped[AnnotationStatus] = mapped_column(
        SAEnum(AnnotationStatus, native_enum=False),
        default=AnnotationStatus.OPEN,
        index=True,
        nullable=False,
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    coordinates: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    document: Mapped["Document"] = relationship("Document", back_populates="annotations")
