from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ectd_packager.database.base import (
    Base,
    created_at_column,
    id_column,
    updated_at_column,
)
from ectd_packager.models.enums import StudyStatus

if TYPE_CHECKING:
    from ectd_packager.models.document import Document
    from ectd_packager.models.structure import StructureTemplate


class Study(Base):
    """
    Clinical study being prepared for submission.

    `study_number` is the sponsor protocol identifier (e.g. "ABC-123") and is
    used in eCTD folder paths.
    """

    __tablename__ = "studies"

    id: Mapped[str] = id_column()
    study_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    sponsor: Mapped[str] = mapped_column(String(255), nullable=False)
    therapeutic_area: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phase: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[StudyStatus] = mapped_column(
        SAEnum(StudyStatus, native_enum=False),
        default=StudyStatus.ACTIVE,
        index=True,
        nullable=False,
    )
    active_template_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("structure_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    # Relationships
    active_template: Mapped["StructureTemplate | None"] = relationship(
        "StructureTemplate",
        back_populates="studies",
    )
    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="study",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
