from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Enum as SAEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ectd_packager.database.base import Base, created_at_column, id_column
from ectd_packager.models.enums import ValidationSeverity

if TYPE_CHECKING:
    from ectd_packager.models.document import Document


class ValidationRule(Base):
    """
    Configurable per-document compliance rule.

    `check_fn` names an entry in the check-function registry; `params` are
    passed to it verbatim.
    """

    __tablename__ = "validation_rules"

    id: Mapped[str] = id_column()
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    check_fn: Mapped[str] = mapped_column(String(100), nullable=False)
    params: Mapped[dict[str, Any]] = mapped_column(default=dict, nullable=False)
    severity: Mapped[ValidationSeverity] = mapped_column(
        SAEnum(ValidationSeverity, native_enum=False),
        default=ValidationSeverity.ERROR,
        nullable=False,
    )
    auto_fix: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True, nullable=False)

    created_at: Mapped[datetime] = created_at_column()


class ValidationResult(Base):
    """Outcome of one rule run against one document."""

    __tablename__ = "validation_results"

    id: Mapped[str] = id_column()
    document_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    rule_id: Mapped[str] = mapped_column(String(36), nullable=False)
    rule_name: Mapped[str] = mapped_column(String(255), nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, index=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = created_at_column()

    document: Mapped["Document"] = relationship("Document", back_populates="validation_results")
