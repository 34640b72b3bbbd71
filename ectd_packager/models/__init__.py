from .enums import (
    AnnotationStatus,
    AnnotationType,
    DocumentStatus,
    DocumentType,
    StudyStatus,
    ValidationSeverity,
)
from .study import Study
from .structure import StructureNode, StructureTemplate
from .document import Document, DocumentStatusHistory
from .annotation import Annotation
from .validation import ValidationResult, ValidationRule

__all__ = [
    "AnnotationStatus",
    "AnnotationType",
    "DocumentStatus",
    "DocumentType",
    "StudyStatus",
    "ValidationSeverity",
    "Study",
    "StructureNode",
    "StructureTemplate",
    "Document",
    "DocumentStatusHistory",
    "Annotation",
    "ValidationResult",
    "ValidationRule",
]
