from enum import Enum


class StudyStatus(str, Enum):
    """Study lifecycle status."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class DocumentType(str, Enum):
    """Kind of artifact a structure node expects."""

    PDF = "PDF"
    DATASET = "DATASET"
    LISTING = "LISTING"
    FIGURE = "FIGURE"
    OTHER = "OTHER"


class DocumentStatus(str, Enum):
    """Document workflow state machine."""

    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    IN_REVIEW = "IN_REVIEW"
    CORRECTIONS_NEEDED = "CORRECTIONS_NEEDED"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"


class AnnotationType(str, Enum):
    """Review annotation types."""

    NOTE = "NOTE"
    QUESTION = "QUESTION"
    CORRECTION_REQUIRED = "CORRECTION_REQUIRED"
    FYI = "FYI"


class AnnotationStatus(str, Enum):
    """Review annotation status."""

    OPEN = "OPEN"
    RESOLVED = "RESOLVED"
    WONT_FIX = "WONT_FIX"


class ValidationSeverity(str, Enum):
    """Severity attached to validation rules and package issues."""

    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
