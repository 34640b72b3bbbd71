"""Structural packaging failures that abort the whole operation."""


class PackagingError(Exception):
    """Base class for packaging errors."""


class StudyNotFoundError(PackagingError):
    def __init__(self, study_id: str):
        self.study_id = study_id
        super().__init__(f"Study not found: {study_id}")


class NoActiveTemplateError(PackagingError):
    def __init__(self, study_id: str):
        self.study_id = study_id
        super().__init__(f"Study {study_id} has no active template")


class InvalidTargetPathError(PackagingError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Invalid target path: {path}")


class ExportCleanupError(PackagingError):
    def __init__(self, path: str):
        self.path = path
        super().__init__("Cannot clean up directory outside exports folder")


class DocumentNotFoundError(PackagingError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class InvalidSequenceNumberError(PackagingError):
    def __init__(self, sequence: str):
        self.sequence = sequence
        super().__init__(f"Invalid sequence number: {sequence!r} (expected 4 digits like \"0000\")")
