"""
Package assembly types.

Manifest, readiness, XML and cover-page shapes shared across the packaging
pipeline. All models serialize with camelCase keys.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import Field

from ectd_packager.schemas.common import CamelModel

SubmissionType = Literal["original", "amendment", "supplement"]
RegionalFormat = Literal["us", "eu", "ich"]
LeafOperation = Literal["new", "replace", "delete", "append"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PackageFile(CamelModel):
    """One selected document and where it lands in the package."""

    source_document_id: str
    source_path: str  # relative to the upload store
    target_path: str  # e.g. m5/study-001/16-2-1/listing.pdf
    node_code: str
    node_title: str
    file_name: str
    version: int
    page_count: int | None = None
    file_size: int = 0


class MissingRequiredNode(CamelModel):
    code: str
    title: str
    node_id: str


class PendingDocument(CamelModel):
    document_id: str
    file_name: str
    status: str
    node_code: str
    node_title: str


class ReadinessCheck(CamelModel):
    """Whether a study can be packaged, and what blocks it."""

    ready: bool
    missing_required: list[MissingRequiredNode] = Field(default_factory=list)
    pending_approval: list[PendingDocument] = Field(default_factory=list)
    validation_errors: int = 0
    unresolved_annotations: int = 0
    total_files: int = 0
    total_required_nodes: int = 0


class FolderNode(CamelModel):
    name: str
    path: str
    children: list["FolderNode"] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)


class PackageManifest(CamelModel):
    study_id: str
    study_number: str
    generated_at: datetime = Field(default_factory=_now)
    files: list[PackageFile] = Field(default_factory=list)
    readiness: ReadinessCheck
    folder_structure: list[FolderNode] = Field(default_factory=list)


class AssemblyOptions(CamelModel):
    include_approved: bool = True
    include_published: bool = True
    # Preview only; never for a regulatory submission
    include_drafts: bool = False


class PackageSummary(CamelModel):
    study_number: str
    total_nodes: int
    required_nodes: int
    documents_ready: int
    readiness: ReadinessCheck


# ============ eCTD XML ============


class LeafEntry(CamelModel):
    """A single file as referenced from index.xml."""

    id: str
    href: str  # always forward slashes
    checksum: str
    checksum_type: Literal["md5"] = "md5"
    file_size: int = 0
    operation: LeafOperation | None = None
    modified_file: str | None = None
    title: str
    node_code: str


class SequenceInfo(CamelModel):
    number: str
    type: SubmissionType
    description: str | None = None
    related_sequence: str | None = None


class SubmissionMetadata(CamelModel):
    sponsor: str
    study_number: str
    application_number: str | None = None
    application_type: str | None = None
    therapeutic_area: str | None = None
    product_name: str | None = None
    generic_name: str | None = None
    manufacturer: str | None = None
    submission_date: datetime = Field(default_factory=_now)


class EctdXmlConfig(CamelModel):
    ectd_version: str = "4.0"
    dtd_version: str = "3.3"
    region: RegionalFormat = "us"
    include_dtd: bool = True
    encoding: str = "UTF-8"
    pretty_print: bool = True


class XmlGenerationResult(CamelModel):
    index_xml: str
    regional_xml: str
    leaf_entries: list[LeafEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ============ Cover page ============


class Margins(CamelModel):
    top: float = 72
    bottom: float = 72
    left: float = 72
    right: float = 72


class FontSizes(CamelModel):
    title: float = 18
    heading: float = 14
    body: float = 11
    small: float = 9


class CoverPageConfig(CamelModel):
    """Page geometry in PDF points; defaults to US Letter."""

    page_width: float = 612
    page_height: float = 792
    margins: Margins = Field(default_factory=Margins)
    font_size: FontSizes = Field(default_factory=FontSizes)
    include_bookmarks: bool = True
    line_height: float = 1.4


class CoverPageMetadata(CamelModel):
    study_number: str
    sponsor: str
    therapeutic_area: str | None = None
    phase: str | None = None
    application_number: str | None = None
    application_type: str | None = None
    product_name: str | None = None
    submission_type: str
    sequence_number: str
    generated_at: datetime = Field(default_factory=_now)


class TocEntry(CamelModel):
    title: str
    level: int  # 0 = root
    target_path: str
    page_count: int | None = None
    children: list["TocEntry"] = Field(default_factory=list)
