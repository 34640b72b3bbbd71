"""
Export artifact generation.

Lays out the ectd/ tree (processed PDFs, cover page, index.xml,
us-regional.xml), writes the audit sidecars next to it and seals the tree
into package.zip.
"""

import asyncio
import logging
import posixpath
import zipfile
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path

from pydantic import Field

from ectd_packager.packaging.bookmarks import BookmarkManifest, BookmarkNode
from ectd_packager.packaging.cover_page import CoverPageResult
from ectd_packager.packaging.errors import InvalidTargetPathError
from ectd_packager.packaging.hyperlinks import HyperlinkReport, export_report_as_csv
from ectd_packager.packaging.types import FolderNode, PackageManifest, XmlGenerationResult
from ectd_packager.packaging.xml_generator import XmlGenerationOptions, generate_ectd_xml
from ectd_packager.pdf import (
    BookmarkEntry,
    HyperlinkProcessingOptions,
    PdfProcessingOptions,
    build_path_map_from_manifest,
    process_pdf_to_file,
)
from ectd_packager.schemas.common import CamelModel
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)

ECTD_DIR = "ectd"
INDEX_XML = "index.xml"
REGIONAL_XML = "us-regional.xml"
BOOKMARK_MANIFEST_FILE = "bookmark-manifest.json"
HYPERLINK_REPORT_FILE = "hyperlink-report.csv"
QC_SUMMARY_FILE = "qc-summary.json"
PACKAGE_ZIP = "package.zip"
ZIP_COMPRESSION_LEVEL = 6


@dataclass
class ExportArtifacts:
    package_zip_path: Path
    index_xml_path: Path
    regional_xml_path: Path
    xml_result: XmlGenerationResult
    zip_size: int = 0
    # Sidecars are only written with include_artifacts
    bookmark_manifest_path: Path | None = None
    hyperlink_report_path: Path | None = None
    qc_summary_path: Path | None = None


@dataclass
class PdfProcessingFileResult:
    file_name: str
    success: bool
    bookmarks_injected: int = 0
    hyperlinks_processed: int = 0
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class EctdStructureResult:
    pdf_results: list[PdfProcessingFileResult] = field(default_factory=list)
    processed: int = 0
    failed: int = 0
    bookmarks_injected: int = 0
    hyperlinks_processed: int = 0


class ReadinessStats(CamelModel):
    ready: bool
    missing_required: int
    pending_approval: int
    validation_errors: int
    unresolved_annotations: int


class BookmarkStats(CamelModel):
    total_count: int
    max_depth: int
    warnings: int


class HyperlinkStats(CamelModel):
    total_count: int
    broken_count: int
    external_count: int


class XmlStats(CamelModel):
    leaf_count: int = 0
    has_index_xml: bool = False
    has_regional_xml: bool = False
    warnings: int = 0


class PdfProcessingStats(CamelModel):
    processed: int
    failed: int
    bookmarks_injected: int
    hyperlinks_processed: int
    warnings: list[str] = Field(default_factory=list)


class QcSummary(CamelModel):
    """Audit summary written as qc-summary.json."""

    study_id: str
    study_number: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    file_count: int
    total_size: int
    readiness: ReadinessStats
    bookmarks: BookmarkStats
    hyperlinks: HyperlinkStats
    xml: XmlStats
    pdf_processing: PdfProcessingStats | None = None


def validate_target_path(target_path: str) -> None:
    """
    Reject package paths that are absolute or escape the output directory.

    Raises:
        InvalidTargetPathError
    """
    normalized = posixpath.normpath(target_path.replace("\\", "/"))
    if normalized.startswith("..") or posixpath.isabs(normalized) or Path(target_path).is_absolute():
        raise InvalidTargetPathError(target_path)


def convert_to_bookmark_entry(node: BookmarkNode) -> BookmarkEntry:
    """Outline nodes without a page open page 1; every entry starts expanded."""
    return BookmarkEntry(
        title=node.title,
        page_number=node.page_number or 1,
        children=[convert_to_bookmark_entry(child) for child in node.children],
        is_open=True,
    )


def create_folder_structure(nodes: list[FolderNode], base_path: Path) -> None:
    for node in nodes:
        (base_path / node.path).mkdir(parents=True, exist_ok=True)
        create_folder_structure(node.children, base_path)


async def create_ectd_structure(
    manifest: PackageManifest,
    output_dir: Path,
    bookmarks: BookmarkManifest | None = None,
    process_pdfs: bool = True,
    storage: LocalStorage | None = None,
) -> EctdStructureResult:
    """
    Copy every manifest file to its target path under output_dir.

    PDFs get their document outline re-injected and cross-document links
    rewritten to package paths. A PDF that fails processing is copied
    unchanged and recorded as failed.

    Raises:
        InvalidTargetPathError: If a target path would escape output_dir
    """
    storage = storage or get_storage()
    output_dir = Path(output_dir)
    await asyncio.to_thread(create_folder_structure, manifest.folder_structure, output_dir)

    path_map = build_path_map_from_manifest(manifest.files)
    document_bookmarks: dict[str, list[BookmarkEntry]] = {}
    if bookmarks:
        for entry in bookmarks.document_bookmarks:
            if entry.bookmarks:
                document_bookmarks[entry.document_id] = [convert_to_bookmark_entry(b) for b in entry.bookmarks]

    result = EctdStructureResult()

    for file in manifest.files:
        validate_target_path(file.target_path)
        target = output_dir / file.target_path

        if not (process_pdfs and file.file_name.lower().endswith(".pdf")):
            await storage.copy_to(file.source_path, target)
            continue

        options = PdfProcessingOptions(
            bookmarks=document_bookmarks.get(file.source_document_id) or None,
            process_hyperlinks=True,
            hyperlink_options=HyperlinkProcessingOptions(
                base_path=file.target_path,
                path_map=path_map,
                # Flagged in the hyperlink report, not stripped
                remove_external_links=False,
                remove_mailto_links=False,
            ),
        )
        processed = await process_pdf_to_file(file.source_path, target, options, storage)

        if processed.success:
            injected = processed.bookmark_result.bookmark_count if processed.bookmark_result else 0
            links = processed.hyperlink_result.total_links if processed.hyperlink_result else 0
            result.processed += 1
            result.bookmarks_injected += injected
            result.hyperlinks_processed += links
            result.pdf_results.append(
                PdfProcessingFileResult(
                    file_name=file.file_name,
                    success=True,
                    bookmarks_injected=injected,
                    hyperlinks_processed=links,
                    warnings=processed.warnings,
                )
            )
        else:
            logger.warning(f"[ZipGenerator] PDF processing failed for {file.source_path}: {processed.error}")
            await storage.copy_to(file.source_path, target)
            result.failed += 1
            result.pdf_results.append(
                PdfProcessingFileResult(
                    file_name=file.file_name,
                    success=False,
                    error="PDF processing failed, original file included",
                )
            )

    return result


def _write_zip(source_dir: Path, output_path: Path) -> int:
    with zipfile.ZipFile(
        output_path,
        "w",
        compression=zipfile.ZIP_DEFLATED,
        compresslevel=ZIP_COMPRESSION_LEVEL,
    ) as archive:
        for path in sorted(source_dir.rglob("*")):
            if path.is_file():
                archive.write(path, path.relative_to(source_dir).as_posix())
    return output_path.stat().st_size


async def create_zip_archive(source_dir: Path, output_path: Path) -> int:
    """Zip the contents of source_dir (not the directory itself). Returns the archive size."""
    return await asyncio.to_thread(_write_zip, Path(source_dir), Path(output_path))


def build_qc_summary(
    manifest: PackageManifest,
    bookmarks: BookmarkManifest,
    hyperlinks: HyperlinkReport,
    xml_result: XmlGenerationResult | None = None,
    structure_result: EctdStructureResult | None = None,
) -> QcSummary:
    readiness = manifest.readiness

    pdf_processing = None
    if structure_result is not None:
        warnings: list[str] = []
        for item in structure_result.pdf_results:
            warnings.extend(item.warnings)
            if item.error:
                warnings.append(f"{item.file_name}: {item.error}")
        pdf_processing = PdfProcessingStats(
            processed=structure_result.processed,
            failed=structure_result.failed,
            bookmarks_injected=structure_result.bookmarks_injected,
            hyperlinks_processed=structure_result.hyperlinks_processed,
            warnings=warnings,
        )

    xml = XmlStats()
    if xml_result is not None:
        xml = XmlStats(
            leaf_count=len(xml_result.leaf_entries),
            has_index_xml=bool(xml_result.index_xml),
            has_regional_xml=bool(xml_result.regional_xml),
            warnings=len(xml_result.warnings),
        )

    return QcSummary(
        study_id=manifest.study_id,
        study_number=manifest.study_number,
        file_count=len(manifest.files),
        total_size=sum(file.file_size for file in manifest.files),
        readiness=ReadinessStats(
            ready=readiness.ready,
            missing_required=len(readiness.missing_required),
            pending_approval=len(readiness.pending_approval),
            validation_errors=readiness.validation_errors,
            unresolved_annotations=readiness.unresolved_annotations,
        ),
        bookmarks=BookmarkStats(
            total_count=bookmarks.total_count,
            max_depth=bookmarks.max_depth,
            warnings=len(bookmarks.warnings),
        ),
        hyperlinks=HyperlinkStats(
            total_count=hyperlinks.total_links,
            broken_count=len(hyperlinks.broken_links),
            external_count=len(hyperlinks.external_links),
        ),
        xml=xml,
        pdf_processing=pdf_processing,
    )


async def _write_text(path: Path, content: str) -> None:
    await asyncio.to_thread(path.write_text, content, encoding="utf-8")


async def generate_export_artifacts(
    manifest: PackageManifest,
    bookmarks: BookmarkManifest,
    hyperlinks: HyperlinkReport,
    output_dir: Path,
    xml_options: XmlGenerationOptions | None = None,
    cover_page: CoverPageResult | None = None,
    storage: LocalStorage | None = None,
    include_artifacts: bool = True,
) -> ExportArtifacts:
    """
    Write the full export under output_dir.

    The cover page is listed in index.xml alongside the manifest files.
    Checksums are taken from the files as written to ectd/, so they match
    what is inside package.zip. Only ectd/ goes into the archive; the JSON
    and CSV sidecars sit next to it.
    """
    output_dir = Path(output_dir)
    ectd_dir = output_dir / ECTD_DIR
    await asyncio.to_thread(ectd_dir.mkdir, parents=True, exist_ok=True)

    structure_result = await create_ectd_structure(manifest, ectd_dir, bookmarks=bookmarks, storage=storage)

    xml_manifest = manifest
    if cover_page:
        validate_target_path(cover_page.target_path)
        cover_path = ectd_dir / cover_page.target_path

        def _write_cover() -> None:
            cover_path.parent.mkdir(parents=True, exist_ok=True)
            cover_path.write_bytes(cover_page.pdf_bytes)

        await asyncio.to_thread(_write_cover)
        xml_manifest = manifest.model_copy(update={"files": [cover_page.as_package_file(), *manifest.files]})

    xml_options = replace(xml_options or XmlGenerationOptions(), checksum_root=ectd_dir)
    xml_result = await generate_ectd_xml(xml_manifest, xml_options, storage)

    index_xml_path = ectd_dir / INDEX_XML
    await _write_text(index_xml_path, xml_result.index_xml)
    regional_xml_path = ectd_dir / REGIONAL_XML
    if xml_result.regional_xml:
        await _write_text(regional_xml_path, xml_result.regional_xml)

    artifacts = ExportArtifacts(
        package_zip_path=output_dir / PACKAGE_ZIP,
        index_xml_path=index_xml_path,
        regional_xml_path=regional_xml_path,
        xml_result=xml_result,
    )

    if include_artifacts:
        artifacts.bookmark_manifest_path = output_dir / BOOKMARK_MANIFEST_FILE
        await _write_text(artifacts.bookmark_manifest_path, bookmarks.model_dump_json(by_alias=True, indent=2))

        artifacts.hyperlink_report_path = output_dir / HYPERLINK_REPORT_FILE
        await _write_text(artifacts.hyperlink_report_path, export_report_as_csv(hyperlinks))

        qc_summary = build_qc_summary(manifest, bookmarks, hyperlinks, xml_result, structure_result)
        artifacts.qc_summary_path = output_dir / QC_SUMMARY_FILE
        await _write_text(artifacts.qc_summary_path, qc_summary.model_dump_json(by_alias=True, indent=2))

    artifacts.zip_size = await create_zip_archive(ectd_dir, artifacts.package_zip_path)

    logger.info(
        f"[ZipGenerator] {manifest.study_number}: {len(manifest.files)} file(s), "
        f"{structure_result.processed} PDF(s) processed, {structure_result.failed} fallback(s), "
        f"package.zip {artifacts.zip_size} bytes"
    )
    return artifacts
