"""
Hyperlink extraction, classification and validation.

Every link annotation in every packaged PDF is decoded, classified as
internal, cross-document or external, and checked against the document
itself or the package manifest. The resulting report is exported as CSV
alongside the package.
"""

import asyncio
import csv
import io
import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

import fitz  # PyMuPDF

from ectd_packager.packaging.types import PackageManifest
from ectd_packager.pdf.objects import (
    get_annot_xrefs,
    get_key,
    get_name,
    get_text,
    has_key,
    locate_dict,
    page_number_map,
    page_refs,
    resolve_page_target,
)
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)

LinkType = Literal["internal", "cross-document", "external", "unknown"]


@dataclass
class ExtractedLink:
    source_file: str
    page_number: int
    link_type: LinkType = "unknown"
    link_text: str | None = None
    target_uri: str | None = None
    target_destination: str | None = None
    target_page: int | None = None
    rect: dict[str, float] | None = None


@dataclass
class LinkValidationResult:
    link: ExtractedLink
    is_valid: bool
    resolved_path: str | None = None
    error: str | None = None


@dataclass
class HyperlinkReport:
    total_links: int = 0
    by_type: dict[str, int] = field(
        default_factory=lambda: {"internal": 0, "crossDocument": 0, "external": 0, "unknown": 0}
    )
    broken_links: list[LinkValidationResult] = field(default_factory=list)
    external_links: list[ExtractedLink] = field(default_factory=list)
    validated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: list[str] = field(default_factory=list)


def _extract_rect(doc: fitz.Document, annot_xref: int) -> dict[str, float] | None:
    kind, value = get_key(doc, annot_xref, "Rect")
    if kind != "array":
        return None
    try:
        x1, y1, x2, y2 = (float(v) for v in value.strip("[]").split()[:4])
    except ValueError:
        return None
    return {
        "x": min(x1, x2),
        "y": min(y1, y2),
        "width": abs(x2 - x1),
        "height": abs(y2 - y1),
    }


def _file_spec_target(doc: fitz.Document, action_xref: int, prefix: str) -> str | None:
    location = locate_dict(doc, action_xref, f"{prefix}F")
    if location is not None:
        spec_xref, spec_prefix = location
        return get_text(doc, spec_xref, f"{spec_prefix}F") or get_text(doc, spec_xref, f"{spec_prefix}UF")
    return get_text(doc, action_xref, f"{prefix}F")


def extract_links_from_document(doc: fitz.Document, source_file: str) -> list[ExtractedLink]:
    """Decode every link annotation of an open document."""
    links: list[ExtractedLink] = []
    page_numbers = page_number_map(doc)

    for page_number, page_xref in enumerate(page_refs(doc), start=1):
        for annot_xref in get_annot_xrefs(doc, page_xref):
            if get_name(doc, annot_xref, "Subtype") != "Link":
                continue

            link = ExtractedLink(
                source_file=source_file,
                page_number=page_number,
                rect=_extract_rect(doc, annot_xref),
            )

            location = locate_dict(doc, annot_xref, "A")
            if location is not None:
                action_xref, prefix = location
                action_type = get_name(doc, action_xref, f"{prefix}S")

                if action_type == "URI":
                    uri = get_text(doc, action_xref, f"{prefix}URI")
                    if uri:
                        link.target_uri = uri
                        link.link_type = classify_link(link, source_file)
                elif action_type == "GoTo":
                    page, named = resolve_page_target(doc, action_xref, f"{prefix}D", page_numbers)
                    if page:
                        link.target_page = page
                        link.link_type = "internal"
                    elif named:
                        link.target_destination = named
                        link.link_type = "internal"
                elif action_type == "GoToR":
                    target = _file_spec_target(doc, action_xref, prefix)
                    if target:
                        link.target_uri = target
                        dest_kind, dest_value = get_key(doc, action_xref, f"{prefix}D")
                        if dest_kind in ("string", "name"):
                            link.target_destination = dest_value.lstrip("/") if dest_kind == "name" else dest_value
                        link.link_type = "cross-document"
                elif action_type == "Launch":
                    target = _file_spec_target(doc, action_xref, prefix)
                    if target:
                        link.target_uri = target
                        link.link_type = "cross-document"

            if link.link_type == "unknown" and has_key(doc, annot_xref, "Dest"):
                page, named = resolve_page_target(doc, annot_xref, "Dest", page_numbers)
                if page:
                    link.target_page = page
                    link.link_type = "internal"
                elif named:
                    link.target_destination = named
                    link.link_type = "internal"

            if (
                link.link_type != "unknown"
                or link.target_uri
                or link.target_destination
                or link.target_page
            ):
                links.append(link)

    return links


async def extract_links_from_pdf(file_path: str, storage: LocalStorage | None = None) -> list[ExtractedLink]:
    """
    Extract links from a stored PDF.

    Unreadable files are logged and yield an empty list.
    """
    storage = storage or get_storage()
    try:
        pdf_bytes = await storage.read_bytes(file_path)

        def _extract() -> list[ExtractedLink]:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                return extract_links_from_document(doc, file_path)

        return await asyncio.to_thread(_extract)
    except Exception as e:
        logger.error(f"[HyperlinkExtraction] Failed to extract links from {file_path}: {e}")
        return []


def classify_link(link: ExtractedLink, current_file: str) -> LinkType:
    """
    Decide the link type.

    Order: existing internal/cross-document type, URI scheme, file-like
    suffix or relative path, then page/destination targets.
    """
    if link.link_type in ("internal", "cross-document"):
        return link.link_type

    if link.target_uri:
        uri = link.target_uri.lower()
        if uri.startswith(("http://", "https://", "mailto:", "ftp://")):
            return "external"
        if uri.startswith("javascript:"):
            return "unknown"
        if uri.endswith(".pdf") or ".pdf#" in uri:
            return "cross-document"
        if uri.startswith(("../", "./")) or "://" not in uri:
            return "cross-document"

    if link.target_page is not None or link.target_destination:
        if link.target_destination and ".pdf" in link.target_destination:
            return "cross-document"
        return "internal"

    return "unknown"


def validate_internal_link(link: ExtractedLink, doc: fitz.Document) -> LinkValidationResult:
    """
    Check an internal link against the open document.

    Named destinations are accepted when the catalog has any destination
    dictionary (/Names or /Dests); the specific name is not looked up.
    """
    page_count = doc.page_count

    if link.target_page is not None:
        if link.target_page < 1 or link.target_page > page_count:
            return LinkValidationResult(
                link=link,
                is_valid=False,
                error=f"Target page {link.target_page} does not exist (document has {page_count} pages)",
            )
        return LinkValidationResult(link=link, is_valid=True)

    if link.target_destination:
        catalog = doc.pdf_catalog()
        if has_key(doc, catalog, "Names") or has_key(doc, catalog, "Dests"):
            return LinkValidationResult(link=link, is_valid=True)
        return LinkValidationResult(
            link=link,
            is_valid=False,
            error=f'Named destination "{link.target_destination}" cannot be verified (no destination dictionary)',
        )

    return LinkValidationResult(
        link=link,
        is_valid=False,
        error="Internal link has no target page or destination",
    )


def parse_cross_document_target(uri: str) -> tuple[str, str | None]:
    """Split "./file.pdf#dest" into ("file.pdf", "dest")."""
    clean = uri[2:] if uri.startswith("./") else uri
    path, sep, destination = clean.partition("#")
    return path, destination if sep else None


def validate_cross_document_link(link: ExtractedLink, manifest: PackageManifest) -> LinkValidationResult:
    """
    Resolve a cross-document link against the manifest.

    Tried in order per file: target-path suffix, case-insensitive file name,
    substring/basename overlap; then a relative join from the source file's
    directory. First match wins.
    """
    if not link.target_uri:
        return LinkValidationResult(link=link, is_valid=False, error="Cross-document link has no target URI")

    file_path, _ = parse_cross_document_target(link.target_uri)
    normalized = posixpath.normpath(file_path.replace("\\", "/"))
    target_name = posixpath.basename(normalized).lower()

    for file in manifest.files:
        target_path = file.target_path.replace("\\", "/")
        if target_path.endswith(normalized):
            return LinkValidationResult(link=link, is_valid=True, resolved_path=file.target_path)
        if file.file_name.lower() == target_name:
            return LinkValidationResult(link=link, is_valid=True, resolved_path=file.target_path)
        if normalized in target_path or posixpath.basename(target_path) in normalized:
            return LinkValidationResult(link=link, is_valid=True, resolved_path=file.target_path)

    source_dir = posixpath.dirname(link.source_file.replace("\\", "/"))
    resolved = posixpath.normpath(posixpath.join(source_dir, file_path.replace("\\", "/")))
    for file in manifest.files:
        target_path = file.target_path.replace("\\", "/")
        if target_path.endswith(resolved) or resolved.endswith(target_path):
            return LinkValidationResult(link=link, is_valid=True, resolved_path=file.target_path)

    return LinkValidationResult(
        link=link,
        is_valid=False,
        error=f"Target file not found in package: {link.target_uri}",
    )


_TYPE_COUNTER = {
    "internal": "internal",
    "cross-document": "crossDocument",
    "external": "external",
}


def _check_document_links(
    doc: fitz.Document,
    source_file: str,
    manifest: PackageManifest,
) -> list[tuple[ExtractedLink, LinkValidationResult]]:
    """Classify and validate every link of one open document."""
    checked = []
    for link in extract_links_from_document(doc, source_file):
        link.link_type = classify_link(link, source_file)

        if link.link_type == "internal":
            result = validate_internal_link(link, doc)
        elif link.link_type == "cross-document":
            result = validate_cross_document_link(link, manifest)
        elif link.link_type == "external":
            result = LinkValidationResult(link=link, is_valid=True)
        else:
            result = LinkValidationResult(
                link=link,
                is_valid=False,
                error="Unknown link type - unable to validate",
            )
        checked.append((link, result))
    return checked


async def generate_hyperlink_report(
    manifest: PackageManifest,
    storage: LocalStorage | None = None,
) -> HyperlinkReport:
    """
    Extract, classify and validate every link in every manifest file.

    Each file is opened once, off the event loop. External links are not
    broken, only flagged. A file that cannot be read adds a warning and the
    report continues with the next file.
    """
    storage = storage or get_storage()
    report = HyperlinkReport()

    for file in manifest.files:
        try:
            pdf_bytes = await storage.read_bytes(file.source_path)
        except OSError as e:
            logger.warning(f"[HyperlinkReport] Could not read {file.source_path}: {e}")
            report.warnings.append(f"Failed to load PDF for validation: {file.file_name}")
            continue

        def _check() -> list[tuple[ExtractedLink, LinkValidationResult]]:
            with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
                return _check_document_links(doc, file.source_path, manifest)

        try:
            checked = await asyncio.to_thread(_check)
        except Exception as e:
            logger.warning(f"[HyperlinkReport] Failed to process {file.source_path}: {e}")
            report.warnings.append(f"Failed to process file {file.file_name}: {e}")
            continue

        for link, result in checked:
            report.total_links += 1
            report.by_type[_TYPE_COUNTER.get(link.link_type, "unknown")] += 1
            if link.link_type == "external":
                report.external_links.append(link)
            if not result.is_valid:
                report.broken_links.append(result)

    if report.external_links:
        report.warnings.append(
            f"Found {len(report.external_links)} external link(s). "
            "External HTTP/HTTPS links are not allowed in eCTD submissions."
        )
    if report.by_type["unknown"] > 0:
        report.warnings.append(f"Found {report.by_type['unknown']} link(s) with unrecognized format.")

    return report


def export_report_as_csv(report: HyperlinkReport) -> str:
    """
    Render broken and flagged links as CSV with a trailing summary block.

    Columns: Source File, Page, Link Type, Target, Status, Error.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Source File", "Page", "Link Type", "Target", "Status", "Error"])

    for result in report.broken_links:
        link = result.link
        if link.target_uri:
            target = link.target_uri
        elif link.target_destination:
            target = link.target_destination
        elif link.target_page:
            target = f"page {link.target_page}"
        else:
            target = "unknown"
        writer.writerow(
            [
                posixpath.basename(link.source_file),
                link.page_number,
                link.link_type,
                target,
                "BROKEN",
                result.error or "",
            ]
        )

    for link in report.external_links:
        writer.writerow(
            [
                posixpath.basename(link.source_file),
                link.page_number,
                link.link_type,
                link.target_uri or "unknown",
                "FLAGGED",
                "External links not allowed in eCTD",
            ]
        )

    writer.writerow([])
    writer.writerow(["--- Summary ---"])
    writer.writerow(["Total Links", report.total_links])
    writer.writerow(["Internal Links", report.by_type["internal"]])
    writer.writerow(["Cross-Document Links", report.by_type["crossDocument"]])
    writer.writerow(["External Links", report.by_type["external"]])
    writer.writerow(["Unknown Links", report.by_type["unknown"]])
    writer.writerow(["Broken Links", len(report.broken_links)])
    writer.writerow(["Validated At", report.validated_at.isoformat()])

    if report.warnings:
        writer.writerow([])
        writer.writerow(["--- Warnings ---"])
        for warning in report.warnings:
            writer.writerow([warning])

    return buffer.getvalue().removesuffix("\n")
