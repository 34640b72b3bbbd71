"""
Cover page generator.

Produces a standalone PDF with study metadata and a table of contents whose
entries are GoToR links to the packaged documents, relative to the cover
page's fixed location at m1/us/cover.pdf. The outline mirrors the TOC.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from datetime import datetime

import fitz  # PyMuPDF

from ectd_packager.packaging.hierarchy import code_depth, code_sort_key
from ectd_packager.packaging.types import (
    CoverPageConfig,
    CoverPageMetadata,
    PackageFile,
    PackageManifest,
    TocEntry,
)
from ectd_packager.pdf.bookmark_writer import BookmarkEntry, inject_bookmarks
from ectd_packager.pdf.objects import get_annot_xrefs, new_object, pdf_string, set_annot_xrefs
from ectd_packager.pdf.writer import pdf_to_bytes

logger = logging.getLogger(__name__)

COVER_PAGE_PATH = "m1/us/cover.pdf"
COVER_PAGE_NODE_CODE = "1.0"

FONT = "helv"
BOLD_FONT = "hebo"
TEXT_COLOR = (0, 0, 0)
LINK_COLOR = (0, 0, 0.8)
SEPARATOR_COLOR = (0.5, 0.5, 0.5)
TOC_INDENT = 20
MIN_TRUNCATED_LENGTH = 10


@dataclass
class CoverPageResult:
    pdf_bytes: bytes
    target_path: str
    link_count: int = 0
    bookmark_count: int = 0
    warnings: list[str] = field(default_factory=list)

    def as_package_file(self) -> PackageFile:
        """The cover page as a manifest entry, so it is listed in index.xml."""
        return PackageFile(
            source_document_id="cover-page",
            source_path=self.target_path,
            target_path=self.target_path,
            node_code=COVER_PAGE_NODE_CODE,
            node_title="Cover Page",
            file_name=posixpath.basename(self.target_path),
            version=1,
            file_size=len(self.pdf_bytes),
        )


@dataclass
class _PendingLink:
    rect: fitz.Rect
    target: str


def get_cover_page_path() -> str:
    return COVER_PAGE_PATH


def build_toc_from_manifest(files: list[PackageFile]) -> list[TocEntry]:
    """One flat entry per file in numeric code order; level is segments - 1."""
    return [
        TocEntry(
            title=f"{file.node_code} - {file.node_title}",
            level=max(code_depth(file.node_code) - 1, 0),
            target_path=file.target_path,
            page_count=file.page_count,
        )
        for file in sorted(files, key=lambda f: code_sort_key(f.node_code))
    ]


def calculate_relative_path(cover_page_path: str, target_path: str) -> str:
    """
    Path from the cover page's directory to a package target.

    m1/us/cover.pdf -> m5/study-001/16-1/file.pdf gives
    ../../m5/study-001/16-1/file.pdf
    """
    depth = len(cover_page_path.split("/")) - 1
    if depth == 0:
        return target_path
    return "/".join([".."] * depth + [target_path])


def format_display_date(value: datetime) -> str:
    """October 19, 2026"""
    return f"{value:%B} {value.day}, {value.year}"


def text_width(text: str, font: str, size: float) -> float:
    return fitz.get_text_length(text, fontname=font, fontsize=size)


class _PageWriter:
    """Draws on one page, tracking the baseline from the top margin down."""

    def __init__(self, page: fitz.Page, config: CoverPageConfig):
        self.page = page
        self.config = config
        self.y = config.margins.top + config.font_size.title
        self.content_width = config.page_width - config.margins.left - config.margins.right
        self.links: list[_PendingLink] = []

    def has_space(self, height: float) -> bool:
        return self.y + height < self.config.page_height - self.config.margins.bottom

    def space(self, points: float) -> None:
        self.y += points

    def _advance(self, size: float) -> None:
        self.y += size * self.config.line_height

    def centered(self, text: str, size: float, font: str) -> None:
        x = (self.config.page_width - text_width(text, font, size)) / 2
        self.page.insert_text((x, self.y), text, fontname=font, fontsize=size, color=TEXT_COLOR)
        self._advance(size)

    def heading(self, text: str) -> None:
        size = self.config.font_size.heading
        self.page.insert_text(
            (self.config.margins.left, self.y), text, fontname=BOLD_FONT, fontsize=size, color=TEXT_COLOR
        )
        self._advance(size)

    def labeled(self, label: str, value: str) -> None:
        size = self.config.font_size.body
        prefix = f"{label}: "
        x = self.config.margins.left
        self.page.insert_text((x, self.y), prefix, fontname=BOLD_FONT, fontsize=size, color=TEXT_COLOR)
        self.page.insert_text(
            (x + text_width(prefix, BOLD_FONT, size), self.y),
            value,
            fontname=FONT,
            fontsize=size,
            color=TEXT_COLOR,
        )
        self._advance(size)

    def separator(self) -> None:
        y = self.y - 5
        self.page.draw_line(
            (self.config.margins.left, y),
            (self.config.page_width - self.config.margins.right, y),
            color=SEPARATOR_COLOR,
            width=0.5,
        )
        self.y += 15

    def toc_entry(self, entry: TocEntry, relative_path: str) -> None:
        size = self.config.font_size.body
        indent = entry.level * TOC_INDENT
        x = self.config.margins.left + indent

        text = entry.title
        if entry.page_count:
            text += f" [{entry.page_count} pg]"

        max_width = self.content_width - indent - 20
        while text_width(text, FONT, size) > max_width and len(text) > MIN_TRUNCATED_LENGTH:
            text = text[:-4] + "..."

        width = text_width(text, FONT, size)
        self.page.insert_text((x, self.y), text, fontname=FONT, fontsize=size, color=LINK_COLOR)
        self.links.append(
            _PendingLink(
                rect=fitz.Rect(x - 2, self.y - size - 1, x + width + 2, self.y + 3),
                target=relative_path,
            )
        )
        self._advance(size)


def _add_goto_remote_links(
    doc: fitz.Document,
    page_index: int,
    page_height: float,
    links: list[_PendingLink],
) -> None:
    """Attach GoToR link annotations opening page 1 of each target (fit view)."""
    if not links:
        return
    page_xref = doc.page_xref(page_index)
    annots = get_annot_xrefs(doc, page_xref)

    for link in links:
        # PDF user space has its origin bottom-left
        x0, x1 = link.rect.x0, link.rect.x1
        y0, y1 = page_height - link.rect.y1, page_height - link.rect.y0
        rect = f"[{x0:.2f} {y0:.2f} {x1:.2f} {y1:.2f}]"
        target = pdf_string(link.target)
        annots.append(
            new_object(
                doc,
                f"<</Type/Annot/Subtype/Link/Rect{rect}/Border[0 0 0]"
                f"/A<</S/GoToR/F<</Type/Filespec/F{target}/UF{target}>>/D[0/Fit]>>>>",
            )
        )

    set_annot_xrefs(doc, page_xref, annots)


def generate_cover_page(
    manifest: PackageManifest,
    metadata: CoverPageMetadata,
    config: CoverPageConfig | None = None,
) -> CoverPageResult:
    """
    Render the cover page PDF.

    A new page (with a "continued" heading) starts whenever the next TOC
    entry would run into the bottom margin.
    """
    config = config or CoverPageConfig()
    warnings: list[str] = []
    toc_entries = build_toc_from_manifest(manifest.files)
    entry_pages: list[int] = []

    doc = fitz.open()
    try:
        writers: list[_PageWriter] = []

        def new_page() -> _PageWriter:
            page = doc.new_page(width=config.page_width, height=config.page_height)
            writer = _PageWriter(page, config)
            writers.append(writer)
            return writer

        writer = new_page()
        writer.centered("CLINICAL STUDY REPORT", config.font_size.title, BOLD_FONT)
        writer.centered("Electronic Common Technical Document Package", config.font_size.heading, FONT)
        writer.space(20)
        writer.separator()
        writer.space(10)

        writer.labeled("Sponsor", metadata.sponsor)
        writer.labeled("Protocol", metadata.study_number)
        if metadata.product_name:
            writer.labeled("Product", metadata.product_name)
        if metadata.application_number:
            application = metadata.application_number
            if metadata.application_type:
                application = f"{metadata.application_type} {application}"
            writer.labeled("Application", application)
        if metadata.therapeutic_area:
            writer.labeled("Therapeutic Area", metadata.therapeutic_area)
        writer.labeled("Submission", f"{metadata.submission_type} ({metadata.sequence_number})")
        writer.labeled("Date", format_display_date(metadata.generated_at))

        writer.space(10)
        writer.separator()
        writer.space(20)

        writer.heading("TABLE OF CONTENTS")
        writer.space(10)

        entry_height = config.font_size.body * config.line_height
        for entry in toc_entries:
            if not writer.has_space(entry_height):
                writer = new_page()
                writer.heading("TABLE OF CONTENTS (continued)")
                writer.space(10)
            writer.toc_entry(entry, calculate_relative_path(COVER_PAGE_PATH, entry.target_path))
            entry_pages.append(len(writers))

        # Page objects must be released before editing annotations by xref
        pending = [w.links for w in writers]
        writers.clear()
        del writer
        for page_index, links in enumerate(pending):
            _add_goto_remote_links(doc, page_index, config.page_height, links)
        link_count = sum(len(links) for links in pending)

        bookmark_count = 0
        if config.include_bookmarks and toc_entries:
            bookmarks = [
                BookmarkEntry(
                    title="Cover Page",
                    page_number=1,
                    children=[
                        BookmarkEntry(title="Header", page_number=1),
                        BookmarkEntry(
                            title="Table of Contents",
                            page_number=1,
                            children=[
                                BookmarkEntry(title=entry.title, page_number=page_number)
                                for entry, page_number in zip(toc_entries, entry_pages)
                            ],
                        ),
                    ],
                )
            ]
            bookmark_result = inject_bookmarks(doc, bookmarks)
            bookmark_count = bookmark_result.bookmark_count
            warnings.extend(bookmark_result.warnings)

        pdf_bytes = pdf_to_bytes(doc)
    finally:
        doc.close()

    logger.info(f"[CoverPage] {link_count} TOC link(s), {bookmark_count} bookmark(s)")

    return CoverPageResult(
        pdf_bytes=pdf_bytes,
        target_path=COVER_PAGE_PATH,
        link_count=link_count,
        bookmark_count=bookmark_count,
        warnings=warnings,
    )
