"""
PDF processing entry points: load, edit outline and links, save.

`process_pdf` works on an open document; the *_file helpers wrap it with
storage-relative load/save.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

import fitz  # PyMuPDF

from ectd_packager.pdf.bookmark_writer import (
    BookmarkEntry,
    BookmarkInjectionResult,
    has_bookmarks,
    inject_bookmarks,
    remove_bookmarks,
)
from ectd_packager.pdf.hyperlink_processor import (
    HyperlinkProcessingOptions,
    HyperlinkProcessingResult,
    process_hyperlinks,
)
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)


@dataclass
class PdfProcessingOptions:
    bookmarks: list[BookmarkEntry] | None = None
    remove_existing_bookmarks: bool = False
    hyperlink_options: HyperlinkProcessingOptions | None = None
    process_hyperlinks: bool = True


@dataclass
class PdfProcessingResult:
    success: bool
    bookmark_result: BookmarkInjectionResult | None = None
    hyperlink_result: HyperlinkProcessingResult | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


def process_pdf(doc: fitz.Document, options: PdfProcessingOptions | None = None) -> PdfProcessingResult:
    """
    Apply outline replacement and hyperlink fix-up to an open document.

    The outline is replaced wholesale when bookmarks are given; links are
    processed only when hyperlink options are supplied.
    """
    options = options or PdfProcessingOptions()
    warnings: list[str] = []
    bookmark_result = None
    hyperlink_result = None

    try:
        if options.remove_existing_bookmarks and not options.bookmarks:
            remove_bookmarks(doc)
            bookmark_result = BookmarkInjectionResult(success=True, warnings=["Existing bookmarks removed"])
        elif options.bookmarks:
            if has_bookmarks(doc):
                remove_bookmarks(doc)
                warnings.append("Existing bookmarks were replaced")
            bookmark_result = inject_bookmarks(doc, options.bookmarks)
            warnings.extend(bookmark_result.warnings)

        if options.process_hyperlinks and options.hyperlink_options is not None:
            hyperlink_result = process_hyperlinks(doc, options.hyperlink_options)
            warnings.extend(hyperlink_result.warnings)

        return PdfProcessingResult(
            success=True,
            bookmark_result=bookmark_result,
            hyperlink_result=hyperlink_result,
            warnings=warnings,
        )
    except Exception as e:
        logger.error(f"PDF processing failed: {e}")
        return PdfProcessingResult(
            success=False,
            bookmark_result=bookmark_result,
            hyperlink_result=hyperlink_result,
            warnings=warnings,
            error=f"PDF processing failed: {e}",
        )


def open_pdf_bytes(pdf_bytes: bytes) -> fitz.Document:
    return fitz.open(stream=pdf_bytes, filetype="pdf")


def pdf_to_bytes(doc: fitz.Document) -> bytes:
    """Serialize with unreferenced objects dropped."""
    return doc.tobytes(garbage=1, deflate=True)


async def load_pdf(file_path: str, storage: LocalStorage | None = None) -> fitz.Document:
    storage = storage or get_storage()
    pdf_bytes = await storage.read_bytes(file_path)
    return open_pdf_bytes(pdf_bytes)


async def save_pdf(doc: fitz.Document, file_path: str, storage: LocalStorage | None = None) -> None:
    storage = storage or get_storage()
    await storage.write_bytes(file_path, pdf_to_bytes(doc))


async def process_pdf_file(
    file_path: str,
    options: PdfProcessingOptions | None = None,
    storage: LocalStorage | None = None,
) -> PdfProcessingResult:
    """Process a stored PDF in place."""
    try:
        doc = await load_pdf(file_path, storage)
        try:
            result = process_pdf(doc, options)
            if result.success:
                await save_pdf(doc, file_path, storage)
        finally:
            doc.close()
        return result
    except Exception as e:
        logger.error(f"Failed to process PDF file {file_path}: {e}")
        return PdfProcessingResult(success=False, error=f"Failed to process PDF file: {e}")


async def process_pdf_to_file(
    input_path: str,
    output_path: str | Path,
    options: PdfProcessingOptions | None = None,
    storage: LocalStorage | None = None,
) -> PdfProcessingResult:
    """
    Process a stored PDF and write the result to an absolute output path.

    The output lives outside the upload store (e.g. an export directory).
    """
    try:
        doc = await load_pdf(input_path, storage)
        try:
            result = process_pdf(doc, options)
            if result.success:
                out = Path(output_path)
                data = pdf_to_bytes(doc)

                def _write() -> None:
                    out.parent.mkdir(parents=True, exist_ok=True)
                    out.write_bytes(data)

                await asyncio.to_thread(_write)
        finally:
            doc.close()
        return result
    except Exception as e:
        logger.error(f"Failed to process PDF file {input_path}: {e}")
        return PdfProcessingResult(success=False, error=f"Failed to process PDF file: {e}")


async def add_bookmarks_to_pdf(
    file_path: str,
    bookmarks: list[BookmarkEntry],
    storage: LocalStorage | None = None,
) -> BookmarkInjectionResult:
    try:
        doc = await load_pdf(file_path, storage)
        try:
            result = inject_bookmarks(doc, bookmarks)
            if result.success:
                await save_pdf(doc, file_path, storage)
        finally:
            doc.close()
        return result
    except Exception as e:
        return BookmarkInjectionResult(success=False, error=f"Failed to add bookmarks: {e}")


async def fix_hyperlinks_in_pdf(
    file_path: str,
    options: HyperlinkProcessingOptions | None = None,
    storage: LocalStorage | None = None,
) -> HyperlinkProcessingResult:
    try:
        doc = await load_pdf(file_path, storage)
        try:
            result = process_hyperlinks(doc, options)
            if result.success:
                await save_pdf(doc, file_path, storage)
        finally:
            doc.close()
        return result
    except Exception as e:
        return HyperlinkProcessingResult(success=False, error=f"Failed to fix hyperlinks: {e}")
