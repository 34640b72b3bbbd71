"""Low-level PDF editing: outlines and link annotations."""

from .bookmark_writer import (
    BookmarkEntry,
    BookmarkInjectionResult,
    calculate_bookmark_depth,
    count_bookmark_entries,
    has_bookmarks,
    inject_bookmarks,
    remove_bookmarks,
)
from .hyperlink_processor import (
    HyperlinkProcessingOptions,
    HyperlinkProcessingResult,
    ProcessedLink,
    build_path_map_from_manifest,
    process_hyperlinks,
)
from .writer import (
    PdfProcessingOptions,
    PdfProcessingResult,
    add_bookmarks_to_pdf,
    fix_hyperlinks_in_pdf,
    load_pdf,
    process_pdf,
    process_pdf_file,
    process_pdf_to_file,
    save_pdf,
)

__all__ = [
    "BookmarkEntry",
    "BookmarkInjectionResult",
    "calculate_bookmark_depth",
    "count_bookmark_entries",
    "has_bookmarks",
    "inject_bookmarks",
    "remove_bookmarks",
    "HyperlinkProcessingOptions",
    "HyperlinkProcessingResult",
    "ProcessedLink",
    "build_path_map_from_manifest",
    "process_hyperlinks",
    "PdfProcessingOptions",
    "PdfProcessingResult",
    "add_bookmarks_to_pdf",
    "fix_hyperlinks_in_pdf",
    "load_pdf",
    "process_pdf",
    "process_pdf_file",
    "process_pdf_to_file",
    "save_pdf",
]
