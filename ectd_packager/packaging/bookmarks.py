"""
Bookmark manifest builder.

Derives section bookmarks from the manifest's node codes, nests each
document's own outline under its section, and keeps the whole tree within
the regulatory depth limit (FDA allows 4 levels).
"""

import asyncio
import logging
from dataclasses import dataclass

import fitz  # PyMuPDF
from pydantic import Field

from ectd_packager.config import get_settings
from ectd_packager.packaging.hierarchy import build_code_tree, code_depth
from ectd_packager.packaging.types import PackageFile, PackageManifest
from ectd_packager.pdf.objects import get_ref, get_text, locate_dict, page_number_map, resolve_page_target
from ectd_packager.schemas.common import CamelModel
from ectd_packager.services.storage import LocalStorage, get_storage

logger = logging.getLogger(__name__)


class BookmarkNode(CamelModel):
    title: str
    page_number: int | None = None  # 1-based
    children: list["BookmarkNode"] = Field(default_factory=list)
    source_file: str | None = None
    level: int = 1  # root = 1


class DocumentBookmarks(CamelModel):
    document_id: str
    file_name: str
    bookmarks: list[BookmarkNode] = Field(default_factory=list)
    error: str | None = None


class BookmarkManifest(CamelModel):
    root_bookmarks: list[BookmarkNode] = Field(default_factory=list)
    document_bookmarks: list[DocumentBookmarks] = Field(default_factory=list)
    total_count: int = 0
    max_depth: int = 0
    warnings: list[str] = Field(default_factory=list)


@dataclass
class BookmarkConfig:
    max_depth: int = 4
    max_title_length: int = 120
    truncation_suffix: str = "..."

    @classmethod
    def from_settings(cls) -> "BookmarkConfig":
        settings = get_settings()
        return cls(
            max_depth=settings.bookmark_max_depth,
            max_title_length=settings.bookmark_max_title_length,
        )


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _outline_page(doc: fitz.Document, item: int, page_numbers: dict[int, int]) -> int | None:
    page, _ = resolve_page_target(doc, item, "Dest", page_numbers)
    if page is not None:
        return page
    location = locate_dict(doc, item, "A")
    if location is None:
        return None
    action_xref, prefix = location
    page, _ = resolve_page_target(doc, action_xref, f"{prefix}D", page_numbers)
    return page


def _traverse_outline(
    doc: fitz.Document,
    first: int,
    level: int,
    source_file: str | None,
    page_numbers: dict[int, int],
    seen: set[int],
) -> list[BookmarkNode]:
    bookmarks: list[BookmarkNode] = []
    current: int | None = first

    while current is not None and current not in seen:
        seen.add(current)
        title = get_text(doc, current, "Title")
        if title:
            children: list[BookmarkNode] = []
            first_child = get_ref(doc, current, "First")
            if first_child is not None:
                children = _traverse_outline(doc, first_child, level + 1, source_file, page_numbers, seen)
            bookmarks.append(
                BookmarkNode(
                    title=title,
                    page_number=_outline_page(doc, current, page_numbers),
                    children=children,
                    source_file=source_file,
                    level=level,
                )
            )
        current = get_ref(doc, current, "Next")

    return bookmarks


def extract_bookmarks_from_document(doc: fitz.Document, source_file: str | None = None) -> list[BookmarkNode]:
    """Walk the outline tree through First/Next pointers."""
    outlines = get_ref(doc, doc.pdf_catalog(), "Outlines")
    if outlines is None:
        return []
    first = get_ref(doc, outlines, "First")
    if first is None:
        return []
    return _traverse_outline(doc, first, 1, source_file, page_number_map(doc), set())


async def extract_bookmarks_from_pdf(file_path: str, storage: LocalStorage | None = None) -> list[BookmarkNode]:
    storage = storage or get_storage()
    pdf_bytes = await storage.read_bytes(file_path)

    def _extract() -> list[BookmarkNode]:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return extract_bookmarks_from_document(doc, file_path)

    return await asyncio.to_thread(_extract)


# ---------------------------------------------------------------------------
# Tree shaping
# ---------------------------------------------------------------------------


def truncate_title(title: str, config: BookmarkConfig | None = None) -> str:
    config = config or BookmarkConfig()
    if len(title) <= config.max_title_length:
        return title
    return title[: config.max_title_length - len(config.truncation_suffix)] + config.truncation_suffix


def flatten_all_descendants(bookmarks: list[BookmarkNode], target_level: int) -> list[BookmarkNode]:
    """Every node of the subtree as a childless sibling, in document order."""
    result: list[BookmarkNode] = []
    for bookmark in bookmarks:
        result.append(bookmark.model_copy(update={"children": [], "level": target_level}))
        result.extend(flatten_all_descendants(bookmark.children, target_level))
    return result


def enforce_max_depth(
    bookmarks: list[BookmarkNode],
    max_depth: int = 4,
    current_depth: int = 1,
) -> list[BookmarkNode]:
    """
    Limit the tree to `max_depth` levels without dropping anything.

    Nodes at the limit keep their place; their descendants follow them as
    siblings at the same level.
    """
    if current_depth >= max_depth:
        flattened: list[BookmarkNode] = []
        for bookmark in bookmarks:
            flattened.append(bookmark.model_copy(update={"children": [], "level": current_depth}))
            flattened.extend(flatten_all_descendants(bookmark.children, current_depth))
        return flattened

    return [
        bookmark.model_copy(
            update={
                "level": current_depth,
                "children": enforce_max_depth(bookmark.children, max_depth, current_depth + 1),
            }
        )
        for bookmark in bookmarks
    ]


def calculate_max_depth(bookmarks: list[BookmarkNode], current_depth: int = 1) -> int:
    if not bookmarks:
        return 0
    return max(
        max(current_depth, calculate_max_depth(b.children, current_depth + 1)) for b in bookmarks
    )


def count_bookmarks(bookmarks: list[BookmarkNode]) -> int:
    return sum(1 + count_bookmarks(b.children) for b in bookmarks)


def build_section_bookmarks(
    files: list[PackageFile],
    config: BookmarkConfig | None = None,
) -> list[BookmarkNode]:
    """
    One bookmark per distinct code prefix, titled "{code} - {title}".

    A prefix no file carries directly becomes "{code} - Section {code}".
    """
    config = config or BookmarkConfig()

    def _convert(node) -> BookmarkNode:
        title = node.items[0].node_title if node.items else f"Section {node.code}"
        return BookmarkNode(
            title=truncate_title(f"{node.code} - {title}", config),
            level=code_depth(node.code),
            children=[_convert(child) for child in node.children],
        )

    return [_convert(root) for root in build_code_tree(files, key=lambda f: f.node_code)]


def _process_titles(
    bookmarks: list[BookmarkNode],
    config: BookmarkConfig,
    warnings: list[str],
    source_file: str,
) -> list[BookmarkNode]:
    processed = []
    for bookmark in bookmarks:
        title = truncate_title(bookmark.title, config)
        if title != bookmark.title:
            warnings.append(
                f'Bookmark title truncated in {source_file}: "{bookmark.title[:30]}..." '
                f"exceeded {config.max_title_length} characters"
            )
        processed.append(
            bookmark.model_copy(
                update={
                    "title": title,
                    "source_file": source_file,
                    "children": _process_titles(bookmark.children, config, warnings, source_file),
                }
            )
        )
    return processed


def _find_section(bookmarks: list[BookmarkNode], node_code: str) -> BookmarkNode | None:
    for bookmark in bookmarks:
        if bookmark.title.startswith(f"{node_code} "):
            return bookmark
        found = _find_section(bookmark.children, node_code)
        if found is not None:
            return found
    return None


def _with_levels(bookmarks: list[BookmarkNode], level: int) -> list[BookmarkNode]:
    return [
        b.model_copy(update={"level": level, "children": _with_levels(b.children, level + 1)})
        for b in bookmarks
    ]


async def generate_bookmark_manifest(
    manifest: PackageManifest,
    config: BookmarkConfig | None = None,
    storage: LocalStorage | None = None,
) -> BookmarkManifest:
    """
    Build the package-wide bookmark tree.

    Per-file extraction failures are recorded on that file's entry and as a
    warning; they never abort the manifest.
    """
    config = config or BookmarkConfig.from_settings()
    storage = storage or get_storage()
    warnings: list[str] = []
    document_bookmarks: list[DocumentBookmarks] = []

    root_bookmarks = build_section_bookmarks(manifest.files, config)

    for file in manifest.files:
        try:
            extracted = await extract_bookmarks_from_pdf(file.source_path, storage)
            processed = _process_titles(extracted, config, warnings, file.file_name)
            document_bookmarks.append(
                DocumentBookmarks(
                    document_id=file.source_document_id,
                    file_name=file.file_name,
                    bookmarks=processed,
                )
            )
            if processed:
                section = _find_section(root_bookmarks, file.node_code)
                if section is not None:
                    section.children.extend(_with_levels(processed, section.level + 1))
        except Exception as e:
            logger.warning(f"[BookmarkExtraction] Failed to extract bookmarks from {file.source_path}: {e}")
            document_bookmarks.append(
                DocumentBookmarks(
                    document_id=file.source_document_id,
                    file_name=file.file_name,
                    error=str(e),
                )
            )
            warnings.append(f"Failed to extract bookmarks from {file.file_name}: {e}")

    depth = calculate_max_depth(root_bookmarks)
    if depth > config.max_depth:
        warnings.append(
            f"Bookmark depth ({depth}) exceeded maximum ({config.max_depth}). "
            "Some bookmarks were flattened."
        )
        root_bookmarks = enforce_max_depth(root_bookmarks, config.max_depth, 1)

    return BookmarkManifest(
        root_bookmarks=root_bookmarks,
        document_bookmarks=document_bookmarks,
        total_count=count_bookmarks(root_bookmarks),
        max_depth=calculate_max_depth(root_bookmarks),
        warnings=warnings,
    )
