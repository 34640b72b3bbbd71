"""
PDF outline (bookmark) injection.

Builds outline item dictionaries directly in the object graph: every item
gets Title, Parent and an /XYZ destination, siblings are chained with
Prev/Next and parents point at First/Last children. Any existing outline is
replaced, never merged.
"""

import logging
from dataclasses import dataclass, field

import fitz  # PyMuPDF

from ectd_packager.pdf.objects import (
    delete_key,
    has_key,
    new_object,
    page_refs,
    pdf_string,
    ref,
)

logger = logging.getLogger(__name__)


@dataclass
class BookmarkEntry:
    title: str
    page_number: int  # 1-based
    children: list["BookmarkEntry"] = field(default_factory=list)
    is_open: bool = True


@dataclass
class BookmarkInjectionResult:
    success: bool
    bookmark_count: int = 0
    max_depth: int = 0
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class _OutlineLevel:
    refs: list[int]
    count: int
    max_depth: int


def _destination(page_xref: int) -> str:
    # top-left of the page at the viewer's current zoom
    return f"[{ref(page_xref)} /XYZ null null null]"


def _outline_item(
    title: str,
    parent: int,
    page_xref: int,
    prev: int | None,
    next_: int | None,
    first: int | None,
    last: int | None,
    child_count: int,
    is_open: bool,
) -> str:
    parts = [
        f"/Title {pdf_string(title)}",
        f"/Parent {ref(parent)}",
        f"/Dest {_destination(page_xref)}",
    ]
    if prev is not None:
        parts.append(f"/Prev {ref(prev)}")
    if next_ is not None:
        parts.append(f"/Next {ref(next_)}")
    if first is not None:
        parts.append(f"/First {ref(first)}")
    if last is not None:
        parts.append(f"/Last {ref(last)}")
    if child_count > 0:
        count = child_count if is_open else -child_count
        parts.append(f"/Count {count}")
    return "<<" + " ".join(parts) + ">>"


def _build_level(
    doc: fitz.Document,
    bookmarks: list[BookmarkEntry],
    pages: list[int],
    parent: int,
    warnings: list[str],
    depth: int = 1,
) -> _OutlineLevel:
    valid: list[tuple[BookmarkEntry, int]] = []
    for bookmark in bookmarks:
        if bookmark.page_number < 1 or bookmark.page_number > len(pages):
            warnings.append(
                f'Bookmark "{bookmark.title}" targets page {bookmark.page_number} '
                f"which doesn't exist (document has {len(pages)} pages). Skipping."
            )
            continue
        valid.append((bookmark, new_object(doc)))

    if not valid:
        return _OutlineLevel(refs=[], count=0, max_depth=depth - 1)

    total = 0
    max_depth = depth
    for i, (bookmark, xref) in enumerate(valid):
        first = last = None
        child_count = 0
        if bookmark.children:
            children = _build_level(doc, bookmark.children, pages, xref, warnings, depth + 1)
            if children.refs:
                first, last = children.refs[0], children.refs[-1]
                child_count = children.count
                max_depth = max(max_depth, children.max_depth)

        doc.update_object(
            xref,
            _outline_item(
                title=bookmark.title,
                parent=parent,
                page_xref=pages[bookmark.page_number - 1],
                prev=valid[i - 1][1] if i > 0 else None,
                next_=valid[i + 1][1] if i < len(valid) - 1 else None,
                first=first,
                last=last,
                child_count=child_count,
                is_open=bookmark.is_open,
            ),
        )
        total += 1 + child_count

    return _OutlineLevel(refs=[xref for _, xref in valid], count=total, max_depth=max_depth)


def inject_bookmarks(doc: fitz.Document, bookmarks: list[BookmarkEntry]) -> BookmarkInjectionResult:
    """
    Replace the document outline with the given bookmark tree.

    Out-of-range page targets are skipped with a warning. Only structural
    problems (no pages, object graph errors) yield success=False.
    """
    warnings: list[str] = []
    try:
        if not bookmarks:
            return BookmarkInjectionResult(success=True, warnings=["No bookmarks to inject"])

        pages = page_refs(doc)
        if not pages:
            return BookmarkInjectionResult(success=False, warnings=warnings, error="PDF has no pages")

        outlines = new_object(doc)
        level = _build_level(doc, bookmarks, pages, outlines, warnings)

        if not level.refs:
            doc.update_object(outlines, "<</Type/Outlines/Count 0>>")
            return BookmarkInjectionResult(
                success=True,
                warnings=[*warnings, "No valid bookmarks to inject after validation"],
            )

        doc.update_object(
            outlines,
            f"<</Type/Outlines /First {ref(level.refs[0])} /Last {ref(level.refs[-1])} /Count {level.count}>>",
        )
        catalog = doc.pdf_catalog()
        doc.xref_set_key(catalog, "Outlines", ref(outlines))
        doc.xref_set_key(catalog, "PageMode", "/UseOutlines")

        return BookmarkInjectionResult(
            success=True,
            bookmark_count=level.count,
            max_depth=level.max_depth,
            warnings=warnings,
        )
    except Exception as e:
        logger.error(f"Bookmark injection failed: {e}")
        return BookmarkInjectionResult(
            success=False,
            warnings=warnings,
            error=f"Failed to inject bookmarks: {e}",
        )


def remove_bookmarks(doc: fitz.Document) -> None:
    delete_key(doc, doc.pdf_catalog(), "Outlines")


def has_bookmarks(doc: fitz.Document) -> bool:
    return has_key(doc, doc.pdf_catalog(), "Outlines")


def count_bookmark_entries(bookmarks: list[BookmarkEntry]) -> int:
    return sum(1 + count_bookmark_entries(b.children) for b in bookmarks)


def calculate_bookmark_depth(bookmarks: list[BookmarkEntry], current_depth: int = 1) -> int:
    max_depth = current_depth if bookmarks else 0
    for bookmark in bookmarks:
        if bookmark.children:
            max_depth = max(max_depth, calculate_bookmark_depth(bookmark.children, current_depth + 1))
    return max_depth
