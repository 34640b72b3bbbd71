"""
Hyperlink fix-up for eCTD packaging.

Walks every page's link annotations and:
- flags external (http/https/ftp/mailto) URIs, removing them only on request
- rewrites file references in URI, GoToR and Launch actions through a path
  map or relative to the file's own location in the package

eCTD requires cross-document links to be relative.
"""

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Literal

import fitz  # PyMuPDF

from ectd_packager.pdf.objects import (
    delete_key,
    get_annot_xrefs,
    get_name,
    get_text,
    has_key,
    locate_dict,
    page_refs,
    pdf_string,
)

logger = logging.getLogger(__name__)

LinkAction = Literal["keep", "update", "remove"]

EXTERNAL_PREFIXES = ("http://", "https://", "ftp://", "mailto:")


@dataclass
class ProcessedLink:
    original_target: str
    action: LinkAction
    page_number: int
    reason: str
    new_target: str | None = None


@dataclass
class HyperlinkProcessingOptions:
    remove_external_links: bool = False
    remove_mailto_links: bool = False
    # Target path of the file being processed, relative to the package root
    base_path: str = ""
    # old path or file name -> package target path
    path_map: dict[str, str] = field(default_factory=dict)


@dataclass
class HyperlinkProcessingResult:
    success: bool
    total_links: int = 0
    updated_count: int = 0
    removed_count: int = 0
    kept_count: int = 0
    processed_links: list[ProcessedLink] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


def is_external_link(uri: str) -> bool:
    return uri.lower().startswith(EXTERNAL_PREFIXES)


def is_mailto_link(uri: str) -> bool:
    return uri.lower().startswith("mailto:")


def _relative_to(target: str, base_path: str) -> str:
    target = posixpath.normpath(target.replace("\\", "/"))
    base = posixpath.normpath(base_path.replace("\\", "/"))
    return posixpath.relpath(target, posixpath.dirname(base) or ".")


def process_file_reference(file_path: str, options: HyperlinkProcessingOptions) -> str:
    """
    Rewrite a file reference for the package layout.

    A path-map entry matches when its key occurs in the path or shares its
    base name; the mapped target is made relative to `base_path` when one is
    set. Otherwise non-relative paths are relativized against `base_path`.
    Any "#destination" fragment is preserved.
    """
    path, sep, fragment = file_path.partition("#")
    suffix = f"#{fragment}" if sep else ""
    file_name = posixpath.basename(path.replace("\\", "/"))

    for old_path, new_path in options.path_map.items():
        if old_path in file_path or file_name == posixpath.basename(old_path.replace("\\", "/")):
            if options.base_path:
                return _relative_to(new_path, options.base_path) + suffix
            return new_path + suffix

    if options.base_path and not file_path.startswith(("../", "./")):
        return _relative_to(path, options.base_path) + suffix

    return file_path


def _read_file_spec(doc: fitz.Document, action_xref: int, prefix: str) -> str | None:
    location = locate_dict(doc, action_xref, f"{prefix}F")
    if location is not None:
        spec_xref, spec_prefix = location
        return get_text(doc, spec_xref, f"{spec_prefix}F") or get_text(doc, spec_xref, f"{spec_prefix}UF")
    return get_text(doc, action_xref, f"{prefix}F")


def _write_file_spec(doc: fitz.Document, action_xref: int, prefix: str, target: str) -> None:
    location = locate_dict(doc, action_xref, f"{prefix}F")
    if location is None:
        doc.xref_set_key(action_xref, f"{prefix}F", pdf_string(target))
        return
    spec_xref, spec_prefix = location
    doc.xref_set_key(spec_xref, f"{spec_prefix}F", pdf_string(target))
    if has_key(doc, spec_xref, f"{spec_prefix}UF"):
        doc.xref_set_key(spec_xref, f"{spec_prefix}UF", pdf_string(target))


def _process_annotation(
    doc: fitz.Document,
    annot_xref: int,
    page_number: int,
    options: HyperlinkProcessingOptions,
    results: list[ProcessedLink],
) -> None:
    if get_name(doc, annot_xref, "Subtype") != "Link":
        return

    location = locate_dict(doc, annot_xref, "A")
    if location is None:
        return
    action_xref, prefix = location

    action_type = get_name(doc, action_xref, f"{prefix}S")
    if action_type is None:
        return

    if action_type == "URI":
        uri = get_text(doc, action_xref, f"{prefix}URI")
        if not uri:
            return

        if is_external_link(uri):
            if is_mailto_link(uri) and options.remove_mailto_links:
                delete_key(doc, annot_xref, "A")
                results.append(ProcessedLink(uri, "remove", page_number, "Mailto link removed per options"))
            elif not is_mailto_link(uri) and options.remove_external_links:
                delete_key(doc, annot_xref, "A")
                results.append(
                    ProcessedLink(uri, "remove", page_number, "External HTTP/HTTPS link removed per options")
                )
            else:
                results.append(
                    ProcessedLink(uri, "keep", page_number, "External link flagged (not allowed in eCTD)")
                )
            return

        if uri.endswith(".pdf") or ".pdf#" in uri:
            new_target = process_file_reference(uri, options)
            if new_target != uri:
                doc.xref_set_key(action_xref, f"{prefix}URI", pdf_string(new_target))
                results.append(
                    ProcessedLink(
                        uri, "update", page_number, "File reference converted to relative path", new_target
                    )
                )
            else:
                results.append(ProcessedLink(uri, "keep", page_number, "File reference already relative"))
        return

    if action_type == "GoToR":
        target = _read_file_spec(doc, action_xref, prefix)
        if not target:
            return
        new_target = process_file_reference(target, options)
        if new_target != target:
            _write_file_spec(doc, action_xref, prefix, new_target)
            results.append(
                ProcessedLink(target, "update", page_number, "Cross-document reference updated", new_target)
            )
        else:
            results.append(
                ProcessedLink(target, "keep", page_number, "Cross-document reference already correct")
            )
        return

    if action_type == "Launch":
        target = _read_file_spec(doc, action_xref, prefix)
        if not target:
            return
        if options.remove_external_links and is_external_link(target):
            delete_key(doc, annot_xref, "A")
            results.append(
                ProcessedLink(target, "remove", page_number, "Launch action to external resource removed")
            )
            return
        new_target = process_file_reference(target, options)
        if new_target != target:
            _write_file_spec(doc, action_xref, prefix, new_target)
            results.append(
                ProcessedLink(target, "update", page_number, "Launch action file reference updated", new_target)
            )
        else:
            results.append(
                ProcessedLink(target, "keep", page_number, "Launch action file reference unchanged")
            )


def process_hyperlinks(
    doc: fitz.Document,
    options: HyperlinkProcessingOptions | None = None,
) -> HyperlinkProcessingResult:
    """
    Classify and rewrite every link annotation in the document.

    A failure on one annotation is recorded as a warning and the scan moves
    on; the counts always add up to `total_links`.
    """
    options = options or HyperlinkProcessingOptions()
    results: list[ProcessedLink] = []
    warnings: list[str] = []

    try:
        for page_number, page_xref in enumerate(page_refs(doc), start=1):
            for annot_xref in get_annot_xrefs(doc, page_xref):
                try:
                    _process_annotation(doc, annot_xref, page_number, options, results)
                except Exception as e:
                    logger.warning(f"Annotation {annot_xref} on page {page_number} skipped: {e}")
                    warnings.append(f"Error processing annotation on page {page_number}: {e}")
    except Exception as e:
        logger.error(f"Hyperlink processing failed: {e}")
        return HyperlinkProcessingResult(
            success=False,
            warnings=warnings,
            error=f"Failed to process hyperlinks: {e}",
        )

    return HyperlinkProcessingResult(
        success=True,
        total_links=len(results),
        updated_count=sum(1 for r in results if r.action == "update"),
        removed_count=sum(1 for r in results if r.action == "remove"),
        kept_count=sum(1 for r in results if r.action == "keep"),
        processed_links=results,
        warnings=warnings,
    )


def build_path_map_from_manifest(files) -> dict[str, str]:
    """
    Map every way a packaged file may be referenced to its target path.

    Keys are the stored source path, its base name, and the sanitized
    package file name.
    """
    path_map: dict[str, str] = {}
    for file in files:
        path_map[file.source_path] = file.target_path
        path_map[posixpath.basename(file.source_path)] = file.target_path
        path_map[file.file_name] = file.target_path
    return path_map
