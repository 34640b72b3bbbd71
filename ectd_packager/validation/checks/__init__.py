"""
Check-function registry.

Validation rules reference checks by name. Both the function names and the
rule-style ids (pdf-*, ectd-*) resolve to the same implementations.
"""

from ectd_packager.validation.checks.ectd_checks import (
    check_bookmark_depth,
    check_bookmarks_exist,
    check_document_title,
    check_external_hyperlinks,
    check_file_naming,
    check_no_javascript,
    check_page_size,
)
from ectd_packager.validation.checks.pdf_checks import (
    check_file_size,
    check_fonts_embedded,
    check_not_encrypted,
    check_page_count,
    check_pdf_a_compliance,
    check_pdf_parseable,
    check_pdf_version,
)
from ectd_packager.validation.types import CheckFunction, CheckResult

CHECK_FUNCTIONS: dict[str, CheckFunction] = {
    # PDF checks
    "checkFileSize": check_file_size,
    "checkPdfParseable": check_pdf_parseable,
    "checkPdfVersion": check_pdf_version,
    "checkNotEncrypted": check_not_encrypted,
    "checkFontsEmbedded": check_fonts_embedded,
    "checkPdfACompliance": check_pdf_a_compliance,
    "checkPageCount": check_page_count,
    # eCTD checks
    "checkBookmarkDepth": check_bookmark_depth,
    "checkBookmarksExist": check_bookmarks_exist,
    "checkFileNaming": check_file_naming,
    "checkPageSize": check_page_size,
    "checkExternalHyperlinks": check_external_hyperlinks,
    "checkDocumentTitle": check_document_title,
    "checkNoJavaScript": check_no_javascript,
    # Rule ids
    "pdf-file-size": check_file_size,
    "pdf-parseable": check_pdf_parseable,
    "pdf-version": check_pdf_version,
    "pdf-not-encrypted": check_not_encrypted,
    "pdf-fonts-embedded": check_fonts_embedded,
    "pdf-a-compliance": check_pdf_a_compliance,
    "pdf-page-count": check_page_count,
    "ectd-bookmark-depth": check_bookmark_depth,
    "ectd-bookmarks-exist": check_bookmarks_exist,
    "ectd-file-naming": check_file_naming,
    "ectd-page-size": check_page_size,
    "ectd-external-hyperlinks": check_external_hyperlinks,
    "ectd-document-title": check_document_title,
    "ectd-no-javascript": check_no_javascript,
}


def get_check_function(name: str) -> CheckFunction | None:
    return CHECK_FUNCTIONS.get(name)


def has_check_function(name: str) -> bool:
    return name in CHECK_FUNCTIONS


def get_available_check_functions() -> list[str]:
    return list(CHECK_FUNCTIONS)


__all__ = [
    "CHECK_FUNCTIONS",
    "CheckFunction",
    "CheckResult",
    "get_available_check_functions",
    "get_check_function",
    "has_check_function",
]
