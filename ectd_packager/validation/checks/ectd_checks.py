"""
eCTD technical conformance checks (navigation, naming, page geometry,
links and executable content).
"""

import asyncio
import re
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import fitz  # PyMuPDF

from ectd_packager.packaging.bookmarks import (
    calculate_max_depth,
    count_bookmarks,
    extract_bookmarks_from_document,
)
from ectd_packager.pdf.bookmark_writer import has_bookmarks
from ectd_packager.pdf.objects import get_key, get_ref
from ectd_packager.validation.checks.pdf_checks import error_result
from ectd_packager.validation.types import CheckResult

# Width x height in points
STANDARD_PAGE_SIZES = {
    "Letter": (612, 792),
    "A4": (595, 842),
    "Legal": (612, 1008),
    "Letter-Landscape": (792, 612),
    "A4-Landscape": (842, 595),
}
DEFAULT_ALLOWED_SIZES = ["Letter", "A4", "Letter-Landscape", "A4-Landscape"]

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")
_CONSECUTIVE_SPECIALS = re.compile(r"\.\.|--|__")
_ACTION_INDICATORS = ("/JavaScript", "/JS", "/OpenAction", "/AA")
_JS_ACTION = re.compile(r"/S\s*/JavaScript")


async def check_bookmark_depth(file_path: str, params: dict[str, Any]) -> CheckResult:
    max_depth = params.get("maxDepth", 4)

    def _depth() -> tuple[bool, int]:
        with fitz.open(file_path) as doc:
            if not has_bookmarks(doc):
                return False, 0
            return True, calculate_max_depth(extract_bookmarks_from_document(doc))

    try:
        present, actual_depth = await asyncio.to_thread(_depth)
    except Exception as e:
        return error_result("check bookmark depth", e)

    if not present:
        return CheckResult(
            passed=True,
            message="PDF has no bookmarks",
            details={"hasBookmarks": False, "maxDepth": max_depth, "actualDepth": 0},
        )

    details = {"hasBookmarks": True, "actualDepth": actual_depth, "maxDepth": max_depth}
    if actual_depth > max_depth:
        return CheckResult(
            passed=False,
            message=f"Bookmark depth ({actual_depth}) exceeds eCTD maximum of {max_depth} levels",
            details=details,
        )
    return CheckResult(
        passed=True,
        message=f"Bookmark depth ({actual_depth}) is within allowed {max_depth} levels",
        details=details,
    )


async def check_bookmarks_exist(file_path: str, params: dict[str, Any]) -> CheckResult:
    required = params.get("required", True)

    def _count() -> tuple[bool, int]:
        with fitz.open(file_path) as doc:
            if not has_bookmarks(doc):
                return False, 0
            outlines = get_ref(doc, doc.pdf_catalog(), "Outlines")
            declared = 0
            if outlines is not None:
                kind, value = get_key(doc, outlines, "Count")
                if kind == "int":
                    declared = abs(int(value))
            return True, declared or count_bookmarks(extract_bookmarks_from_document(doc))

    try:
        present, bookmark_count = await asyncio.to_thread(_count)
    except Exception as e:
        return error_result("check bookmarks", e)

    if not present and required:
        return CheckResult(
            passed=False,
            message="PDF is missing bookmarks. eCTD submissions require navigation bookmarks",
            details={"hasBookmarks": False, "bookmarkCount": 0, "required": required},
        )
    if present and bookmark_count == 0:
        return CheckResult(
            passed=False,
            message="PDF has empty bookmark structure (no bookmark entries)",
            details={"hasBookmarks": True, "bookmarkCount": 0, "required": required},
        )

    message = f"PDF has {bookmark_count} bookmark(s)" if present else "PDF has no bookmarks (not required)"
    return CheckResult(
        passed=True,
        message=message,
        details={"hasBookmarks": present, "bookmarkCount": bookmark_count, "required": required},
    )


def file_naming_issues(file_name: str, max_length: int = 64, require_lowercase: bool = True) -> list[str]:
    issues = []
    if " " in file_name:
        issues.append("contains spaces")

    invalid = list(dict.fromkeys(_INVALID_NAME_CHARS.findall(file_name)))
    if invalid:
        issues.append(f"contains invalid characters: {', '.join(invalid)}")

    if len(file_name) > max_length:
        issues.append(f"exceeds maximum length of {max_length} characters ({len(file_name)} chars)")

    if require_lowercase and file_name != file_name.lower():
        issues.append("contains uppercase letters (should be lowercase)")

    if _CONSECUTIVE_SPECIALS.search(file_name):
        issues.append("contains consecutive special characters")

    if not re.match(r"[a-zA-Z0-9]", file_name):
        issues.append("must start with alphanumeric character")

    return issues


async def check_file_naming(file_path: str, params: dict[str, Any]) -> CheckResult:
    max_length = params.get("maxLength", 64)
    require_lowercase = params.get("requireLowercase", True)

    file_name = Path(file_path).name
    issues = file_naming_issues(file_name, max_length, require_lowercase)

    if issues:
        return CheckResult(
            passed=False,
            message=f'File name "{file_name}" {"; ".join(issues)}',
            details={
                "fileName": file_name,
                "issues": issues,
                "maxLength": max_length,
                "requireLowercase": require_lowercase,
            },
        )
    return CheckResult(
        passed=True,
        message=f'File name "{file_name}" meets eCTD naming conventions',
        details={"fileName": file_name, "maxLength": max_length, "requireLowercase": require_lowercase},
    )


def match_page_size(width: float, height: float, allowed_sizes: list[str], tolerance: float = 5) -> str | None:
    for name in allowed_sizes:
        size = STANDARD_PAGE_SIZES.get(name)
        if size is None:
            continue
        if abs(width - size[0]) <= tolerance and abs(height - size[1]) <= tolerance:
            return name
    return None


async def check_page_size(file_path: str, params: dict[str, Any]) -> CheckResult:
    tolerance = params.get("tolerancePts", 5)
    allowed_sizes = params.get("allowedSizes") or DEFAULT_ALLOWED_SIZES

    def _sizes() -> list[tuple[float, float]]:
        with fitz.open(file_path) as doc:
            return [(page.rect.width, page.rect.height) for page in doc]

    try:
        sizes = await asyncio.to_thread(_sizes)
    except Exception as e:
        return error_result("check page size", e)

    if not sizes:
        return CheckResult(passed=False, message="PDF has no pages", details={"pageCount": 0})

    non_standard = []
    for index, (width, height) in enumerate(sizes):
        if match_page_size(width, height, allowed_sizes, tolerance) is None:
            non_standard.append(
                {
                    "page": index + 1,
                    "width": round(width),
                    "height": round(height),
                    "detected": f"{round(width)}x{round(height)} pts",
                }
            )

    if non_standard:
        page_list = "; ".join(f"Page {p['page']}: {p['detected']}" for p in non_standard[:5])
        more = f" (and {len(non_standard) - 5} more)" if len(non_standard) > 5 else ""
        return CheckResult(
            passed=False,
            message=f"{len(non_standard)} page(s) have non-standard size: {page_list}{more}",
            details={
                "totalPages": len(sizes),
                "nonStandardCount": len(non_standard),
                "nonStandardPages": non_standard[:10],
                "allowedSizes": allowed_sizes,
            },
        )

    return CheckResult(
        passed=True,
        message=f"All {len(sizes)} page(s) have standard size",
        details={"totalPages": len(sizes), "allowedSizes": allowed_sizes},
    )


def _domain_allowed(url: str, allowed_domains: list[str]) -> bool:
    hostname = urlparse(url).hostname or ""
    return any(hostname == domain or hostname.endswith("." + domain) for domain in allowed_domains)


async def check_external_hyperlinks(file_path: str, params: dict[str, Any]) -> CheckResult:
    allow_external = params.get("allowExternal", False)
    allowed_domains: list[str] = params.get("allowedDomains") or []

    def _uris() -> list[str]:
        uris: dict[str, None] = {}
        with fitz.open(file_path) as doc:
            for page in doc:
                for link in page.get_links():
                    uri = link.get("uri")
                    if uri:
                        uris[uri] = None
        return list(uris)

    try:
        uris = await asyncio.to_thread(_uris)
    except Exception as e:
        return error_result("check hyperlinks", e)

    external = [uri for uri in uris if uri.lower().startswith(("http://", "https://"))]
    if allow_external:
        disallowed = []
    else:
        disallowed = [url for url in external if not _domain_allowed(url, allowed_domains)]

    if disallowed:
        url_list = ", ".join(disallowed[:5])
        more = f" (and {len(disallowed) - 5} more)" if len(disallowed) > 5 else ""
        return CheckResult(
            passed=False,
            message=f"PDF contains {len(disallowed)} external hyperlink(s): {url_list}{more}",
            details={
                "totalExternalLinks": len(external),
                "disallowedCount": len(disallowed),
                "disallowedUrls": disallowed[:10],
                "allowExternal": allow_external,
                "allowedDomains": allowed_domains,
            },
        )

    message = f"PDF has {len(external)} external link(s) (all allowed)" if external else "PDF has no external hyperlinks"
    return CheckResult(
        passed=True,
        message=message,
        details={
            "totalExternalLinks": len(external),
            "allowExternal": allow_external,
            "allowedDomains": allowed_domains,
        },
    )


async def check_document_title(file_path: str, params: dict[str, Any]) -> CheckResult:
    required = params.get("required", False)

    def _title() -> str:
        with fitz.open(file_path) as doc:
            return (doc.metadata or {}).get("title") or ""

    try:
        title = (await asyncio.to_thread(_title)).strip()
    except Exception as e:
        return error_result("check document title", e)

    if not title and required:
        return CheckResult(
            passed=False,
            message="PDF is missing document title metadata",
            details={"hasTitle": False, "title": None, "required": required},
        )

    message = f'PDF has title: "{title}"' if title else "PDF has no title metadata (not required)"
    return CheckResult(
        passed=True,
        message=message,
        details={"hasTitle": bool(title), "title": title or None, "required": required},
    )


def find_script_indicators(doc: fitz.Document) -> tuple[list[str], bool]:
    """
    Scan every object for action dictionaries.

    Returns (indicators followed by an inline dictionary, JavaScript action present).
    """
    found: dict[str, None] = {}
    has_js_action = False
    for xref in range(1, doc.xref_length()):
        try:
            source = doc.xref_object(xref, compressed=True)
        except RuntimeError:
            continue
        if _JS_ACTION.search(source):
            has_js_action = True
        for indicator in _ACTION_INDICATORS:
            if re.search(re.escape(indicator) + r"\s*<<", source):
                found[indicator] = None
    return list(found), has_js_action


async def check_no_javascript(file_path: str, params: dict[str, Any]) -> CheckResult:
    def _scan() -> tuple[list[str], bool]:
        with fitz.open(file_path) as doc:
            return find_script_indicators(doc)

    try:
        indicators, has_js_stream = await asyncio.to_thread(_scan)
    except Exception as e:
        return error_result("check for JavaScript", e)

    if indicators or has_js_stream:
        return CheckResult(
            passed=False,
            message="PDF contains JavaScript or actions. eCTD submissions must not contain executable content",
            details={"hasJavaScript": True, "indicators": indicators, "hasJsStream": has_js_stream},
        )
    return CheckResult(passed=True, message="PDF contains no JavaScript", details={"hasJavaScript": False})
