"""
PDF-level compliance checks.

Each check takes an absolute file path plus its rule params and never
raises: read or parse failures come back as a failed CheckResult.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Any

import fitz  # PyMuPDF

from ectd_packager.validation.types import CheckResult

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_VERSIONS = ["1.4", "1.5", "1.6", "1.7"]

# Base-14 fonts every conforming reader ships
STANDARD_FONTS = {
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Symbol",
    "ZapfDingbats",
}

_VERSION_PATTERN = re.compile(rb"%PDF-(\d+\.\d+)")
_PDFA_PART = re.compile(r"pdfaid:part(?:>|\s*=\s*[\"'])\s*(\d)")
_PDFA_CONFORMANCE = re.compile(r"pdfaid:conformance(?:>|\s*=\s*[\"'])\s*([ABU])", re.IGNORECASE)

HEADER_BYTES = 1024


def _read_header(file_path: str, size: int = HEADER_BYTES) -> bytes:
    with open(file_path, "rb") as f:
        return f.read(size)


def error_result(action: str, error: Exception) -> CheckResult:
    return CheckResult(passed=False, message=f"Unable to {action}: {error}", details={"error": str(error)})


async def check_file_size(file_path: str, params: dict[str, Any]) -> CheckResult:
    max_mb = params.get("maxMB", 100)
    max_bytes = max_mb * 1024 * 1024

    try:
        file_size = (await asyncio.to_thread(Path(file_path).stat)).st_size
    except OSError as e:
        return CheckResult(passed=False, message=f"Unable to read file: {e}", details={"error": str(e)})

    file_size_mb = f"{file_size / (1024 * 1024):.2f}"
    details = {"fileSize": file_size, "fileSizeMB": file_size_mb, "maxMB": max_mb, "maxBytes": max_bytes}

    if file_size > max_bytes:
        return CheckResult(
            passed=False,
            message=f"File size ({file_size_mb}MB) exceeds maximum of {max_mb}MB",
            details=details,
        )
    return CheckResult(passed=True, message=f"File size ({file_size_mb}MB) is within {max_mb}MB limit", details=details)


async def check_pdf_parseable(file_path: str, params: dict[str, Any]) -> CheckResult:
    try:
        header = await asyncio.to_thread(_read_header, file_path, 5)
    except OSError as e:
        return CheckResult(passed=False, message=f"PDF is corrupted or invalid: {e}", details={"error": str(e)})

    if not header.startswith(b"%PDF-"):
        return CheckResult(
            passed=False,
            message="File does not appear to be a valid PDF (missing PDF header)",
            details={"header": header.decode("latin-1")},
        )

    def _parse() -> int:
        with fitz.open(file_path) as doc:
            return doc.page_count

    try:
        page_count = await asyncio.to_thread(_parse)
    except Exception as e:
        return CheckResult(passed=False, message=f"PDF is corrupted or invalid: {e}", details={"error": str(e)})

    return CheckResult(passed=True, message="PDF file is valid and can be parsed", details={"pageCount": page_count})


async def check_pdf_version(file_path: str, params: dict[str, Any]) -> CheckResult:
    allowed_versions = params.get("allowedVersions") or DEFAULT_ALLOWED_VERSIONS

    try:
        header = await asyncio.to_thread(_read_header, file_path)
    except OSError as e:
        return error_result("check PDF version", e)

    match = _VERSION_PATTERN.search(header)
    if not match:
        return CheckResult(
            passed=False,
            message="Unable to determine PDF version",
            details={"version": "unknown", "allowedVersions": allowed_versions},
        )

    version = match.group(1).decode("ascii")
    details = {"version": version, "allowedVersions": allowed_versions}
    if version not in allowed_versions:
        return CheckResult(
            passed=False,
            message=f"PDF version {version} is not allowed. Allowed versions: {', '.join(allowed_versions)}",
            details=details,
        )
    return CheckResult(passed=True, message=f"PDF version {version} is allowed", details=details)


async def check_not_encrypted(file_path: str, params: dict[str, Any]) -> CheckResult:
    def _inspect() -> tuple[bool, bool]:
        with fitz.open(file_path) as doc:
            if doc.needs_pass:
                return True, True
            has_encrypt_dict = doc.xref_get_key(-1, "Encrypt")[0] != "null"
            return False, has_encrypt_dict or bool(doc.metadata.get("encryption"))

    try:
        needs_pass, has_encrypt_dict = await asyncio.to_thread(_inspect)
    except Exception as e:
        return error_result("check encryption", e)

    if needs_pass:
        return CheckResult(
            passed=False,
            message="PDF is encrypted. eCTD submissions must not be password-protected",
            details={"encrypted": True},
        )
    if has_encrypt_dict:
        return CheckResult(
            passed=False,
            message=(
                "PDF contains encryption dictionary. "
                "eCTD submissions should not have any security restrictions"
            ),
            details={"encrypted": True, "hasEncryptDict": True},
        )
    return CheckResult(passed=True, message="PDF is not encrypted", details={"encrypted": False})


def _strip_subset_prefix(font_name: str) -> str:
    """ABCDEF+Arial -> Arial"""
    return font_name.split("+", 1)[1] if "+" in font_name else font_name


async def check_fonts_embedded(file_path: str, params: dict[str, Any]) -> CheckResult:
    def _collect() -> dict[int, tuple[str, str]]:
        fonts: dict[int, tuple[str, str]] = {}
        with fitz.open(file_path) as doc:
            for page in doc:
                for xref, ext, _type, basefont, *_ in page.get_fonts(full=True):
                    fonts[xref] = (ext, basefont)
        return fonts

    try:
        fonts = await asyncio.to_thread(_collect)
    except Exception as e:
        return error_result("check font embedding", e)

    # PyMuPDF reports "n/a" as the extension of fonts without a font file
    embedded_count = sum(1 for ext, _ in fonts.values() if ext != "n/a")
    non_standard = [
        basefont
        for ext, basefont in fonts.values()
        if ext == "n/a" and _strip_subset_prefix(basefont) not in STANDARD_FONTS
    ]
    details = {
        "totalFonts": len(fonts),
        "embeddedIndicators": embedded_count,
        "nonStandardFonts": non_standard[:10],
    }

    if non_standard:
        return CheckResult(
            passed=False,
            message=(
                f"PDF may contain non-embedded fonts. Found {len(non_standard)} "
                "non-standard font(s) that may not be embedded."
            ),
            details=details,
        )
    if fonts:
        message = f"PDF fonts appear to be properly embedded ({embedded_count} font file indicators found)"
    else:
        message = "No fonts detected in PDF"
    return CheckResult(passed=True, message=message, details=details)


async def check_pdf_a_compliance(file_path: str, params: dict[str, Any]) -> CheckResult:
    allowed_versions: list[str] = params.get("allowedVersions") or []

    def _xmp() -> str:
        with fitz.open(file_path) as doc:
            return doc.get_xml_metadata() or ""

    try:
        xmp = await asyncio.to_thread(_xmp)
    except Exception as e:
        return error_result("check PDF/A compliance", e)

    has_namespace = "pdfaid:part" in xmp or "http://www.aiim.org/pdfa/ns/id/" in xmp
    part_match = _PDFA_PART.search(xmp)
    conformance_match = _PDFA_CONFORMANCE.search(xmp)
    part = part_match.group(1) if part_match else None
    conformance = conformance_match.group(1).lower() if conformance_match else None

    if not has_namespace or not part or not conformance:
        return CheckResult(
            passed=False,
            message="PDF does not appear to be PDF/A compliant (no PDF/A identification found)",
            details={
                "isPdfA": False,
                "hasPdfANamespace": has_namespace,
                "pdfaPart": part,
                "pdfaConformance": conformance,
            },
        )

    pdfa_version = f"{part}{conformance}"
    if allowed_versions and pdfa_version not in [v.lower() for v in allowed_versions]:
        return CheckResult(
            passed=False,
            message=f"PDF/A version {pdfa_version} is not in the allowed list: {', '.join(allowed_versions)}",
            details={"isPdfA": True, "pdfaVersion": pdfa_version, "allowedVersions": allowed_versions},
        )

    return CheckResult(
        passed=True,
        message=f"PDF is PDF/A-{pdfa_version} compliant",
        details={
            "isPdfA": True,
            "pdfaVersion": pdfa_version,
            "pdfaPart": part,
            "pdfaConformance": conformance,
            "allowedVersions": allowed_versions,
        },
    )


async def check_page_count(file_path: str, params: dict[str, Any]) -> CheckResult:
    min_pages = params.get("minPages", 1)
    max_pages = params.get("maxPages")

    def _count() -> int:
        with fitz.open(file_path) as doc:
            return doc.page_count

    try:
        page_count = await asyncio.to_thread(_count)
    except Exception as e:
        return error_result("check page count", e)

    details = {"pageCount": page_count, "minPages": min_pages, "maxPages": max_pages}
    if page_count < min_pages:
        return CheckResult(
            passed=False,
            message=f"PDF has {page_count} page(s), minimum required is {min_pages}",
            details=details,
        )
    if max_pages is not None and page_count > max_pages:
        return CheckResult(
            passed=False,
            message=f"PDF has {page_count} page(s), maximum allowed is {max_pages}",
            details=details,
        )
    noun = "page" if page_count == 1 else "pages"
    return CheckResult(passed=True, message=f"PDF has {page_count} {noun}", details=details)
