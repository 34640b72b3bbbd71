"""Tests for the PDF and eCTD compliance check functions."""

import asyncio

import fitz  # PyMuPDF
import pytest

from ectd_packager.validation.checks import (
    get_available_check_functions,
    get_check_function,
    has_check_function,
)
from ectd_packager.validation.checks.ectd_checks import (
    check_bookmark_depth,
    check_bookmarks_exist,
    check_document_title,
    check_external_hyperlinks,
    check_file_naming,
    check_no_javascript,
    check_page_size,
    file_naming_issues,
    match_page_size,
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
from pdf_factory import build_pdf_bytes


def run(check, path, params=None):
    return asyncio.run(check(str(path), params or {}))


@pytest.fixture
def simple_pdf(tmp_path):
    path = tmp_path / "report.pdf"
    path.write_bytes(build_pdf_bytes(pages=2))
    return path


@pytest.fixture
def nested_toc_pdf(tmp_path):
    path = tmp_path / "nested.pdf"
    path.write_bytes(
        build_pdf_bytes(
            pages=1,
            toc=[[1, "L1", 1], [2, "L2", 1], [3, "L3", 1], [4, "L4", 1], [5, "L5", 1]],
        )
    )
    return path


class TestRegistry:
    """Test check lookup by name."""

    def test_function_and_rule_names_resolve_to_same_check(self):
        """Test camelCase names and rule ids are aliases."""
        assert get_check_function("checkPdfVersion") is get_check_function("pdf-version")
        assert get_check_function("checkNoJavaScript") is get_check_function("ectd-no-javascript")

    def test_unknown_check(self):
        """Test unknown names resolve to None."""
        assert get_check_function("checkEverything") is None
        assert has_check_function("checkEverything") is False
        assert "checkFileNaming" in get_available_check_functions()


class TestPdfChecks:
    """Test PDF-level checks."""

    def test_file_size(self, simple_pdf):
        """Test files within the limit pass and a tiny limit fails."""
        assert run(check_file_size, simple_pdf, {"maxMB": 1}).passed is True
        result = run(check_file_size, simple_pdf, {"maxMB": 0})
        assert result.passed is False
        assert "exceeds maximum" in result.message

    def test_file_size_missing_file(self, tmp_path):
        """Test a missing file fails instead of raising."""
        result = run(check_file_size, tmp_path / "missing.pdf")
        assert result.passed is False
        assert "Unable to read file" in result.message

    def test_parseable(self, simple_pdf, tmp_path):
        """Test a real PDF parses and a text file does not."""
        ok = run(check_pdf_parseable, simple_pdf)
        assert ok.passed is True
        assert ok.details["pageCount"] == 2

        fake = tmp_path / "fake.pdf"
        fake.write_text("not a pdf")
        result = run(check_pdf_parseable, fake)
        assert result.passed is False
        assert "missing PDF header" in result.message

    def test_pdf_version(self, simple_pdf, tmp_path):
        """Test the header version is compared against the allowed list."""
        assert run(check_pdf_version, simple_pdf).passed is True

        newer = tmp_path / "v2.pdf"
        newer.write_bytes(b"%PDF-2.0\n%%EOF")
        result = run(check_pdf_version, newer)
        assert result.passed is False
        assert result.details["version"] == "2.0"

    def test_not_encrypted(self, simple_pdf, tmp_path):
        """Test plain PDFs pass and password-protected ones fail."""
        assert run(check_not_encrypted, simple_pdf).passed is True

        encrypted = tmp_path / "locked.pdf"
        doc = fitz.open()
        doc.new_page()
        doc.save(
            encrypted,
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="user",
        )
        doc.close()

        result = run(check_not_encrypted, encrypted)
        assert result.passed is False
        assert result.details["encrypted"] is True

    def test_fonts_embedded_accepts_base14(self, simple_pdf):
        """Test base-14 fonts are accepted without embedding."""
        result = run(check_fonts_embedded, simple_pdf)
        assert result.passed is True
        assert result.details["nonStandardFonts"] == []

    def test_pdf_a_missing_identification(self, simple_pdf):
        """Test a PDF without PDF/A metadata fails."""
        result = run(check_pdf_a_compliance, simple_pdf)
        assert result.passed is False
        assert result.details["isPdfA"] is False

    def test_page_count_bounds(self, simple_pdf):
        """Test minimum and maximum page counts."""
        assert run(check_page_count, simple_pdf, {"minPages": 1, "maxPages": 5}).passed is True
        assert run(check_page_count, simple_pdf, {"minPages": 3}).passed is False
        assert run(check_page_count, simple_pdf, {"maxPages": 1}).passed is False


class TestEctdChecks:
    """Test eCTD technical conformance checks."""

    def test_bookmark_depth(self, nested_toc_pdf, simple_pdf):
        """Test outlines deeper than the limit fail; no outline passes."""
        result = run(check_bookmark_depth, nested_toc_pdf, {"maxDepth": 4})
        assert result.passed is False
        assert result.details["actualDepth"] == 5

        assert run(check_bookmark_depth, nested_toc_pdf, {"maxDepth": 5}).passed is True
        assert run(check_bookmark_depth, simple_pdf).details["hasBookmarks"] is False

    def test_bookmarks_exist(self, nested_toc_pdf, simple_pdf):
        """Test required bookmarks fail when absent and pass when present."""
        assert run(check_bookmarks_exist, simple_pdf, {"required": True}).passed is False
        assert run(check_bookmarks_exist, simple_pdf, {"required": False}).passed is True

        present = run(check_bookmarks_exist, nested_toc_pdf)
        assert present.passed is True
        assert present.details["bookmarkCount"] > 0

    def test_file_naming_issues(self):
        """Test each naming rule is reported."""
        assert file_naming_issues("protocol-v2.pdf") == []
        issues = file_naming_issues("_My File..pdf")
        assert "contains spaces" in issues
        assert "contains uppercase letters (should be lowercase)" in issues
        assert "contains consecutive special characters" in issues
        assert "must start with alphanumeric character" in issues
        assert any(i.startswith("exceeds maximum length") for i in file_naming_issues("a" * 70 + ".pdf"))

    def test_file_naming_check_uses_base_name(self, tmp_path):
        """Test only the file name, not the directory, is checked."""
        result = run(check_file_naming, tmp_path / "Some Dir" / "listing.pdf")
        assert result.passed is True

    def test_match_page_size(self):
        """Test standard sizes match within tolerance."""
        assert match_page_size(612, 792, ["Letter", "A4"]) == "Letter"
        assert match_page_size(596, 841, ["Letter", "A4"]) == "A4"
        assert match_page_size(612, 1008, ["Letter", "A4"]) is None

    def test_page_size(self, tmp_path, simple_pdf):
        """Test non-standard pages are listed."""
        assert run(check_page_size, simple_pdf).passed is True

        legal = tmp_path / "legal.pdf"
        legal.write_bytes(build_pdf_bytes(pages=1, width=612, height=1008))
        result = run(check_page_size, legal)
        assert result.passed is False
        assert result.details["nonStandardPages"][0]["detected"] == "612x1008 pts"

    def test_external_hyperlinks(self, tmp_path, simple_pdf):
        """Test external links fail unless allowed globally or by domain."""
        linked = tmp_path / "linked.pdf"
        linked.write_bytes(
            build_pdf_bytes(
                links=[(0, {"kind": fitz.LINK_URI, "from": fitz.Rect(10, 10, 50, 30), "uri": "https://docs.fda.gov/x"})]
            )
        )

        assert run(check_external_hyperlinks, simple_pdf).passed is True
        assert run(check_external_hyperlinks, linked).passed is False
        assert run(check_external_hyperlinks, linked, {"allowExternal": True}).passed is True
        assert run(check_external_hyperlinks, linked, {"allowedDomains": ["fda.gov"]}).passed is True

    def test_document_title(self, tmp_path, simple_pdf):
        """Test a missing title only fails when required."""
        assert run(check_document_title, simple_pdf).passed is True
        assert run(check_document_title, simple_pdf, {"required": True}).passed is False

        titled = tmp_path / "titled.pdf"
        doc = fitz.open()
        doc.new_page()
        doc.set_metadata({"title": "Clinical Study Report"})
        doc.save(titled)
        doc.close()
        assert run(check_document_title, titled, {"required": True}).details["title"] == "Clinical Study Report"

    def test_no_javascript(self, tmp_path, simple_pdf):
        """Test a document-level JavaScript open action is detected."""
        assert run(check_no_javascript, simple_pdf).passed is True

        scripted = tmp_path / "scripted.pdf"
        doc = fitz.open()
        doc.new_page()
        doc.xref_set_key(doc.pdf_catalog(), "OpenAction", "<</S/JavaScript/JS(app.alert('hi'))>>")
        doc.save(scripted)
        doc.close()

        result = run(check_no_javascript, scripted)
        assert result.passed is False
        assert result.details["hasJsStream"] is True
