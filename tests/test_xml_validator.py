"""Tests for structural validation of generated eCTD XML."""

from datetime import datetime, timezone

from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.packaging.types import EctdXmlConfig, LeafEntry, PackageFile, SequenceInfo, SubmissionMetadata
from ectd_packager.packaging.xml_templates.index_xml import generate_index_xml, generate_minimal_index_xml
from ectd_packager.packaging.xml_templates.us_regional_xml import (
    FdaMetadata,
    generate_minimal_us_regional_xml,
    generate_us_regional_xml,
)
from ectd_packager.validation.types import XmlValidationOptions
from ectd_packager.validation.xml_validator import (
    format_xml_validation_report,
    validate_ectd_xml,
    validate_index_xml,
    validate_us_regional_xml,
)

SUBMITTED = datetime(2026, 3, 14, tzinfo=timezone.utc)
PROTOCOL_HREF = "m5/abc-123/16-1/protocol.pdf"


def _leaf(href: str = PROTOCOL_HREF, leaf_id: str = "leaf-16-1-0", checksum: str = "b" * 32) -> LeafEntry:
    return LeafEntry(id=leaf_id, href=href, checksum=checksum, title="16.1 - Protocol", node_code="16.1")


def _index(leaves: list[LeafEntry], sequence: str = "0000") -> str:
    return generate_index_xml(
        SubmissionMetadata(sponsor="Acme Pharma", study_number="ABC-123", submission_date=SUBMITTED),
        SequenceInfo(number=sequence, type="original"),
        leaves,
        EctdXmlConfig(),
    )


def _rules(result) -> list[str]:
    return [issue.rule for issue in result.issues]


class TestIndexXmlValidation:
    """Test index.xml checks."""

    def test_generated_index_is_valid(self):
        """Test a freshly generated index.xml passes with its metadata read back."""
        result = validate_index_xml(_index([_leaf()]))

        assert result.valid is True
        assert result.error_count == 0
        assert result.metadata.sequence == "0000"
        assert result.metadata.sponsor == "Acme Pharma"
        assert result.metadata.study_number == "ABC-123"
        assert result.metadata.leaf_count == 1

    def test_minimal_skeleton_is_valid(self):
        """Test an index.xml with no leaves still passes."""
        result = validate_index_xml(generate_minimal_index_xml("ABC-123"))

        assert result.valid is True
        assert result.metadata.study_number == "ABC-123"
        assert result.metadata.leaf_count == 0

    def test_missing_root_element(self):
        """Test content without <ectd:ectd> stops after the root check."""
        result = validate_index_xml('<?xml version="1.0"?><other/>')

        assert result.valid is False
        assert _rules(result) == ["root-element"]

    def test_bad_sequence(self):
        """Test a sequence that is not four digits is an error."""
        result = validate_index_xml(_index([_leaf()], sequence="12"))

        assert result.valid is False
        assert "sequence-format" in _rules(result)

    def test_leaf_problems(self):
        """Test duplicate ids, backslashes and malformed checksums."""
        leaves = [
            _leaf(),
            _leaf(href="m5\\abc-123\\16-1\\other.pdf", checksum="not-md5"),
        ]
        result = validate_index_xml(_index(leaves))
        rules = _rules(result)

        assert "duplicate-id" in rules
        assert "href-format" in rules
        assert "checksum-format" in rules
        assert result.valid is False

    def test_checksum_format_can_be_skipped(self):
        """Test checksum format validation is optional."""
        result = validate_index_xml(
            _index([_leaf(checksum="xyz")]),
            XmlValidationOptions(skip_checksum_validation=True),
        )
        assert "checksum-format" not in _rules(result)

    def test_href_must_match_package_files(self):
        """Test leaf hrefs are checked against package files only when given."""
        xml = _index([_leaf()])
        package_file = PackageFile(
            source_document_id="d",
            source_path="source/other.pdf",
            target_path="m5/abc-123/16-2/other.pdf",
            node_code="16.2",
            node_title="Other",
            file_name="other.pdf",
            version=1,
        )

        unchecked = validate_index_xml(xml)
        checked = validate_index_xml(xml, XmlValidationOptions(package_files=[package_file]))

        assert "href-reference" not in _rules(unchecked)
        assert "href-reference" in _rules(checked)

    def test_empty_modules_warn_when_disallowed(self):
        """Test an empty module is a warning only when empty modules are disallowed."""
        xml = _index([_leaf()]).replace(
            "</ectd:ectd>", '  <m2 ID="m2">\n    <title>CTD Summaries</title>\n  </m2>\n</ectd:ectd>'
        )

        allowed = validate_index_xml(xml)
        disallowed = validate_index_xml(xml, XmlValidationOptions(allow_empty_modules=False))

        assert "empty-module" not in _rules(allowed)
        assert "empty-module" in _rules(disallowed)
        assert disallowed.valid is True

    def test_missing_namespace(self):
        """Test the xlink namespace is required."""
        xml = _index([_leaf()]).replace('xmlns:xlink="http://www.w3.org/1999/xlink"', "")
        result = validate_index_xml(xml)

        assert "namespace" in _rules(result)

    def test_report_formatting(self):
        """Test the plain-text report carries status and metadata."""
        report = format_xml_validation_report(validate_index_xml(_index([_leaf()])))

        assert "Status: VALID" in report
        assert "Sequence: 0000" in report


class TestRegionalXmlValidation:
    """Test us-regional.xml checks."""

    def _regional(self, application_number: str | None = None) -> str:
        return generate_us_regional_xml(
            FdaMetadata(
                sponsor="Acme Pharma",
                study_number="ABC-123",
                application_number=application_number,
                submission_date=SUBMITTED,
            ),
            SequenceInfo(number="0000", type="original"),
            [_leaf(href="m1/us/cover.pdf", leaf_id="cover-page")],
            EctdXmlConfig(),
        )

    def test_generated_regional_has_no_issues(self):
        """Test the generator emits every element the regional check looks for."""
        result = validate_us_regional_xml(self._regional("IND-9"))

        assert result.valid is True
        assert result.issues == []

    def test_missing_fda_elements_are_warnings(self):
        """Test missing recommended FDA elements do not invalidate the file."""
        result = validate_us_regional_xml(self._regional())

        assert result.valid is True
        messages = [issue.message for issue in result.issues]
        assert "Missing recommended FDA element: <application-number>" in messages
        assert all(issue.severity == ValidationSeverity.WARNING for issue in result.issues)
        assert result.metadata.leaf_count == 1

    def test_minimal_skeleton_is_valid(self):
        """Test a regional file with no leaves only carries warnings."""
        result = validate_us_regional_xml(generate_minimal_us_regional_xml("Acme Pharma", SUBMITTED))

        assert result.valid is True
        assert result.metadata.leaf_count == 0

    def test_missing_root(self):
        """Test a file without an FDA root element is invalid."""
        result = validate_us_regional_xml('<?xml version="1.0"?><x/>')
        assert result.valid is False

    def test_combined_result(self):
        """Test index and regional results are summed."""
        result = validate_ectd_xml(_index([_leaf()]), self._regional("IND-9"))

        assert result.combined_valid is True
        assert result.total_errors == 0
        assert result.total_warnings == result.index_result.warning_count + result.regional_result.warning_count
