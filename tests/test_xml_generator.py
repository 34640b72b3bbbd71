"""Tests for eCTD XML backbone generation."""

import asyncio
import hashlib
from datetime import datetime, timezone

import pytest

from ectd_packager.packaging.errors import InvalidSequenceNumberError
from ectd_packager.packaging.types import (
    EctdXmlConfig,
    LeafEntry,
    PackageFile,
    PackageManifest,
    ReadinessCheck,
    SequenceInfo,
    SubmissionMetadata,
)
from ectd_packager.packaging.xml_generator import (
    PLACEHOLDER_CHECKSUM,
    XmlGenerationOptions,
    build_leaf_entries,
    determine_submission_type,
    format_sequence_number,
    generate_ectd_xml,
    generate_leaf_id,
    get_next_sequence,
    is_valid_sequence,
)
from ectd_packager.packaging.xml_templates import escape_xml
from ectd_packager.packaging.xml_templates.index_xml import generate_index_xml, group_leaves_by_module
from ectd_packager.packaging.xml_templates.us_regional_xml import FdaMetadata, generate_us_regional_xml

SUBMITTED = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def _file(code: str, source_path: str, file_name: str, title: str = "Section") -> PackageFile:
    return PackageFile(
        source_document_id=f"doc-{code}",
        source_path=source_path,
        target_path=f"m5/abc-123/{code.replace('.', '-')}/{file_name}",
        node_code=code,
        node_title=title,
        file_name=file_name,
        version=1,
        file_size=10,
    )


def _leaf(code: str, href: str, checksum: str = "a" * 32) -> LeafEntry:
    return LeafEntry(
        id=f"leaf-{code.replace('.', '-')}-0",
        href=href,
        checksum=checksum,
        title=f"{code} - Title",
        node_code=code,
    )


@pytest.fixture
def xml_manifest(storage) -> PackageManifest:
    asyncio.run(storage.write_bytes("source/protocol.pdf", b"%PDF-1.7 protocol"))
    asyncio.run(storage.write_bytes("source/listing.pdf", b"%PDF-1.7 listing"))
    return PackageManifest(
        study_id="study-1",
        study_number="ABC-123",
        files=[
            _file("16.2.1", "source/listing.pdf", "listing.pdf", "Listings & Tables"),
            _file("16.1", "source/protocol.pdf", "protocol.pdf", "Protocol"),
        ],
        readiness=ReadinessCheck(ready=True),
    )


class TestSequenceHelpers:
    """Test sequence numbering."""

    def test_format_and_next(self):
        """Test zero padding and increment."""
        assert format_sequence_number(7) == "0007"
        assert get_next_sequence("0009") == "0010"

    def test_is_valid_sequence(self):
        """Test exactly four digits are accepted."""
        assert is_valid_sequence("0000") is True
        assert is_valid_sequence("9999") is True
        assert is_valid_sequence("123") is False
        assert is_valid_sequence("00001") is False
        assert is_valid_sequence("abcd") is False

    def test_malformed_sequence_is_rejected(self):
        """Test non-numeric or wrongly sized sequences raise a packaging error."""
        for bad in ("abcd", "12a4", "", "00001"):
            with pytest.raises(InvalidSequenceNumberError):
                determine_submission_type(bad)
        with pytest.raises(InvalidSequenceNumberError):
            get_next_sequence("next")

    def test_determine_submission_type(self):
        """Test only sequence 0000 is an original submission."""
        assert determine_submission_type("0000") == "original"
        assert determine_submission_type("0003") == "amendment"


class TestLeafEntries:
    """Test leaf construction and checksums."""

    def test_generate_leaf_id(self):
        """Test ids combine prefix, hyphenated code and position."""
        assert generate_leaf_id(_file("16.2.1", "s", "f.pdf"), 3) == "leaf-16-2-1-3"
        assert generate_leaf_id(_file("16.1", "s", "f.pdf"), 0, "doc") == "doc-16-1-0"

    def test_leaves_sorted_with_checksums(self, storage, xml_manifest):
        """Test leaves are ordered by code and carry MD5 of the source file."""
        leaves, warnings = asyncio.run(build_leaf_entries(xml_manifest.files, XmlGenerationOptions(), storage))

        assert warnings == []
        assert [leaf.node_code for leaf in leaves] == ["16.1", "16.2.1"]
        # ids keep the manifest position, not the sorted one
        assert [leaf.id for leaf in leaves] == ["leaf-16-1-1", "leaf-16-2-1-0"]
        assert leaves[0].checksum == hashlib.md5(b"%PDF-1.7 protocol").hexdigest()
        assert leaves[0].title == "16.1 - Protocol"
        assert leaves[0].href == "m5/abc-123/16-1/protocol.pdf"

    def test_unreadable_file_gets_placeholder(self, storage, xml_manifest):
        """Test a missing file yields a placeholder checksum and a warning."""
        xml_manifest.files.append(_file("16.3", "source/missing.pdf", "missing.pdf"))

        leaves, warnings = asyncio.run(build_leaf_entries(xml_manifest.files, XmlGenerationOptions(), storage))

        assert leaves[-1].checksum == PLACEHOLDER_CHECKSUM
        assert len(warnings) == 1
        assert "missing.pdf" in warnings[0]

    def test_skip_checksums(self, storage, xml_manifest):
        """Test checksums are left empty when skipped."""
        leaves, _ = asyncio.run(
            build_leaf_entries(xml_manifest.files, XmlGenerationOptions(skip_checksums=True), storage)
        )
        assert all(leaf.checksum == "" for leaf in leaves)

    def test_checksum_root_hashes_target_paths(self, storage, xml_manifest, tmp_path):
        """Test checksums can come from exported files at their target paths."""
        exported = tmp_path / "ectd" / "m5" / "abc-123" / "16-1"
        exported.mkdir(parents=True)
        (exported / "protocol.pdf").write_bytes(b"rewritten")

        leaves, warnings = asyncio.run(
            build_leaf_entries(
                xml_manifest.files[1:],
                XmlGenerationOptions(checksum_root=tmp_path / "ectd"),
                storage,
            )
        )

        assert warnings == []
        assert leaves[0].checksum == hashlib.md5(b"rewritten").hexdigest()


class TestTemplates:
    """Test index.xml and us-regional.xml rendering."""

    def test_escape_xml(self):
        """Test all five special characters are escaped."""
        assert escape_xml("""<a href="x">Tom & Jerry's</a>""") == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&apos;s&lt;/a&gt;"
        )

    def test_group_leaves_by_module(self):
        """Test leaves are bucketed by href prefix with m5 as the default."""
        modules = group_leaves_by_module(
            [_leaf("1.0", "m1/us/cover.pdf"), _leaf("16.1", "m5/a/16-1/p.pdf"), _leaf("9", "other/x.pdf")]
        )
        assert [leaf.href for leaf in modules["m1"]] == ["m1/us/cover.pdf"]
        assert [leaf.href for leaf in modules["m5"]] == ["m5/a/16-1/p.pdf", "other/x.pdf"]
        assert modules["m2"] == []

    def test_index_xml_structure(self):
        """Test header, nested sections and leaves render in order."""
        metadata = SubmissionMetadata(
            sponsor="Acme & Sons",
            study_number="ABC-123",
            application_number="NDA-123456",
            submission_date=SUBMITTED,
        )
        xml = generate_index_xml(
            metadata,
            SequenceInfo(number="0001", type="amendment"),
            [_leaf("16.1", "m5/abc-123/16-1/protocol.pdf"), _leaf("16.2.1", "m5/abc-123/16-2-1/listing.pdf")],
            EctdXmlConfig(),
        )

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert '<!DOCTYPE ectd:ectd SYSTEM "ich-ectd-3.3.dtd">' in xml
        assert 'xmlns:fda="http://www.fda.gov/cder/ectd"' in xml
        assert "<sequence>0001</sequence>" in xml
        assert "<submission-type>amendment</submission-type>" in xml
        assert "<submission-date>2026-03-14</submission-date>" in xml
        assert "<name>Acme &amp; Sons</name>" in xml
        assert "<application-number>NDA-123456</application-number>" in xml
        assert "<product-name>" not in xml
        assert '<m5 ID="m5">' in xml
        assert "<m1 " not in xml
        assert xml.index('<section ID="s-16">') < xml.index('<section ID="s-16-2">') < xml.index(
            '<section ID="s-16-2-1">'
        )
        assert "<title>Section 16.2</title>" in xml
        assert (
            '<leaf ID="leaf-16-1-0" xlink:href="m5/abc-123/16-1/protocol.pdf" '
            f'checksum="{"a" * 32}" checksum-type="md5">'
        ) in xml
        assert xml.rstrip().endswith("</ectd:ectd>")

    def test_compact_output(self):
        """Test pretty_print=False drops newlines and indentation."""
        xml = generate_index_xml(
            SubmissionMetadata(sponsor="Acme", study_number="ABC-123", submission_date=SUBMITTED),
            SequenceInfo(number="0000", type="original"),
            [],
            EctdXmlConfig(pretty_print=False, include_dtd=False),
        )
        assert "\n" not in xml
        assert "<!DOCTYPE" not in xml

    def test_regional_xml_places_cover_leaf(self):
        """Test M1 cover leaves go under the cover letter section."""
        xml = generate_us_regional_xml(
            FdaMetadata(
                sponsor="Acme",
                study_number="ABC-123",
                application_number="IND-9",
                submission_date=SUBMITTED,
            ),
            SequenceInfo(number="0000", type="original"),
            [_leaf("1.0", "m1/us/cover.pdf"), _leaf("16.1", "m5/abc-123/16-1/protocol.pdf")],
            EctdXmlConfig(),
        )

        assert "<sequence-number>0000</sequence-number>" in xml
        assert "<submission-type>original</submission-type>" in xml
        assert "<application-number>IND-9</application-number>" in xml
        assert "<m1-1-forms>" not in xml
        cover = xml.index("<m1-2-cover-letter>")
        assert cover < xml.index('xlink:href="m1/us/cover.pdf"') < xml.index("</m1-2-cover-letter>")
        assert "m5/abc-123/16-1/protocol.pdf" not in xml
        assert "<m1-3-administrative-information>" in xml


class TestGenerateEctdXml:
    """Test end-to-end XML generation from a manifest."""

    def test_generate_for_us_region(self, storage, xml_manifest):
        """Test both files are produced and metadata overrides apply."""
        result = asyncio.run(
            generate_ectd_xml(
                xml_manifest,
                XmlGenerationOptions(metadata={"sponsor": "Acme Pharma", "product_name": None}),
                storage,
            )
        )

        assert len(result.leaf_entries) == 2
        assert "<name>Acme Pharma</name>" in result.index_xml
        assert "<study-number>ABC-123</study-number>" in result.index_xml
        assert "<applicant-name>Acme Pharma</applicant-name>" in result.regional_xml

    def test_missing_sponsor_falls_back(self, storage, xml_manifest):
        """Test an absent sponsor is rendered as "Unknown Sponsor"."""
        result = asyncio.run(generate_ectd_xml(xml_manifest, XmlGenerationOptions(skip_checksums=True), storage))
        assert "<name>Unknown Sponsor</name>" in result.index_xml

    def test_non_us_region_has_no_regional_xml(self, storage, xml_manifest):
        """Test regional XML is only produced for the US region."""
        result = asyncio.run(
            generate_ectd_xml(
                xml_manifest,
                XmlGenerationOptions(config=EctdXmlConfig(region="eu"), skip_checksums=True),
                storage,
            )
        )
        assert result.regional_xml == ""
        assert "xmlns:fda" not in result.index_xml
