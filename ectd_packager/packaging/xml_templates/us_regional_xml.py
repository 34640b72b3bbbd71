"""
us-regional.xml builder (FDA Module 1).

Forms and cover-letter sections are only emitted when there is something to
put in them; M1 leaves matching neither heuristic land in <m1-other>.
"""

from datetime import datetime
from typing import Literal

from ectd_packager.packaging.types import EctdXmlConfig, LeafEntry, SequenceInfo, SubmissionMetadata
from ectd_packager.packaging.xml_templates import XmlLines, escape_xml, format_date, xml_declaration
from ectd_packager.schemas.common import CamelModel

FdaApplicationType = Literal[
    "nda",
    "anda",
    "bla",
    "ind",
    "nda-supplement",
    "anda-supplement",
    "bla-supplement",
    "ind-amendment",
]

FdaSubmissionSubType = Literal[
    "original",
    "amendment",
    "supplement",
    "annual-report",
    "resubmission",
    "pre-submission",
]

ROOT_ELEMENT = '<fda:fda xmlns:fda="http://www.fda.gov/cder/ectd" xmlns:xlink="http://www.w3.org/1999/xlink">'


class FdaContact(CamelModel):
    name: str
    phone: str | None = None
    email: str | None = None
    fax: str | None = None


class FdaMetadata(SubmissionMetadata):
    fda_application_type: FdaApplicationType | None = None
    submission_sub_type: FdaSubmissionSubType | None = None
    duns_number: str | None = None
    establishment_id: str | None = None
    contact: FdaContact | None = None
    cover_letter_ref: str | None = None
    form_356h_ref: str | None = None


def _is_m1(leaf: LeafEntry) -> bool:
    return leaf.href.startswith("m1/")


def _write_m1_leaf(out: XmlLines, depth: int, leaf: LeafEntry) -> None:
    out.add(
        depth,
        f'<leaf ID="{escape_xml(leaf.id)}" xlink:href="{escape_xml(leaf.href)}" '
        f'checksum="{leaf.checksum}" checksum-type="md5">',
    )
    out.add(depth + 1, f"<title>{escape_xml(leaf.title)}</title>")
    out.add(depth, "</leaf>")


def _forms_section(out: XmlLines, depth: int, metadata: FdaMetadata, leaves: list[LeafEntry]) -> None:
    form_leaves = [leaf for leaf in leaves if _is_m1(leaf) and "form" in leaf.href]
    if not form_leaves and not metadata.form_356h_ref:
        return

    out.add(depth, "<m1-1-forms>")
    out.add(depth + 1, "<title>Forms</title>")
    if metadata.form_356h_ref:
        out.add(depth + 1, "<form-356h>")
        out.add(depth + 2, f'<leaf-ref idref="{escape_xml(metadata.form_356h_ref)}" />')
        out.add(depth + 1, "</form-356h>")
    for leaf in form_leaves:
        _write_m1_leaf(out, depth + 1, leaf)
    out.add(depth, "</m1-1-forms>")


def _cover_letter_section(out: XmlLines, depth: int, metadata: FdaMetadata, leaves: list[LeafEntry]) -> None:
    cover_leaves = [leaf for leaf in leaves if _is_m1(leaf) and "cover" in leaf.href]
    if not cover_leaves and not metadata.cover_letter_ref:
        return

    out.add(depth, "<m1-2-cover-letter>")
    out.add(depth + 1, "<title>Cover Letter</title>")
    if metadata.cover_letter_ref:
        out.add(depth + 1, f'<leaf-ref idref="{escape_xml(metadata.cover_letter_ref)}" />')
    for leaf in cover_leaves:
        _write_m1_leaf(out, depth + 1, leaf)
    out.add(depth, "</m1-2-cover-letter>")


def _admin_section(out: XmlLines, depth: int, metadata: FdaMetadata) -> None:
    out.add(depth, "<m1-3-administrative-information>")
    out.add(depth + 1, "<title>Administrative Information</title>")
    if metadata.contact:
        out.add(depth + 1, "<contact>")
        out.add(depth + 2, f"<name>{escape_xml(metadata.contact.name)}</name>")
        out.element(depth + 2, "phone", metadata.contact.phone)
        out.element(depth + 2, "email", metadata.contact.email)
        out.element(depth + 2, "fax", metadata.contact.fax)
        out.add(depth + 1, "</contact>")
    out.element(depth + 1, "duns-number", metadata.duns_number)
    out.element(depth + 1, "establishment-id", metadata.establishment_id)
    out.add(depth, "</m1-3-administrative-information>")


def generate_us_regional_xml(
    metadata: FdaMetadata,
    sequence: SequenceInfo,
    leaves: list[LeafEntry],
    config: EctdXmlConfig,
) -> str:
    out = XmlLines()
    out.add(0, xml_declaration(config.encoding))
    if config.include_dtd:
        out.add(0, '<!DOCTYPE fda:fda SYSTEM "us-regional.dtd">')
    out.add(0, ROOT_ELEMENT)

    out.add(1, "<header>")
    out.add(2, "<submission-info>")
    out.add(3, f"<sequence-number>{escape_xml(sequence.number)}</sequence-number>")
    out.add(3, f"<submission-type>{escape_xml(sequence.type)}</submission-type>")
    out.element(3, "application-type", metadata.fda_application_type)
    out.element(3, "submission-sub-type", metadata.submission_sub_type)
    out.element(3, "application-number", metadata.application_number)
    out.add(3, f"<submission-date>{format_date(metadata.submission_date)}</submission-date>")
    out.add(2, "</submission-info>")

    out.add(2, "<applicant-info>")
    out.add(3, f"<applicant-name>{escape_xml(metadata.sponsor)}</applicant-name>")
    out.element(3, "duns-number", metadata.duns_number)
    out.add(2, "</applicant-info>")

    if metadata.product_name or metadata.generic_name:
        out.add(2, "<product-info>")
        out.element(3, "product-name", metadata.product_name)
        out.element(3, "generic-name", metadata.generic_name)
        out.add(2, "</product-info>")
    out.add(1, "</header>")

    out.add(1, '<m1-us-regional ID="m1-us">')
    out.add(2, "<title>US Regional Administrative Information</title>")
    _forms_section(out, 2, metadata, leaves)
    _cover_letter_section(out, 2, metadata, leaves)
    _admin_section(out, 2, metadata)

    other_leaves = [
        leaf for leaf in leaves if _is_m1(leaf) and "form" not in leaf.href and "cover" not in leaf.href
    ]
    if other_leaves:
        out.add(2, "<m1-other>")
        out.add(3, "<title>Other Regional Documents</title>")
        for leaf in other_leaves:
            _write_m1_leaf(out, 3, leaf)
        out.add(2, "</m1-other>")

    out.add(1, "</m1-us-regional>")
    out.add(0, "</fda:fda>")
    return out.render(config.pretty_print)


def generate_minimal_us_regional_xml(sponsor: str, submission_date: datetime) -> str:
    return generate_us_regional_xml(
        FdaMetadata(sponsor=sponsor, study_number="UNKNOWN", submission_date=submission_date),
        SequenceInfo(number="0000", type="original"),
        [],
        EctdXmlConfig(),
    )
