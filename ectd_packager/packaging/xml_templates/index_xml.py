"""
index.xml builder.

The backbone of an eCTD sequence: submission header, applicant and study
blocks, then one element per populated module (m1..m5) holding a section
tree derived from the leaves' node codes.
"""

from ectd_packager.packaging.hierarchy import CodeTreeNode, build_code_tree
from ectd_packager.packaging.types import EctdXmlConfig, LeafEntry, SequenceInfo, SubmissionMetadata
from ectd_packager.packaging.xml_templates import XmlLines, escape_xml, format_date, xml_declaration

MODULE_TITLES = {
    "m1": "Administrative Information",
    "m2": "CTD Summaries",
    "m3": "Quality",
    "m4": "Nonclinical Study Reports",
    "m5": "Clinical Study Reports",
}
DEFAULT_MODULE = "m5"

NAMESPACES = (
    'xmlns:ectd="http://www.ich.org/ectd"',
    'xmlns:xlink="http://www.w3.org/1999/xlink"',
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"',
)
FDA_NAMESPACE = 'xmlns:fda="http://www.fda.gov/cder/ectd"'


def leaf_attributes(leaf: LeafEntry) -> str:
    """Leaf attributes in their fixed order."""
    attrs = [
        f'ID="{escape_xml(leaf.id)}"',
        f'xlink:href="{escape_xml(leaf.href)}"',
        f'checksum="{leaf.checksum}"',
        f'checksum-type="{leaf.checksum_type}"',
    ]
    if leaf.operation:
        attrs.append(f'operation="{leaf.operation}"')
    if leaf.modified_file:
        attrs.append(f'modified-file="{escape_xml(leaf.modified_file)}"')
    return " ".join(attrs)


def write_leaf(out: XmlLines, depth: int, leaf: LeafEntry) -> None:
    out.add(depth, f"<leaf {leaf_attributes(leaf)}>")
    out.add(depth + 1, f"<title>{escape_xml(leaf.title)}</title>")
    out.add(depth, "</leaf>")


def group_leaves_by_module(leaves: list[LeafEntry]) -> dict[str, list[LeafEntry]]:
    """Bucket leaves by the first segment of their href; unknown prefixes go to m5."""
    modules: dict[str, list[LeafEntry]] = {key: [] for key in MODULE_TITLES}
    for leaf in leaves:
        key = leaf.href.split("/", 1)[0].lower()
        modules.get(key, modules[DEFAULT_MODULE]).append(leaf)
    return modules


def _write_section(out: XmlLines, depth: int, section: CodeTreeNode[LeafEntry]) -> None:
    out.add(depth, f'<section ID="s-{section.code.replace(".", "-")}">')
    out.add(depth + 1, f"<title>{escape_xml(f'Section {section.code}')}</title>")
    for child in section.children:
        _write_section(out, depth + 1, child)
    for leaf in section.items:
        write_leaf(out, depth + 1, leaf)
    out.add(depth, "</section>")


def _write_module(out: XmlLines, module_key: str, leaves: list[LeafEntry]) -> None:
    out.add(1, f'<{module_key} ID="{module_key}">')
    out.add(2, f"<title>{escape_xml(MODULE_TITLES[module_key])}</title>")
    for section in build_code_tree(leaves, key=lambda leaf: leaf.node_code):
        _write_section(out, 2, section)
    # Leaves without a usable code sit directly in the module
    for leaf in leaves:
        if not leaf.node_code.strip("."):
            write_leaf(out, 2, leaf)
    out.add(1, f"</{module_key}>")


def generate_index_xml(
    metadata: SubmissionMetadata,
    sequence: SequenceInfo,
    leaves: list[LeafEntry],
    config: EctdXmlConfig,
) -> str:
    out = XmlLines()
    out.add(0, xml_declaration(config.encoding))
    if config.include_dtd:
        out.add(0, f'<!DOCTYPE ectd:ectd SYSTEM "ich-ectd-{config.dtd_version}.dtd">')

    namespaces = list(NAMESPACES)
    if config.region == "us":
        namespaces.append(FDA_NAMESPACE)
    out.add(0, f"<ectd:ectd {' '.join(namespaces)}>")

    out.add(1, "<submission>")
    out.add(2, f"<sequence>{escape_xml(sequence.number)}</sequence>")
    out.add(2, f"<submission-type>{escape_xml(sequence.type)}</submission-type>")
    out.element(2, "submission-description", sequence.description)
    out.element(2, "related-sequence", sequence.related_sequence)
    out.add(2, f"<submission-date>{format_date(metadata.submission_date)}</submission-date>")
    out.add(1, "</submission>")

    out.add(1, "<applicant>")
    out.add(2, f"<name>{escape_xml(metadata.sponsor)}</name>")
    out.element(2, "application-number", metadata.application_number)
    out.element(2, "application-type", metadata.application_type)
    out.add(1, "</applicant>")

    out.add(1, "<study>")
    out.add(2, f"<study-number>{escape_xml(metadata.study_number)}</study-number>")
    out.element(2, "product-name", metadata.product_name)
    out.element(2, "generic-name", metadata.generic_name)
    out.element(2, "therapeutic-area", metadata.therapeutic_area)
    out.element(2, "manufacturer", metadata.manufacturer)
    out.add(1, "</study>")

    for module_key, module_leaves in group_leaves_by_module(leaves).items():
        if module_leaves:
            _write_module(out, module_key, module_leaves)

    out.add(0, "</ectd:ectd>")
    return out.render(config.pretty_print)


def generate_minimal_index_xml(study_number: str) -> str:
    """Skeleton index.xml with no leaves."""
    return generate_index_xml(
        SubmissionMetadata(sponsor="Unknown", study_number=study_number),
        SequenceInfo(number="0000", type="original"),
        [],
        EctdXmlConfig(),
    )
