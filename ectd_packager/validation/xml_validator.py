"""
Structural checks for generated eCTD XML.

Pattern-based rather than DTD-driven: confirms the elements, leaf
attributes and namespaces reviewers' tools depend on, and (optionally) that
every leaf href points at a file in the package.
"""

import re

from ectd_packager.models.enums import ValidationSeverity
from ectd_packager.validation.types import (
    EctdXmlValidationResult,
    XmlMetadata,
    XmlType,
    XmlValidationIssue,
    XmlValidationOptions,
    XmlValidationResult,
)

REQUIRED_INDEX_ELEMENTS = [
    "ectd:ectd",
    "submission",
    "sequence",
    "submission-type",
    "submission-date",
    "applicant",
    "name",
    "study",
    "study-number",
]
REQUIRED_LEAF_ATTRIBUTES = ["ID", "xlink:href", "checksum", "checksum-type"]
REQUIRED_FDA_ELEMENTS = ["submission-type", "application-number"]
VALID_MODULES = ["m1", "m2", "m3", "m4", "m5"]
VALID_SUBMISSION_TYPES = {"original", "amendment", "supplement"}
REQUIRED_NAMESPACES = [("ectd", "ich.org/ectd"), ("xlink", "w3.org/1999/xlink")]

MD5_PATTERN = re.compile(r"[a-f0-9]{32}", re.IGNORECASE)
_LEAF = re.compile(r"<leaf\s+([^>]+)>")
_SEQUENCE = re.compile(r"<sequence>([^<]+)</sequence>")
_SUBMISSION_TYPE = re.compile(r"<submission-type>([^<]+)</submission-type>")
_STUDY_NUMBER = re.compile(r"<study-number>([^<]+)</study-number>")
_SPONSOR = re.compile(r"<applicant>\s*<name>([^<]+)</name>")
_MODULE_OPEN = re.compile(r"<(m[0-9]+)\s+")


def _attribute(attrs: str, name: str) -> str | None:
    # Leading boundary so "checksum" does not match inside "checksum-type"
    match = re.search(rf'(?<![\w:-]){re.escape(name)}\s*=\s*"([^"]*)"', attrs)
    return match.group(1) if match else None


def _issue(
    severity: ValidationSeverity,
    rule: str,
    message: str,
    element_path: str | None = None,
) -> XmlValidationIssue:
    return XmlValidationIssue(severity=severity, rule=rule, message=message, element_path=element_path)


def _build_result(issues: list[XmlValidationIssue], xml_type: XmlType, metadata: XmlMetadata) -> XmlValidationResult:
    error_count = sum(1 for issue in issues if issue.severity == ValidationSeverity.ERROR)
    warning_count = sum(1 for issue in issues if issue.severity == ValidationSeverity.WARNING)
    return XmlValidationResult(
        valid=error_count == 0,
        xml_type=xml_type,
        issues=issues,
        error_count=error_count,
        warning_count=warning_count,
        metadata=metadata if metadata.model_dump(exclude_none=True) else None,
    )


def validate_leaf_elements(
    xml_content: str,
    options: XmlValidationOptions,
) -> tuple[list[XmlValidationIssue], int]:
    """Returns (issues, number of leaves)."""
    issues: list[XmlValidationIssue] = []
    leaves = _LEAF.findall(xml_content)
    seen_ids: set[str] = set()
    seen_hrefs: set[str] = set()

    known_paths: set[str] | None = None
    if options.package_files is not None:
        known_paths = set()
        for file in options.package_files:
            known_paths.add(file.target_path)
            known_paths.add(file.target_path.replace("\\", "/"))

    for attrs in leaves:
        for attr in REQUIRED_LEAF_ATTRIBUTES:
            if _attribute(attrs, attr) is None:
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        "leaf-attribute",
                        f"Leaf element missing required attribute: {attr}",
                        "leaf",
                    )
                )

        leaf_id = _attribute(attrs, "ID")
        if leaf_id is not None:
            if leaf_id in seen_ids:
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        "duplicate-id",
                        f"Duplicate leaf ID: {leaf_id}",
                        f'leaf[@ID="{leaf_id}"]',
                    )
                )
            seen_ids.add(leaf_id)

        href = _attribute(attrs, "xlink:href")
        if href is not None:
            path = f'leaf[@href="{href}"]'
            if href in seen_hrefs:
                issues.append(_issue(ValidationSeverity.WARNING, "duplicate-href", f"Duplicate leaf href: {href}", path))
            seen_hrefs.add(href)

            if "\\" in href:
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        "href-format",
                        f"Leaf href contains backslash (should use forward slash): {href}",
                        path,
                    )
                )

            if known_paths is not None and href not in known_paths:
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        "href-reference",
                        f"Leaf href references non-existent file: {href}",
                        path,
                    )
                )

        if not options.skip_checksum_validation:
            checksum = _attribute(attrs, "checksum")
            if checksum and not MD5_PATTERN.fullmatch(checksum):
                issues.append(
                    _issue(
                        ValidationSeverity.ERROR,
                        "checksum-format",
                        f"Invalid MD5 checksum format: {checksum}",
                        "leaf",
                    )
                )

        checksum_type = _attribute(attrs, "checksum-type")
        if checksum_type is not None and checksum_type.lower() != "md5":
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    "checksum-type",
                    f'Invalid checksum type: {checksum_type} (must be "md5")',
                    "leaf",
                )
            )

    return issues, len(leaves)


def validate_modules(xml_content: str, options: XmlValidationOptions) -> list[XmlValidationIssue]:
    issues: list[XmlValidationIssue] = []

    for module in VALID_MODULES:
        opened = re.search(rf'<{module}\s+[^>]*ID\s*=\s*"{module}"', xml_content, re.IGNORECASE)
        closed = re.search(rf"</{module}>", xml_content, re.IGNORECASE)
        if opened and not closed:
            issues.append(
                _issue(ValidationSeverity.ERROR, "unclosed-module", f"Module {module} is not properly closed", module)
            )
        if opened and closed and not options.allow_empty_modules:
            body = xml_content[opened.end() : closed.start()]
            if "<leaf" not in body:
                issues.append(_issue(ValidationSeverity.WARNING, "empty-module", f"Module {module} has no leaves", module))

    for name in _MODULE_OPEN.findall(xml_content):
        if name.lower() not in VALID_MODULES:
            issues.append(_issue(ValidationSeverity.WARNING, "unknown-module", f"Unknown module: {name}", name))

    return issues


def validate_namespaces(xml_content: str) -> list[XmlValidationIssue]:
    issues = []
    for prefix, uri in REQUIRED_NAMESPACES:
        if not re.search(rf'xmlns:{prefix}\s*=\s*"[^"]*{re.escape(uri)}', xml_content, re.IGNORECASE):
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    "namespace",
                    f"Missing required namespace: xmlns:{prefix}",
                    "ectd:ectd",
                )
            )
    return issues


def validate_index_xml(xml_content: str, options: XmlValidationOptions | None = None) -> XmlValidationResult:
    options = options or XmlValidationOptions()
    issues: list[XmlValidationIssue] = []
    metadata = XmlMetadata()

    if not xml_content.startswith("<?xml"):
        issues.append(_issue(ValidationSeverity.ERROR, "xml-declaration", "Missing XML declaration"))

    if "<ectd:ectd" not in xml_content:
        issues.append(_issue(ValidationSeverity.ERROR, "root-element", "Missing root element <ectd:ectd>"))
        return _build_result(issues, "index", metadata)

    for element in REQUIRED_INDEX_ELEMENTS:
        if not re.search(rf"<{re.escape(element)}[>\s]", xml_content, re.IGNORECASE):
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    "required-element",
                    f"Missing required element: <{element}>",
                    element,
                )
            )

    sequence = _SEQUENCE.search(xml_content)
    if sequence:
        metadata.sequence = sequence.group(1)
        if not re.fullmatch(r"[0-9]{4}", metadata.sequence):
            issues.append(
                _issue(
                    ValidationSeverity.ERROR,
                    "sequence-format",
                    f'Invalid sequence format: {metadata.sequence} (expected 4 digits like "0000")',
                    "submission/sequence",
                )
            )

    submission_type = _SUBMISSION_TYPE.search(xml_content)
    if submission_type:
        metadata.submission_type = submission_type.group(1)
        if metadata.submission_type.lower() not in VALID_SUBMISSION_TYPES:
            issues.append(
                _issue(
                    ValidationSeverity.WARNING,
                    "submission-type",
                    f"Unusual submission type: {metadata.submission_type}",
                    "submission/submission-type",
                )
            )

    study_number = _STUDY_NUMBER.search(xml_content)
    if study_number:
        metadata.study_number = study_number.group(1)

    sponsor = _SPONSOR.search(xml_content)
    if sponsor:
        metadata.sponsor = sponsor.group(1)

    leaf_issues, leaf_count = validate_leaf_elements(xml_content, options)
    issues.extend(leaf_issues)
    metadata.leaf_count = leaf_count

    issues.extend(validate_modules(xml_content, options))

    if "</ectd:ectd>" not in xml_content:
        issues.append(_issue(ValidationSeverity.ERROR, "closing-tag", "Missing closing tag </ectd:ectd>"))

    issues.extend(validate_namespaces(xml_content))

    return _build_result(issues, "index", metadata)


def validate_us_regional_xml(xml_content: str, options: XmlValidationOptions | None = None) -> XmlValidationResult:
    options = options or XmlValidationOptions()
    issues: list[XmlValidationIssue] = []
    metadata = XmlMetadata()

    if not xml_content.startswith("<?xml"):
        issues.append(_issue(ValidationSeverity.ERROR, "xml-declaration", "Missing XML declaration"))

    if "<fda:fda" not in xml_content and "<us-regional" not in xml_content:
        issues.append(_issue(ValidationSeverity.ERROR, "root-element", "Missing FDA regional root element"))
        return _build_result(issues, "us-regional", metadata)

    for element in REQUIRED_FDA_ELEMENTS:
        if not re.search(rf"<(fda:)?{element}[>\s]", xml_content, re.IGNORECASE):
            issues.append(
                _issue(
                    ValidationSeverity.WARNING,
                    "fda-element",
                    f"Missing recommended FDA element: <{element}>",
                    element,
                )
            )

    leaf_issues, leaf_count = validate_leaf_elements(xml_content, options)
    issues.extend(leaf_issues)
    metadata.leaf_count = leaf_count

    return _build_result(issues, "us-regional", metadata)


def validate_ectd_xml(
    index_xml: str,
    regional_xml: str,
    options: XmlValidationOptions | None = None,
) -> EctdXmlValidationResult:
    index_result = validate_index_xml(index_xml, options)
    regional_result = validate_us_regional_xml(regional_xml, options)
    return EctdXmlValidationResult(
        index_result=index_result,
        regional_result=regional_result,
        combined_valid=index_result.valid and regional_result.valid,
        total_errors=index_result.error_count + regional_result.error_count,
        total_warnings=index_result.warning_count + regional_result.warning_count,
    )


def format_xml_validation_report(result: XmlValidationResult) -> str:
    lines = [
        f"XML Validation Report ({result.xml_type})",
        "=" * 40,
        f"Status: {'VALID' if result.valid else 'INVALID'}",
        f"Errors: {result.error_count}, Warnings: {result.warning_count}",
    ]

    if result.metadata:
        meta = result.metadata
        lines += ["", "Metadata:"]
        if meta.sequence:
            lines.append(f"  Sequence: {meta.sequence}")
        if meta.submission_type:
            lines.append(f"  Type: {meta.submission_type}")
        if meta.study_number:
            lines.append(f"  Study: {meta.study_number}")
        if meta.sponsor:
            lines.append(f"  Sponsor: {meta.sponsor}")
        if meta.leaf_count is not None:
            lines.append(f"  Leaves: {meta.leaf_count}")

    if result.issues:
        lines += ["", "Issues:"]
        for severity, heading in ((ValidationSeverity.ERROR, "ERRORS"), (ValidationSeverity.WARNING, "WARNINGS")):
            issues = [issue for issue in result.issues if issue.severity == severity]
            if not issues:
                continue
            lines += ["", f"  {heading}:"]
            for issue in issues:
                path = f" [{issue.element_path}]" if issue.element_path else ""
                lines.append(f"    - {issue.message}{path}")

    return "\n".join(lines)
